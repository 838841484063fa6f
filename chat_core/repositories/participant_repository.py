from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from chat_core.models.api.participants import ParticipantResponse, ParticipantRole
from chat_core.models.db.conversation_model import ConversationModel
from chat_core.models.db.participant_model import ParticipantModel
from chat_core.models.db.types import utcnow
from chat_core.repositories.base_repository import BaseRepository


class ParticipantRepository(BaseRepository[ParticipantModel, ParticipantResponse]):
    """Repository for conversation rosters."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, ParticipantModel)

    async def get_row(
        self, conversation_id: UUID, user_id: UUID
    ) -> Optional[ParticipantModel]:
        """Get the user's participant row in any state."""
        query = (
            select(self.model_class)
            .where(
                self.model_class.conversation_id == conversation_id,
                self.model_class.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_active(
        self, conversation_id: UUID, user_id: UUID
    ) -> Optional[ParticipantResponse]:
        row = await self.get_row(conversation_id, user_id)
        if row is None or not row.is_active:
            return None
        return self._to_pydantic(row)

    async def list_active(self, conversation_id: UUID) -> List[ParticipantModel]:
        """Active rows ordered by tenure (earliest join first, then user id)."""
        query = (
            select(self.model_class)
            .where(
                self.model_class.conversation_id == conversation_id,
                self.model_class.is_active.is_(True),
            )
            .order_by(self.model_class.joined_at, self.model_class.user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def is_active_member(self, conversation_id: UUID, user_id: UUID) -> bool:
        """True when the user is active in a conversation that is itself active."""
        query = (
            select(self.model_class.id)
            .join(
                ConversationModel,
                ConversationModel.id == self.model_class.conversation_id,
            )
            .where(
                self.model_class.conversation_id == conversation_id,
                self.model_class.user_id == user_id,
                self.model_class.is_active.is_(True),
                ConversationModel.is_active.is_(True),
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none() is not None

    async def add_or_reactivate(
        self,
        conversation_id: UUID,
        user_id: UUID,
        role: ParticipantRole = ParticipantRole.MEMBER,
    ) -> ParticipantResponse:
        """Add a participant, reusing the row of a former member if one exists."""
        now = utcnow()
        row = await self.get_row(conversation_id, user_id)
        if row is None:
            row = ParticipantModel(
                id=uuid4(),
                conversation_id=conversation_id,
                user_id=user_id,
                role=role.value,
                is_active=True,
                joined_at=now,
                left_at=None,
                last_read_at=None,
                created_at=now,
                updated_at=now,
            )
            self.db.add(row)
        else:
            row.is_active = True
            row.role = role.value
            row.joined_at = now
            row.left_at = None
            row.updated_at = now
        await self.db.flush()
        return self._to_pydantic(row)

    async def deactivate(self, row: ParticipantModel) -> None:
        now = utcnow()
        row.is_active = False
        row.left_at = now
        row.updated_at = now
        await self.db.flush()

    async def set_role(self, row: ParticipantModel, role: ParticipantRole) -> None:
        row.role = role.value
        row.updated_at = utcnow()
        await self.db.flush()

    async def advance_read_watermark(
        self, conversation_id: UUID, user_id: UUID, watermark: datetime
    ) -> bool:
        """Move ``last_read_at`` forward to ``watermark``; never backward.

        The comparison happens inside the UPDATE so concurrent calls cannot
        regress the watermark. Returns True when the row moved.
        """
        stmt = (
            update(self.model_class)
            .where(
                self.model_class.conversation_id == conversation_id,
                self.model_class.user_id == user_id,
                self.model_class.is_active.is_(True),
                or_(
                    self.model_class.last_read_at.is_(None),
                    self.model_class.last_read_at < watermark,
                ),
            )
            .values(last_read_at=watermark, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return bool(result.rowcount)

    def _to_pydantic(self, db_model: Any) -> ParticipantResponse:
        """Convert SQLAlchemy ParticipantModel to Pydantic ParticipantResponse."""
        return ParticipantResponse(
            id=db_model.id,
            conversation_id=db_model.conversation_id,
            user_id=db_model.user_id,
            role=db_model.role,
            is_active=db_model.is_active,
            joined_at=db_model.joined_at,
            left_at=db_model.left_at,
            last_read_at=db_model.last_read_at,
        )

    def _from_pydantic(self, pydantic_model: ParticipantResponse) -> ParticipantModel:
        """Convert Pydantic ParticipantResponse to SQLAlchemy ParticipantModel."""
        return ParticipantModel(
            id=pydantic_model.id,
            conversation_id=pydantic_model.conversation_id,
            user_id=pydantic_model.user_id,
            role=pydantic_model.role.value,
            is_active=pydantic_model.is_active,
            joined_at=pydantic_model.joined_at,
            left_at=pydantic_model.left_at,
            last_read_at=pydantic_model.last_read_at,
        )
