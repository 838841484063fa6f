from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from chat_core.models.api.conversations import ConversationResponse, ConversationType
from chat_core.models.api.participants import ParticipantResponse, ParticipantRole
from chat_core.models.db.conversation_model import (
    ConversationModel,
    DirectConversationPairModel,
)
from chat_core.models.db.participant_model import ParticipantModel
from chat_core.models.db.types import utcnow
from chat_core.repositories.base_repository import BaseRepository


def ordered_pair(user_a: UUID, user_b: UUID) -> Tuple[UUID, UUID]:
    """Canonical (low, high) ordering used by the direct-pair constraint."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class ConversationRepository(BaseRepository[ConversationModel, ConversationResponse]):
    """Repository for conversations and their direct-pair uniqueness rows."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, ConversationModel)

    async def get_by_id(self, id: UUID) -> Optional[ConversationResponse]:
        """Get a conversation by ID with a freshly loaded roster."""
        query = (
            select(self.model_class)
            .where(self.model_class.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        db_model = result.scalar_one_or_none()
        return self._to_pydantic(db_model) if db_model else None

    async def lock(self, id: UUID) -> Optional[ConversationModel]:
        """Lock the conversation row for the rest of the transaction.

        Every roster mutation takes this lock first, which serializes
        concurrent joins, leaves, kicks and role changes per conversation.
        """
        return await self.get_model(id, for_update=True)

    async def get_direct(
        self, user_a: UUID, user_b: UUID
    ) -> Optional[ConversationResponse]:
        """Find the active direct conversation between two users."""
        low, high = ordered_pair(user_a, user_b)
        query = (
            select(self.model_class)
            .join(
                DirectConversationPairModel,
                DirectConversationPairModel.conversation_id == self.model_class.id,
            )
            .where(
                DirectConversationPairModel.user_low_id == low,
                DirectConversationPairModel.user_high_id == high,
                self.model_class.is_active.is_(True),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        db_model = result.scalar_one_or_none()
        return self._to_pydantic(db_model) if db_model else None

    async def create_direct(self, user_a: UUID, user_b: UUID) -> ConversationResponse:
        """Insert a direct conversation, its pair row and both participants.

        Raises ``IntegrityError`` on flush when another transaction already
        created the pair.
        """
        now = utcnow()
        low, high = ordered_pair(user_a, user_b)
        conversation = ConversationModel(
            id=uuid4(),
            conversation_type=ConversationType.DIRECT.value,
            created_by_id=user_a,
            is_active=True,
            last_sequence=0,
            created_at=now,
            updated_at=now,
            participants=[
                self._new_participant(user_id, ParticipantRole.MEMBER, now)
                for user_id in (user_a, user_b)
            ],
        )
        self.db.add(conversation)
        await self.db.flush()
        self.db.add(
            DirectConversationPairModel(
                conversation_id=conversation.id, user_low_id=low, user_high_id=high
            )
        )
        await self.db.flush()
        return self._to_pydantic(conversation)

    async def create_group(
        self,
        creator_id: UUID,
        title: str,
        description: Optional[str],
        group_image_url: Optional[str],
        member_ids: Sequence[UUID],
    ) -> ConversationResponse:
        """Insert a group with the creator as owner and everyone else as member."""
        now = utcnow()
        participants = [self._new_participant(creator_id, ParticipantRole.OWNER, now)]
        participants.extend(
            self._new_participant(user_id, ParticipantRole.MEMBER, now)
            for user_id in member_ids
        )
        conversation = ConversationModel(
            id=uuid4(),
            conversation_type=ConversationType.GROUP.value,
            title=title,
            description=description,
            group_image_url=group_image_url,
            created_by_id=creator_id,
            is_active=True,
            last_sequence=0,
            created_at=now,
            updated_at=now,
            participants=participants,
        )
        self.db.add(conversation)
        await self.db.flush()
        return self._to_pydantic(conversation)

    async def deactivate(self, conversation: ConversationModel) -> None:
        """Mark a conversation inactive and release its direct pair, if any."""
        conversation.is_active = False
        conversation.updated_at = utcnow()
        await self.db.execute(
            delete(DirectConversationPairModel).where(
                DirectConversationPairModel.conversation_id == conversation.id
            )
        )
        await self.db.flush()

    async def update_group_info(
        self,
        conversation: ConversationModel,
        title: Optional[str] = None,
        description: Optional[str] = None,
        group_image_url: Optional[str] = None,
    ) -> None:
        if title is not None:
            conversation.title = title
        if description is not None:
            conversation.description = description
        if group_image_url is not None:
            conversation.group_image_url = group_image_url
        conversation.updated_at = utcnow()
        await self.db.flush()

    async def claim_next_sequence(
        self, conversation_id: UUID, message_id: UUID, created_at: datetime
    ) -> Optional[int]:
        """Allocate the next message sequence and point the cache at the message.

        A single UPDATE both increments ``last_sequence`` and rewrites the
        last-message cache, so the cache always names the highest sequence.
        Returns None when the conversation is missing or inactive.
        """
        stmt = (
            update(self.model_class)
            .where(
                self.model_class.id == conversation_id,
                self.model_class.is_active.is_(True),
            )
            .values(
                last_sequence=self.model_class.last_sequence + 1,
                last_message_id=message_id,
                last_message_at=created_at,
                updated_at=created_at,
            )
            .returning(self.model_class.last_sequence)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: UUID, limit: Optional[int] = 50, offset: int = 0
    ) -> List[ConversationResponse]:
        """Active conversations the user participates in, newest activity first.

        ``limit=None`` returns all of them.
        """
        query = (
            select(self.model_class)
            .join(ParticipantModel, ParticipantModel.conversation_id == self.model_class.id)
            .where(
                ParticipantModel.user_id == user_id,
                ParticipantModel.is_active.is_(True),
                self.model_class.is_active.is_(True),
            )
            .order_by(
                func.coalesce(
                    self.model_class.last_message_at, self.model_class.created_at
                ).desc()
            )
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return [self._to_pydantic(db_model) for db_model in result.scalars().all()]

    @staticmethod
    def _new_participant(
        user_id: UUID, role: ParticipantRole, now: datetime
    ) -> ParticipantModel:
        return ParticipantModel(
            id=uuid4(),
            user_id=user_id,
            role=role.value,
            is_active=True,
            joined_at=now,
            left_at=None,
            last_read_at=None,
            created_at=now,
            updated_at=now,
        )

    def _to_pydantic(self, db_model: Any) -> ConversationResponse:
        """Convert SQLAlchemy ConversationModel to Pydantic ConversationResponse.

        Only active participants are exposed.
        """
        participants = sorted(
            (p for p in db_model.participants if p.is_active),
            key=lambda p: (p.joined_at, p.user_id),
        )
        return ConversationResponse(
            id=db_model.id,
            conversation_type=db_model.conversation_type,
            title=db_model.title,
            description=db_model.description,
            group_image_url=db_model.group_image_url,
            created_by_id=db_model.created_by_id,
            is_active=db_model.is_active,
            last_message_id=db_model.last_message_id,
            last_message_at=db_model.last_message_at,
            created_at=db_model.created_at,
            updated_at=db_model.updated_at,
            participants=[ParticipantResponse.model_validate(p) for p in participants],
        )

    def _from_pydantic(self, pydantic_model: ConversationResponse) -> ConversationModel:
        """Convert Pydantic ConversationResponse to SQLAlchemy ConversationModel."""
        return ConversationModel(
            id=pydantic_model.id,
            conversation_type=pydantic_model.conversation_type.value,
            title=pydantic_model.title,
            description=pydantic_model.description,
            group_image_url=pydantic_model.group_image_url,
            created_by_id=pydantic_model.created_by_id,
            is_active=pydantic_model.is_active,
            last_message_id=pydantic_model.last_message_id,
            last_message_at=pydantic_model.last_message_at,
            last_sequence=0,
            created_at=pydantic_model.created_at,
            updated_at=pydantic_model.updated_at,
        )
