from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from chat_core.models.api.conversations import MessagePreview
from chat_core.models.api.messages import MessageResponse, ReplyPreview
from chat_core.models.db.conversation_model import ConversationModel
from chat_core.models.db.message_model import MessageModel
from chat_core.models.db.participant_model import ParticipantModel
from chat_core.models.db.types import utcnow
from chat_core.repositories.base_repository import BaseRepository


class MessageRepository(BaseRepository[MessageModel, MessageResponse]):
    """Repository for messages. Append-only; deletion is a tombstone flag."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, MessageModel)

    async def list_page(
        self,
        conversation_id: UUID,
        limit: int,
        before_sequence: Optional[int] = None,
    ) -> List[MessageResponse]:
        """Get up to ``limit`` visible messages preceding the cursor, oldest first.

        Paging walks the per-conversation sequence downward, so rows inserted
        after the first page never shift later pages.
        """
        query = select(self.model_class).where(
            self.model_class.conversation_id == conversation_id,
            self.model_class.is_deleted.is_(False),
        )
        if before_sequence is not None:
            query = query.where(self.model_class.sequence < before_sequence)
        query = query.order_by(self.model_class.sequence.desc()).limit(limit)

        result = await self.db.execute(query)
        db_models = list(result.scalars().all())
        db_models.reverse()
        return [self._to_pydantic(db_model) for db_model in db_models]

    async def get_reply_previews(self, ids: List[UUID]) -> Dict[UUID, ReplyPreview]:
        """Resolve reply targets, including tombstoned ones."""
        if not ids:
            return {}
        query = select(self.model_class).where(self.model_class.id.in_(set(ids)))
        result = await self.db.execute(query)
        previews = {}
        for db_model in result.scalars().all():
            previews[db_model.id] = ReplyPreview(
                id=db_model.id,
                sender_id=db_model.sender_id,
                content=None if db_model.is_deleted else db_model.content,
                media_url=None if db_model.is_deleted else db_model.media_url,
                is_deleted=db_model.is_deleted,
            )
        return previews

    async def get_previews(self, ids: List[UUID]) -> Dict[UUID, MessagePreview]:
        """Conversation-list previews. Deleted messages yield no preview."""
        if not ids:
            return {}
        query = select(self.model_class).where(
            self.model_class.id.in_(set(ids)),
            self.model_class.is_deleted.is_(False),
        )
        result = await self.db.execute(query)
        return {
            db_model.id: MessagePreview(
                id=db_model.id,
                sender_id=db_model.sender_id,
                content=db_model.content,
                message_type=db_model.message_type,
                created_at=db_model.created_at,
            )
            for db_model in result.scalars().all()
        }

    async def soft_delete(self, db_model: MessageModel) -> None:
        now = utcnow()
        db_model.is_deleted = True
        db_model.deleted_at = now
        db_model.updated_at = now
        await self.db.flush()

    async def clear_conversation(self, conversation_id: UUID) -> List[UUID]:
        """Tombstone every visible message of a conversation in one UPDATE.

        Returns the ids that were deleted.
        """
        now = utcnow()
        stmt = (
            update(self.model_class)
            .where(
                self.model_class.conversation_id == conversation_id,
                self.model_class.is_deleted.is_(False),
            )
            .values(is_deleted=True, deleted_at=now, updated_at=now)
            .returning(self.model_class.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def edit(self, db_model: MessageModel, content: Optional[str]) -> None:
        now = utcnow()
        db_model.content = content
        db_model.is_edited = True
        db_model.edited_at = now
        db_model.updated_at = now
        await self.db.flush()

    async def count_unread(
        self, conversation_id: UUID, user_id: UUID, watermark: Optional[datetime]
    ) -> int:
        """Count visible messages from others created after the watermark.

        Served by the (conversation_id, created_at) index.
        """
        query = select(func.count(self.model_class.id)).where(
            self.model_class.conversation_id == conversation_id,
            self.model_class.sender_id != user_id,
            self.model_class.is_deleted.is_(False),
        )
        if watermark is not None:
            query = query.where(self.model_class.created_at > watermark)
        result = await self.db.execute(query)
        return int(result.scalar_one())

    async def unread_counts_for_user(self, user_id: UUID) -> Dict[UUID, int]:
        """Unread count for every active conversation of the user, in one query."""
        unread_join = and_(
            self.model_class.conversation_id == ParticipantModel.conversation_id,
            self.model_class.sender_id != user_id,
            self.model_class.is_deleted.is_(False),
            or_(
                ParticipantModel.last_read_at.is_(None),
                self.model_class.created_at > ParticipantModel.last_read_at,
            ),
        )
        query = (
            select(ParticipantModel.conversation_id, func.count(self.model_class.id))
            .join(
                ConversationModel,
                ConversationModel.id == ParticipantModel.conversation_id,
            )
            .outerjoin(self.model_class, unread_join)
            .where(
                ParticipantModel.user_id == user_id,
                ParticipantModel.is_active.is_(True),
                ConversationModel.is_active.is_(True),
            )
            .group_by(ParticipantModel.conversation_id)
        )
        result = await self.db.execute(query)
        return {conversation_id: int(count) for conversation_id, count in result.all()}

    def _to_pydantic(self, db_model: Any) -> MessageResponse:
        """Convert SQLAlchemy MessageModel to Pydantic MessageResponse."""
        return MessageResponse(
            id=db_model.id,
            conversation_id=db_model.conversation_id,
            sequence=db_model.sequence,
            sender_id=db_model.sender_id,
            content=db_model.content,
            message_type=db_model.message_type,
            media_url=db_model.media_url,
            media_type=db_model.media_type,
            reply_to_message_id=db_model.reply_to_message_id,
            is_edited=db_model.is_edited,
            edited_at=db_model.edited_at,
            is_deleted=db_model.is_deleted,
            created_at=db_model.created_at,
            updated_at=db_model.updated_at,
        )

    def _from_pydantic(self, pydantic_model: MessageResponse) -> MessageModel:
        """Convert Pydantic MessageResponse to SQLAlchemy MessageModel."""
        return MessageModel(
            id=pydantic_model.id,
            conversation_id=pydantic_model.conversation_id,
            sequence=pydantic_model.sequence,
            sender_id=pydantic_model.sender_id,
            content=pydantic_model.content,
            message_type=pydantic_model.message_type.value,
            media_url=pydantic_model.media_url,
            media_type=pydantic_model.media_type,
            reply_to_message_id=pydantic_model.reply_to_message_id,
            is_edited=pydantic_model.is_edited,
            edited_at=pydantic_model.edited_at,
            is_deleted=pydantic_model.is_deleted,
            deleted_at=None,
            created_at=pydantic_model.created_at,
            updated_at=pydantic_model.updated_at,
        )
