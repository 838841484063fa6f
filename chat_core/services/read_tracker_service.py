import logging
from datetime import datetime, timezone
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from chat_core.clients.base_event_publisher import BaseEventPublisher
from chat_core.database import transaction
from chat_core.errors import NotMember
from chat_core.models.api.conversations import ReadStateResponse
from chat_core.models.api.events import ConversationRead
from chat_core.models.db.types import utcnow
from chat_core.repositories.message_repository import MessageRepository
from chat_core.repositories.participant_repository import ParticipantRepository
from chat_core.services.event_dispatch import publish_after_commit

logger = logging.getLogger(__name__)


class ReadTrackerService:
    """Service for per-participant read watermarks and unread counts."""

    def __init__(
        self, db: AsyncSession, publisher: Optional[BaseEventPublisher] = None
    ):
        self.db = db
        self.publisher = publisher
        self.participant_repo = ParticipantRepository(db)
        self.message_repo = MessageRepository(db)

    async def mark_read(
        self,
        conversation_id: UUID,
        user_id: UUID,
        upto: Optional[datetime] = None,
    ) -> ReadStateResponse:
        """
        Mark the conversation read for the user:

        1. Verify the user is an active participant
        2. Clamp the watermark to now (a future watermark would hide messages
           that have not been written yet)
        3. Move last_read_at forward, never backward
        4. Tell the conversation, when the watermark moved
        """
        if not await self.participant_repo.is_active_member(conversation_id, user_id):
            raise NotMember("You are not a participant of this conversation")

        now = utcnow()
        watermark = now if upto is None else min(_as_utc(upto), now)

        async with transaction(self.db):
            moved = await self.participant_repo.advance_read_watermark(
                conversation_id, user_id, watermark
            )
        logger.debug(
            "Read watermark for %s in %s %s",
            user_id,
            conversation_id,
            "advanced" if moved else "unchanged",
        )

        if moved and self.publisher is not None:
            await publish_after_commit(
                self.publisher,
                ConversationRead(
                    conversation_id=conversation_id,
                    user_id=user_id,
                    last_read_at=watermark,
                ),
            )

        return await self.read_state(conversation_id, user_id)

    async def advance(
        self, conversation_id: UUID, user_id: UUID, watermark: datetime
    ) -> None:
        """Advance the watermark inside the caller's transaction."""
        await self.participant_repo.advance_read_watermark(
            conversation_id, user_id, watermark
        )

    async def read_state(self, conversation_id: UUID, user_id: UUID) -> ReadStateResponse:
        row = await self.participant_repo.get_row(conversation_id, user_id)
        if row is None or not row.is_active:
            raise NotMember("You are not a participant of this conversation")
        unread = await self.message_repo.count_unread(
            conversation_id, user_id, row.last_read_at
        )
        return ReadStateResponse(
            conversation_id=conversation_id,
            last_read_at=row.last_read_at,
            unread_count=unread,
        )

    async def unread_count(self, conversation_id: UUID, user_id: UUID) -> int:
        """Messages from others, not deleted, newer than the user's watermark."""
        if not await self.participant_repo.is_active_member(conversation_id, user_id):
            raise NotMember("You are not a participant of this conversation")
        state = await self.read_state(conversation_id, user_id)
        return state.unread_count

    async def unread_counts_for_user(self, user_id: UUID) -> Dict[UUID, int]:
        return await self.message_repo.unread_counts_for_user(user_id)

    async def unread_total(self, user_id: UUID) -> int:
        counts = await self.unread_counts_for_user(user_id)
        return sum(counts.values())


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
