import logging
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from chat_core import config
from chat_core.clients.base_directory_client import BaseDirectoryClient
from chat_core.clients.base_event_publisher import BaseEventPublisher
from chat_core.database import transaction
from chat_core.errors import (
    ChatError,
    Conflict,
    InvalidMessage,
    InvalidReply,
    NotFound,
    NotMember,
    PermissionDenied,
    ValidationError,
)
from chat_core.models.api.conversations import ConversationType
from chat_core.models.api.events import (
    MessageDeleted,
    MessageEdited,
    MessageSent,
    MessagesCleared,
    ReactionChanged,
    TypingStarted,
    TypingStopped,
)
from chat_core.models.api.messages import (
    MessageResponse,
    MessageType,
    ReactionGroup,
    ReplyPreview,
)
from chat_core.models.api.participants import UserSummary
from chat_core.models.db.types import utcnow
from chat_core.repositories.conversation_repository import ConversationRepository
from chat_core.repositories.message_repository import MessageRepository
from chat_core.repositories.participant_repository import ParticipantRepository
from chat_core.repositories.reaction_repository import ReactionRepository
from chat_core.services.conversation_service import ConversationService
from chat_core.services.event_dispatch import publish_after_commit
from chat_core.services.read_tracker_service import ReadTrackerService

logger = logging.getLogger(__name__)


def message_type_for(media_url: Optional[str], media_type: Optional[str]) -> MessageType:
    """Classify a message by its attached media's MIME type."""
    if not media_url:
        return MessageType.TEXT
    mime = (media_type or "").lower()
    if mime == "image/gif":
        return MessageType.GIF
    if mime.startswith("image/"):
        return MessageType.IMAGE
    if mime.startswith("video/"):
        return MessageType.VIDEO
    if mime.startswith("audio/"):
        return MessageType.AUDIO
    return MessageType.FILE


class MessageService:
    """Service for sending, editing, deleting, listing and reacting to messages."""

    def __init__(
        self,
        db: AsyncSession,
        directory: BaseDirectoryClient,
        publisher: BaseEventPublisher,
    ):
        self.db = db
        self.directory = directory
        self.publisher = publisher
        self.conversation_repo = ConversationRepository(db)
        self.participant_repo = ParticipantRepository(db)
        self.message_repo = MessageRepository(db)
        self.reaction_repo = ReactionRepository(db)
        self.conversations = ConversationService(db, directory, publisher)
        self.read_tracker = ReadTrackerService(db)

    async def send(
        self,
        conversation_id: UUID,
        sender_id: UUID,
        content: Optional[str] = None,
        media_url: Optional[str] = None,
        media_type: Optional[str] = None,
        reply_to_message_id: Optional[UUID] = None,
    ) -> MessageResponse:
        """
        Send a message:

        1. Verify the sender is an active participant
        2. Validate the body and the reply target
        3. In one transaction: claim the next sequence (which also updates the
           conversation's last-message cache), store the message and move the
           sender's read watermark to it
        4. Publish MessageSent after the commit
        """
        await self.conversations.require_member(conversation_id, sender_id)
        content, media_url = _validate_body(content, media_url)
        if media_type is not None and len(media_type) > config.MAX_MEDIA_TYPE_LENGTH:
            raise InvalidMessage(
                f"media_type must be at most {config.MAX_MEDIA_TYPE_LENGTH} characters"
            )

        conversation = await self.conversation_repo.get_by_id(conversation_id)
        if conversation and conversation.conversation_type == ConversationType.DIRECT:
            other_id = next(
                (p.user_id for p in conversation.participants if p.user_id != sender_id),
                None,
            )
            if other_id and not await self.directory.can_message(sender_id, other_id):
                raise PermissionDenied("You cannot message this user")

        reply_target: Optional[MessageResponse] = None
        if reply_to_message_id is not None:
            reply_target = await self.message_repo.get_by_id(reply_to_message_id)
            if reply_target is None or reply_target.conversation_id != conversation_id:
                raise InvalidReply("Reply target is not part of this conversation")
            if reply_target.is_deleted:
                raise InvalidReply("Cannot reply to a deleted message")

        message_id = uuid4()
        now = utcnow()
        async with transaction(self.db):
            # The UPDATE holds the conversation row until commit, so a
            # concurrent leave either lands before (NotMember) or after us.
            sequence = await self.conversation_repo.claim_next_sequence(
                conversation_id, message_id, now
            )
            if sequence is None or not await self.participant_repo.is_active_member(
                conversation_id, sender_id
            ):
                raise NotMember("You are not a participant of this conversation")

            message = await self.message_repo.create(
                MessageResponse(
                    id=message_id,
                    conversation_id=conversation_id,
                    sequence=sequence,
                    sender_id=sender_id,
                    content=content,
                    message_type=message_type_for(media_url, media_type),
                    media_url=media_url,
                    media_type=media_type if media_url else None,
                    reply_to_message_id=reply_to_message_id,
                    is_edited=False,
                    edited_at=None,
                    is_deleted=False,
                    created_at=now,
                    updated_at=now,
                )
            )
            await self.read_tracker.advance(conversation_id, sender_id, now)

        logger.debug(
            "Message %s (#%d) sent to %s by %s",
            message.id,
            sequence,
            conversation_id,
            sender_id,
        )

        reply_sender: Optional[UserSummary] = None
        if reply_target is not None:
            message.reply_to = ReplyPreview(
                id=reply_target.id,
                sender_id=reply_target.sender_id,
                content=reply_target.content,
                media_url=reply_target.media_url,
                is_deleted=reply_target.is_deleted,
            )
            reply_sender = await self._resolve_quietly(reply_target.sender_id)

        await publish_after_commit(
            self.publisher,
            MessageSent(
                conversation_id=conversation_id,
                message=message,
                sender=await self._resolve_quietly(sender_id),
                reply_to_sender=reply_sender,
            ),
        )
        return message

    async def edit_message(
        self, message_id: UUID, requester_id: UUID, content: Optional[str]
    ) -> MessageResponse:
        """Replace a message's text. Sender only, and only while still a member."""
        async with transaction(self.db):
            model = await self.message_repo.get_model(message_id, for_update=True)
            if model is None or model.is_deleted:
                raise NotFound("Message not found")
            if model.sender_id != requester_id:
                raise PermissionDenied("Only the sender can edit a message")
            if not await self.participant_repo.is_active_member(
                model.conversation_id, requester_id
            ):
                raise NotMember("You are not a participant of this conversation")

            content, _ = _validate_body(content, model.media_url)
            await self.message_repo.edit(model, content)
            message = await self.message_repo.get_by_id(message_id)

        await publish_after_commit(
            self.publisher,
            MessageEdited(conversation_id=message.conversation_id, message=message),
        )
        return message

    async def soft_delete(self, message_id: UUID, requester_id: UUID) -> None:
        """
        Tombstone a message. Sender only.

        The conversation's last-message cache is left untouched; readers treat
        a deleted cached message as "no preview".
        """
        async with transaction(self.db):
            model = await self.message_repo.get_model(message_id, for_update=True)
            if model is None or model.is_deleted:
                raise NotFound("Message not found")
            if model.sender_id != requester_id:
                raise PermissionDenied("Only the sender can delete a message")
            conversation_id = model.conversation_id
            await self.message_repo.soft_delete(model)
        logger.info("Message %s deleted by %s", message_id, requester_id)

        await publish_after_commit(
            self.publisher,
            MessageDeleted(conversation_id=conversation_id, message_id=message_id),
        )

    async def clear_messages(self, conversation_id: UUID, requester_id: UUID) -> int:
        """
        Tombstone the whole history of a conversation. Any active participant
        may do it; replies keep resolving to the tombstones.

        Returns the number of messages deleted.
        """
        async with transaction(self.db):
            conversation = await self.conversation_repo.lock(conversation_id)
            if conversation is None:
                raise NotFound("Conversation not found")
            is_member = await self.participant_repo.is_active_member(
                conversation_id, requester_id
            )
            if not conversation.is_active or not is_member:
                raise NotMember("You are not a participant of this conversation")
            cleared = await self.message_repo.clear_conversation(conversation_id)
        logger.info(
            "%s cleared %d messages in conversation %s",
            requester_id,
            len(cleared),
            conversation_id,
        )

        if cleared:
            await publish_after_commit(
                self.publisher,
                MessagesCleared(
                    conversation_id=conversation_id,
                    cleared_by=requester_id,
                    message_count=len(cleared),
                ),
            )
        return len(cleared)

    async def list_page(
        self,
        conversation_id: UUID,
        requester_id: UUID,
        before_message_id: Optional[UUID] = None,
        limit: int = config.DEFAULT_PAGE_SIZE,
    ) -> List[MessageResponse]:
        """
        Get one page of history, oldest first:

        1. Verify the requester is an active participant
        2. Resolve the cursor message to its sequence
        3. Load the page and attach reply previews and grouped reactions
        """
        if limit < 1 or limit > config.MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {config.MAX_PAGE_SIZE}")

        await self.conversations.require_member(conversation_id, requester_id)

        before_sequence: Optional[int] = None
        if before_message_id is not None:
            cursor = await self.message_repo.get_by_id(before_message_id)
            if cursor is None or cursor.conversation_id != conversation_id:
                raise NotFound("Cursor message not found in this conversation")
            before_sequence = cursor.sequence

        messages = await self.message_repo.list_page(
            conversation_id, limit=limit, before_sequence=before_sequence
        )

        previews = await self.message_repo.get_reply_previews(
            [m.reply_to_message_id for m in messages if m.reply_to_message_id]
        )
        reactions = await self.reaction_repo.groups_for_messages([m.id for m in messages])
        for message in messages:
            if message.reply_to_message_id:
                message.reply_to = previews.get(message.reply_to_message_id)
            message.reactions = reactions.get(message.id, [])
        return messages

    async def toggle_reaction(
        self, message_id: UUID, user_id: UUID, emoji: str
    ) -> List[ReactionGroup]:
        """Add the reaction if absent, remove it if present; return the full set."""
        emoji = (emoji or "").strip()
        if not emoji or len(emoji) > config.MAX_EMOJI_LENGTH:
            raise ValidationError(
                f"Emoji must be 1 to {config.MAX_EMOJI_LENGTH} characters"
            )

        message = await self._get_visible_message(message_id)
        await self.conversations.require_member(message.conversation_id, user_id)

        try:
            async with transaction(self.db):
                added = await self.reaction_repo.toggle(message_id, user_id, emoji)
        except Conflict:
            # Same reaction inserted concurrently; toggling again removes it
            async with transaction(self.db):
                added = await self.reaction_repo.toggle(message_id, user_id, emoji)
        logger.debug(
            "Reaction %s %s on %s by %s",
            emoji,
            "added" if added else "removed",
            message_id,
            user_id,
        )

        reactions = await self.reaction_repo.list_groups(message_id)
        await publish_after_commit(
            self.publisher,
            ReactionChanged(
                conversation_id=message.conversation_id,
                message_id=message_id,
                reactions=reactions,
            ),
        )
        return reactions

    async def get_reactions(
        self, message_id: UUID, requester_id: UUID
    ) -> List[ReactionGroup]:
        message = await self._get_visible_message(message_id)
        await self.conversations.require_member(message.conversation_id, requester_id)
        return await self.reaction_repo.list_groups(message_id)

    async def typing_started(self, conversation_id: UUID, user_id: UUID) -> None:
        await self.conversations.require_member(conversation_id, user_id)
        await publish_after_commit(
            self.publisher,
            TypingStarted(conversation_id=conversation_id, user_id=user_id),
        )

    async def typing_stopped(self, conversation_id: UUID, user_id: UUID) -> None:
        await self.conversations.require_member(conversation_id, user_id)
        await publish_after_commit(
            self.publisher,
            TypingStopped(conversation_id=conversation_id, user_id=user_id),
        )

    async def _get_visible_message(self, message_id: UUID) -> MessageResponse:
        message = await self.message_repo.get_by_id(message_id)
        if message is None or message.is_deleted:
            raise NotFound("Message not found")
        return message

    async def _resolve_quietly(self, user_id: UUID) -> Optional[UserSummary]:
        """Directory lookup for event payloads; a miss only drops the summary."""
        try:
            return await self.directory.resolve_user(user_id)
        except ChatError as e:
            logger.warning("Could not resolve user %s for event payload: %s", user_id, e)
            return None


def _validate_body(
    content: Optional[str], media_url: Optional[str]
) -> Tuple[Optional[str], Optional[str]]:
    """Normalize blank fields to None and require text or media."""
    if content is not None and not content.strip():
        content = None
    if media_url is not None:
        media_url = media_url.strip() or None

    if content is None and media_url is None:
        raise InvalidMessage("A message needs text or media")
    if content is not None and len(content) > config.MAX_CONTENT_LENGTH:
        raise InvalidMessage(
            f"Message content must be at most {config.MAX_CONTENT_LENGTH} characters"
        )
    if media_url is not None and len(media_url) > config.MAX_URL_LENGTH:
        raise InvalidMessage(
            f"media_url must be at most {config.MAX_URL_LENGTH} characters"
        )
    return content, media_url
