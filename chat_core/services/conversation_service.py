import logging
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from chat_core import config
from chat_core.clients.base_directory_client import BaseDirectoryClient
from chat_core.clients.base_event_publisher import BaseEventPublisher
from chat_core.database import transaction
from chat_core.errors import (
    AlreadyMember,
    Conflict,
    NotFound,
    NotMember,
    PermissionDenied,
    Unavailable,
    ValidationError,
)
from chat_core.models.api.conversations import (
    ConversationResponse,
    ConversationSummary,
    ConversationType,
)
from chat_core.models.api.events import ParticipantChanged, ParticipantChangeType
from chat_core.models.api.participants import ParticipantResponse, ParticipantRole
from chat_core.models.db.conversation_model import ConversationModel
from chat_core.models.db.participant_model import ParticipantModel
from chat_core.repositories.conversation_repository import ConversationRepository
from chat_core.repositories.message_repository import MessageRepository
from chat_core.repositories.participant_repository import ParticipantRepository
from chat_core.services.event_dispatch import publish_after_commit

logger = logging.getLogger(__name__)


class ConversationService:
    """Service for conversation lifecycle and roster management."""

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

    async def get_or_create_direct(
        self, user_a: UUID, user_b: UUID
    ) -> ConversationResponse:
        """
        Return the active direct conversation between two users, creating it
        if needed:

        1. Verify both users exist and may message each other
        2. Look up the existing conversation for the pair
        3. Otherwise insert it; a concurrent caller that wins the pair's
           unique constraint makes us re-read instead of failing
        """
        if user_a == user_b:
            raise ValidationError("Cannot start a direct conversation with yourself")

        await self.directory.resolve_user(user_a)
        await self.directory.resolve_user(user_b)
        if not await self.directory.can_message(user_a, user_b):
            raise PermissionDenied("You cannot message this user")

        for attempt in range(1, config.DIRECT_CREATE_ATTEMPTS + 1):
            existing = await self.conversation_repo.get_direct(user_a, user_b)
            if existing:
                return existing

            try:
                async with transaction(self.db):
                    conversation = await self.conversation_repo.create_direct(
                        user_a, user_b
                    )
            except Conflict:
                logger.info(
                    "Direct conversation for %s/%s created concurrently, "
                    "re-reading (attempt %d)",
                    user_a,
                    user_b,
                    attempt,
                )
                continue

            logger.info(
                "Created direct conversation %s between %s and %s",
                conversation.id,
                user_a,
                user_b,
            )
            return conversation

        raise Unavailable("Could not resolve the direct conversation, try again")

    async def create_group(
        self,
        creator_id: UUID,
        title: str,
        member_ids: Sequence[UUID],
        description: Optional[str] = None,
        group_image_url: Optional[str] = None,
    ) -> ConversationResponse:
        """Create a group with the creator as owner and the others as members."""
        title = _validate_title(title)
        _validate_length("description", description, config.MAX_DESCRIPTION_LENGTH)
        _validate_length("group_image_url", group_image_url, config.MAX_URL_LENGTH)

        members: List[UUID] = []
        for user_id in member_ids:
            if user_id != creator_id and user_id not in members:
                members.append(user_id)
        if not members:
            raise ValidationError("A group needs at least one member besides its creator")

        for user_id in [creator_id, *members]:
            await self.directory.resolve_user(user_id)

        async with transaction(self.db):
            conversation = await self.conversation_repo.create_group(
                creator_id=creator_id,
                title=title,
                description=description,
                group_image_url=group_image_url,
                member_ids=members,
            )
        logger.info(
            "Group %s created by %s with %d members",
            conversation.id,
            creator_id,
            len(members),
        )

        for user_id in members:
            await publish_after_commit(
                self.publisher,
                ParticipantChanged(
                    conversation_id=conversation.id,
                    change_type=ParticipantChangeType.ADDED,
                    user_id=user_id,
                    actor_id=creator_id,
                ),
            )
        return conversation

    async def add_participant(
        self, conversation_id: UUID, actor_id: UUID, new_user_id: UUID
    ) -> ParticipantResponse:
        """Add a user to a group. Owners and admins only."""
        await self.directory.resolve_user(new_user_id)

        async with transaction(self.db):
            conversation = await self._lock(conversation_id)
            actor = await self._require_participant(conversation, actor_id)
            _require_group(conversation)
            if actor.role not in (ParticipantRole.OWNER.value, ParticipantRole.ADMIN.value):
                raise PermissionDenied("Only the owner or an admin can add participants")

            existing = await self.participant_repo.get_row(conversation_id, new_user_id)
            if existing is not None and existing.is_active:
                raise AlreadyMember("User is already a participant")

            participant = await self.participant_repo.add_or_reactivate(
                conversation_id, new_user_id
            )
        logger.info("%s added %s to group %s", actor_id, new_user_id, conversation_id)

        await publish_after_commit(
            self.publisher,
            ParticipantChanged(
                conversation_id=conversation_id,
                change_type=ParticipantChangeType.ADDED,
                user_id=new_user_id,
                actor_id=actor_id,
            ),
        )
        return participant

    async def leave(self, conversation_id: UUID, user_id: UUID) -> None:
        """
        Remove the caller from the conversation:

        - a direct conversation is closed for both users and its pair released
        - a departing group owner hands ownership to the longest-tenured
          remaining participant (tie-break: lowest user id)
        - the last participant out deactivates the group

        All of it happens under the conversation row lock in one transaction.
        """
        new_owner_id: Optional[UUID] = None
        removed: List[UUID] = [user_id]

        async with transaction(self.db):
            conversation = await self._lock(conversation_id)
            row = await self._require_participant(conversation, user_id)

            if conversation.conversation_type == ConversationType.DIRECT.value:
                for participant in await self.participant_repo.list_active(
                    conversation_id
                ):
                    if participant.user_id != user_id:
                        removed.append(participant.user_id)
                    await self.participant_repo.deactivate(participant)
                await self.conversation_repo.deactivate(conversation)
            else:
                was_owner = row.role == ParticipantRole.OWNER.value
                await self.participant_repo.deactivate(row)
                remaining = await self.participant_repo.list_active(conversation_id)
                if not remaining:
                    await self.conversation_repo.deactivate(conversation)
                elif was_owner:
                    successor = remaining[0]
                    await self.participant_repo.set_role(successor, ParticipantRole.OWNER)
                    new_owner_id = successor.user_id
            deactivated = not conversation.is_active

        logger.info(
            "%s left conversation %s%s",
            user_id,
            conversation_id,
            " (conversation closed)" if deactivated else "",
        )

        for removed_id in removed:
            await publish_after_commit(
                self.publisher,
                ParticipantChanged(
                    conversation_id=conversation_id,
                    change_type=ParticipantChangeType.REMOVED,
                    user_id=removed_id,
                    actor_id=user_id,
                ),
            )
        if new_owner_id is not None:
            logger.info(
                "Ownership of %s passed from %s to %s",
                conversation_id,
                user_id,
                new_owner_id,
            )
            await publish_after_commit(
                self.publisher,
                ParticipantChanged(
                    conversation_id=conversation_id,
                    change_type=ParticipantChangeType.OWNERSHIP_TRANSFERRED,
                    user_id=user_id,
                    new_owner_id=new_owner_id,
                ),
            )

    async def kick(
        self, conversation_id: UUID, actor_id: UUID, target_user_id: UUID
    ) -> None:
        """Remove another participant from a group. Owner only."""
        if actor_id == target_user_id:
            raise ValidationError("Use leave to remove yourself")

        async with transaction(self.db):
            conversation = await self._lock(conversation_id)
            actor = await self._require_participant(conversation, actor_id)
            _require_group(conversation)
            if actor.role != ParticipantRole.OWNER.value:
                raise PermissionDenied("Only the owner can remove participants")

            target = await self._require_target(conversation_id, target_user_id)
            await self.participant_repo.deactivate(target)
        logger.info("%s removed %s from group %s", actor_id, target_user_id, conversation_id)

        await publish_after_commit(
            self.publisher,
            ParticipantChanged(
                conversation_id=conversation_id,
                change_type=ParticipantChangeType.REMOVED,
                user_id=target_user_id,
                actor_id=actor_id,
            ),
        )

    async def is_member(self, conversation_id: UUID, user_id: UUID) -> bool:
        return await self.participant_repo.is_active_member(conversation_id, user_id)

    async def require_member(self, conversation_id: UUID, user_id: UUID) -> None:
        if not await self.is_member(conversation_id, user_id):
            raise NotMember("You are not a participant of this conversation")

    async def get_conversation(
        self, conversation_id: UUID, requester_id: UUID
    ) -> ConversationResponse:
        conversation = await self.conversation_repo.get_by_id(conversation_id)
        if not conversation:
            raise NotFound("Conversation not found")
        await self.require_member(conversation_id, requester_id)
        return conversation

    async def list_conversations(
        self, user_id: UUID, limit: int = 50, offset: int = 0
    ) -> List[ConversationSummary]:
        """
        List the user's active conversations, most recent activity first:

        1. Fetch the conversations with their active rosters
        2. Resolve last-message previews (a deleted cached message has none)
        3. Attach unread badges from a single aggregate query
        """
        if limit < 1 or limit > config.MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {config.MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValidationError("Offset must be non-negative")

        conversations = await self.conversation_repo.list_for_user(
            user_id, limit=limit, offset=offset
        )
        return await self._summaries(user_id, conversations)

    async def search_conversations(
        self, user_id: UUID, query: str, limit: int = 50
    ) -> List[ConversationSummary]:
        """
        Filter the user's active conversations by a case-insensitive substring
        of the group title or of another participant's username or display
        name. Results keep the conversation-list order.
        """
        needle = (query or "").strip().lower()
        if not needle:
            raise ValidationError("Search query is required")
        if limit < 1 or limit > config.MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {config.MAX_PAGE_SIZE}")

        matches: List[ConversationResponse] = []
        for conversation in await self.conversation_repo.list_for_user(
            user_id, limit=None
        ):
            if await self._matches(conversation, user_id, needle):
                matches.append(conversation)
                if len(matches) == limit:
                    break
        return await self._summaries(user_id, matches)

    async def _matches(
        self, conversation: ConversationResponse, user_id: UUID, needle: str
    ) -> bool:
        if conversation.title and needle in conversation.title.lower():
            return True
        for participant in conversation.participants:
            if participant.user_id == user_id:
                continue
            try:
                user = await self.directory.resolve_user(participant.user_id)
            except NotFound:
                continue
            if needle in user.username.lower():
                return True
            if user.display_name and needle in user.display_name.lower():
                return True
        return False

    async def _summaries(
        self, user_id: UUID, conversations: List[ConversationResponse]
    ) -> List[ConversationSummary]:
        previews = await self.message_repo.get_previews(
            [c.last_message_id for c in conversations if c.last_message_id]
        )
        unread = await self.message_repo.unread_counts_for_user(user_id)

        return [
            ConversationSummary(
                conversation=conversation,
                last_message=previews.get(conversation.last_message_id)
                if conversation.last_message_id
                else None,
                unread_count=unread.get(conversation.id, 0),
            )
            for conversation in conversations
        ]

    async def change_role(
        self,
        conversation_id: UUID,
        actor_id: UUID,
        target_user_id: UUID,
        role: ParticipantRole,
    ) -> ParticipantResponse:
        """Promote a member to admin or demote an admin. Owner only."""
        if role == ParticipantRole.OWNER:
            raise ValidationError("Use ownership transfer to assign the owner role")
        if actor_id == target_user_id:
            raise ValidationError("The owner cannot change their own role")

        async with transaction(self.db):
            conversation = await self._lock(conversation_id)
            actor = await self._require_participant(conversation, actor_id)
            _require_group(conversation)
            if actor.role != ParticipantRole.OWNER.value:
                raise PermissionDenied("Only the owner can change roles")

            target = await self._require_target(conversation_id, target_user_id)
            await self.participant_repo.set_role(target, role)
            participant = ParticipantResponse.model_validate(target)

        await publish_after_commit(
            self.publisher,
            ParticipantChanged(
                conversation_id=conversation_id,
                change_type=ParticipantChangeType.ROLE_CHANGED,
                user_id=target_user_id,
                actor_id=actor_id,
            ),
        )
        return participant

    async def transfer_ownership(
        self, conversation_id: UUID, actor_id: UUID, new_owner_id: UUID
    ) -> ConversationResponse:
        """Hand the owner role to another participant; the old owner becomes admin."""
        if actor_id == new_owner_id:
            raise ValidationError("You already own this group")

        async with transaction(self.db):
            conversation = await self._lock(conversation_id)
            actor = await self._require_participant(conversation, actor_id)
            _require_group(conversation)
            if actor.role != ParticipantRole.OWNER.value:
                raise PermissionDenied("Only the owner can transfer ownership")

            target = await self._require_target(conversation_id, new_owner_id)
            await self.participant_repo.set_role(actor, ParticipantRole.ADMIN)
            await self.participant_repo.set_role(target, ParticipantRole.OWNER)
        logger.info(
            "Ownership of %s transferred from %s to %s",
            conversation_id,
            actor_id,
            new_owner_id,
        )

        await publish_after_commit(
            self.publisher,
            ParticipantChanged(
                conversation_id=conversation_id,
                change_type=ParticipantChangeType.OWNERSHIP_TRANSFERRED,
                user_id=actor_id,
                new_owner_id=new_owner_id,
                actor_id=actor_id,
            ),
        )
        return await self._reload(conversation_id)

    async def update_group_info(
        self,
        conversation_id: UUID,
        actor_id: UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
        group_image_url: Optional[str] = None,
    ) -> ConversationResponse:
        """Update group details. Owners and admins only; omitted fields are kept."""
        if title is not None:
            title = _validate_title(title)
        _validate_length("description", description, config.MAX_DESCRIPTION_LENGTH)
        _validate_length("group_image_url", group_image_url, config.MAX_URL_LENGTH)

        async with transaction(self.db):
            conversation = await self._lock(conversation_id)
            actor = await self._require_participant(conversation, actor_id)
            _require_group(conversation)
            if actor.role not in (ParticipantRole.OWNER.value, ParticipantRole.ADMIN.value):
                raise PermissionDenied("Only the owner or an admin can edit the group")

            await self.conversation_repo.update_group_info(
                conversation,
                title=title,
                description=description,
                group_image_url=group_image_url,
            )
        return await self._reload(conversation_id)

    async def _lock(self, conversation_id: UUID) -> ConversationModel:
        conversation = await self.conversation_repo.lock(conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found")
        return conversation

    async def _require_participant(
        self, conversation: ConversationModel, user_id: UUID
    ) -> ParticipantModel:
        row = await self.participant_repo.get_row(conversation.id, user_id)
        if not conversation.is_active or row is None or not row.is_active:
            raise NotMember("You are not a participant of this conversation")
        return row

    async def _require_target(
        self, conversation_id: UUID, user_id: UUID
    ) -> ParticipantModel:
        row = await self.participant_repo.get_row(conversation_id, user_id)
        if row is None or not row.is_active:
            raise NotFound("Participant not found")
        return row

    async def _reload(self, conversation_id: UUID) -> ConversationResponse:
        conversation = await self.conversation_repo.get_by_id(conversation_id)
        if not conversation:
            raise NotFound("Conversation not found")
        return conversation


def _require_group(conversation: ConversationModel) -> None:
    if conversation.conversation_type != ConversationType.GROUP.value:
        raise PermissionDenied("Direct conversations have a fixed pair of participants")


def _validate_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Group title is required")
    if len(title) > config.MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Group title must be at most {config.MAX_TITLE_LENGTH} characters"
        )
    return title


def _validate_length(field: str, value: Optional[str], limit: int) -> None:
    if value is not None and len(value) > limit:
        raise ValidationError(f"{field} must be at most {limit} characters")
