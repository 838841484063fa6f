from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from chat_core.clients.base_event_publisher import BaseEventPublisher
from chat_core.clients.memory_event_publisher import InMemoryEventPublisher
from chat_core.clients.static_directory_client import StaticDirectoryClient
from chat_core.errors import (
    InvalidMessage,
    InvalidReply,
    NotFound,
    NotMember,
    PermissionDenied,
    ValidationError,
)
from chat_core.models.api.conversations import ConversationResponse
from chat_core.models.api.events import (
    MessageDeleted,
    MessageEdited,
    MessageSent,
    MessagesCleared,
    ReactionChanged,
    TypingStarted,
    TypingStopped,
)
from chat_core.models.api.messages import MessageType
from chat_core.services.conversation_service import ConversationService
from chat_core.services.message_service import MessageService, message_type_for
from chat_core.services.read_tracker_service import ReadTrackerService
from tests.conftest import ALICE, BOB, CAROL, MALLORY


@pytest.fixture
async def group(conversation_service: ConversationService) -> ConversationResponse:
    return await conversation_service.create_group(ALICE, "Chat", [BOB, CAROL])


class TestMessageTypeFor:
    @pytest.mark.parametrize(
        "media_url, media_type, expected",
        [
            (None, None, MessageType.TEXT),
            (None, "image/png", MessageType.TEXT),
            ("https://cdn/x.png", "image/png", MessageType.IMAGE),
            ("https://cdn/x.gif", "IMAGE/GIF", MessageType.GIF),
            ("https://cdn/x.mp4", "video/mp4", MessageType.VIDEO),
            ("https://cdn/x.ogg", "audio/ogg", MessageType.AUDIO),
            ("https://cdn/x.pdf", "application/pdf", MessageType.FILE),
            ("https://cdn/x.bin", None, MessageType.FILE),
        ],
    )
    def test_classification(self, media_url, media_type, expected) -> None:
        assert message_type_for(media_url, media_type) == expected


class TestSend:
    @pytest.mark.asyncio
    async def test_sent_message_is_last_in_page(
        self,
        message_service: MessageService,
        publisher: InMemoryEventPublisher,
        group: ConversationResponse,
    ) -> None:
        await message_service.send(group.id, BOB, content="first")
        sent = await message_service.send(group.id, ALICE, content="hello")

        page = await message_service.list_page(group.id, CAROL)
        assert page[-1].id == sent.id
        assert page[-1].content == "hello"
        assert [m.sequence for m in page] == [1, 2]

        event = publisher.of_type(MessageSent)[-1]
        assert event.message.id == sent.id
        assert event.sender.id == ALICE

    @pytest.mark.asyncio
    async def test_send_updates_last_message_cache(
        self,
        message_service: MessageService,
        conversation_service: ConversationService,
        group: ConversationResponse,
    ) -> None:
        sent = await message_service.send(group.id, BOB, content="latest")
        conversation = await conversation_service.get_conversation(group.id, ALICE)
        assert conversation.last_message_id == sent.id
        assert conversation.last_message_at == sent.created_at

    @pytest.mark.asyncio
    async def test_media_only_message(
        self, message_service: MessageService, group: ConversationResponse
    ) -> None:
        sent = await message_service.send(
            group.id, ALICE, media_url="https://cdn/cat.gif", media_type="image/gif"
        )
        assert sent.content is None
        assert sent.message_type == MessageType.GIF

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content, media_url", [(None, None), ("", None), ("   ", ""), ("x" * 2001, None)]
    )
    async def test_invalid_body(
        self,
        message_service: MessageService,
        group: ConversationResponse,
        content,
        media_url,
    ) -> None:
        with pytest.raises(InvalidMessage):
            await message_service.send(group.id, ALICE, content=content, media_url=media_url)
        assert await message_service.list_page(group.id, ALICE) == []

    @pytest.mark.asyncio
    async def test_non_member_cannot_send(
        self, message_service: MessageService, group: ConversationResponse
    ) -> None:
        with pytest.raises(NotMember):
            await message_service.send(group.id, MALLORY, content="let me in")

    @pytest.mark.asyncio
    async def test_reply_within_conversation(
        self,
        message_service: MessageService,
        publisher: InMemoryEventPublisher,
        group: ConversationResponse,
    ) -> None:
        question = await message_service.send(group.id, BOB, content="lunch?")
        answer = await message_service.send(
            group.id, ALICE, content="yes", reply_to_message_id=question.id
        )

        assert answer.reply_to.id == question.id
        assert publisher.of_type(MessageSent)[-1].reply_to_sender.id == BOB

        page = await message_service.list_page(group.id, CAROL)
        assert page[-1].reply_to.content == "lunch?"

    @pytest.mark.asyncio
    async def test_reply_across_conversations_rejected(
        self,
        message_service: MessageService,
        conversation_service: ConversationService,
        group: ConversationResponse,
    ) -> None:
        other = await conversation_service.get_or_create_direct(ALICE, BOB)
        elsewhere = await message_service.send(other.id, BOB, content="psst")

        with pytest.raises(InvalidReply):
            await message_service.send(
                group.id, ALICE, content="re", reply_to_message_id=elsewhere.id
            )
        with pytest.raises(InvalidReply):
            await message_service.send(
                group.id, ALICE, content="re", reply_to_message_id=uuid4()
            )

    @pytest.mark.asyncio
    async def test_reply_target_deleted_later_shows_tombstone(
        self, message_service: MessageService, group: ConversationResponse
    ) -> None:
        original = await message_service.send(group.id, BOB, content="regret")
        await message_service.send(
            group.id, ALICE, content="what?", reply_to_message_id=original.id
        )
        await message_service.soft_delete(original.id, BOB)

        [reply] = await message_service.list_page(group.id, CAROL)
        assert reply.reply_to.is_deleted
        assert reply.reply_to.content is None

    @pytest.mark.asyncio
    async def test_blocked_direct_send_denied(
        self,
        message_service: MessageService,
        conversation_service: ConversationService,
        directory: StaticDirectoryClient,
    ) -> None:
        direct = await conversation_service.get_or_create_direct(ALICE, BOB)
        directory.block(ALICE, BOB)

        with pytest.raises(PermissionDenied):
            await message_service.send(direct.id, BOB, content="hey")

    @pytest.mark.asyncio
    async def test_publisher_failure_does_not_fail_send(
        self,
        test_db: AsyncSession,
        directory: StaticDirectoryClient,
        group: ConversationResponse,
    ) -> None:
        failing = AsyncMock(spec=BaseEventPublisher)
        failing.publish.side_effect = RuntimeError("transport down")
        service = MessageService(test_db, directory, failing)

        sent = await service.send(group.id, ALICE, content="still stored")

        failing.publish.assert_awaited_once()
        page = await service.list_page(group.id, BOB)
        assert page[-1].id == sent.id


class TestEditAndDelete:
    @pytest.mark.asyncio
    async def test_sender_edits(
        self,
        message_service: MessageService,
        publisher: InMemoryEventPublisher,
        group: ConversationResponse,
    ) -> None:
        sent = await message_service.send(group.id, ALICE, content="helo")
        edited = await message_service.edit_message(sent.id, ALICE, "hello")

        assert edited.content == "hello"
        assert edited.is_edited
        assert edited.edited_at is not None
        assert publisher.of_type(MessageEdited)[-1].message.id == sent.id

    @pytest.mark.asyncio
    async def test_edit_rules(
        self, message_service: MessageService, group: ConversationResponse
    ) -> None:
        sent = await message_service.send(group.id, ALICE, content="mine")

        with pytest.raises(PermissionDenied):
            await message_service.edit_message(sent.id, BOB, "hijack")
        with pytest.raises(InvalidMessage):
            await message_service.edit_message(sent.id, ALICE, "  ")
        with pytest.raises(NotFound):
            await message_service.edit_message(uuid4(), ALICE, "nothing")

        [stored] = await message_service.list_page(group.id, ALICE)
        assert stored.content == "mine"
        assert not stored.is_edited

    @pytest.mark.asyncio
    async def test_soft_delete_hides_message(
        self,
        message_service: MessageService,
        publisher: InMemoryEventPublisher,
        group: ConversationResponse,
    ) -> None:
        kept = await message_service.send(group.id, ALICE, content="keep")
        gone = await message_service.send(group.id, ALICE, content="remove")

        with pytest.raises(PermissionDenied):
            await message_service.soft_delete(gone.id, BOB)
        await message_service.soft_delete(gone.id, ALICE)

        page = await message_service.list_page(group.id, BOB)
        assert [m.id for m in page] == [kept.id]
        assert publisher.of_type(MessageDeleted)[-1].message_id == gone.id

        with pytest.raises(NotFound):
            await message_service.soft_delete(gone.id, ALICE)
        with pytest.raises(NotFound):
            await message_service.edit_message(gone.id, ALICE, "undo")


class TestClearMessages:
    @pytest.mark.asyncio
    async def test_member_clears_history_as_tombstones(
        self,
        message_service: MessageService,
        publisher: InMemoryEventPublisher,
        group: ConversationResponse,
    ) -> None:
        first = await message_service.send(group.id, ALICE, content="one")
        await message_service.send(
            group.id, BOB, content="two", reply_to_message_id=first.id
        )
        publisher.clear()

        assert await message_service.clear_messages(group.id, CAROL) == 2

        assert await message_service.list_page(group.id, ALICE) == []
        stored = await message_service.message_repo.get_by_id(first.id)
        assert stored is not None
        assert stored.is_deleted
        [event] = publisher.events
        assert isinstance(event, MessagesCleared)
        assert event.cleared_by == CAROL
        assert event.message_count == 2

        assert await message_service.clear_messages(group.id, ALICE) == 0
        assert len(publisher.events) == 1

        later = await message_service.send(group.id, ALICE, content="fresh start")
        page = await message_service.list_page(group.id, BOB)
        assert [m.id for m in page] == [later.id]

    @pytest.mark.asyncio
    async def test_cleared_messages_no_longer_count_as_unread(
        self,
        message_service: MessageService,
        read_tracker: ReadTrackerService,
        group: ConversationResponse,
    ) -> None:
        await message_service.send(group.id, ALICE, content="unread")
        assert await read_tracker.unread_count(group.id, BOB) == 1

        await message_service.clear_messages(group.id, ALICE)
        assert await read_tracker.unread_count(group.id, BOB) == 0

    @pytest.mark.asyncio
    async def test_clear_requires_membership(
        self, message_service: MessageService, group: ConversationResponse
    ) -> None:
        await message_service.send(group.id, ALICE, content="keep me")

        with pytest.raises(NotMember):
            await message_service.clear_messages(group.id, MALLORY)
        with pytest.raises(NotFound):
            await message_service.clear_messages(uuid4(), ALICE)
        assert len(await message_service.list_page(group.id, ALICE)) == 1


class TestListPage:
    @pytest.mark.asyncio
    async def test_cursor_paging(
        self, message_service: MessageService, group: ConversationResponse
    ) -> None:
        sent = [
            await message_service.send(group.id, ALICE, content=f"m{i}") for i in range(5)
        ]

        latest = await message_service.list_page(group.id, BOB, limit=2)
        assert [m.id for m in latest] == [sent[3].id, sent[4].id]

        # New messages after the first page do not shift older pages
        await message_service.send(group.id, BOB, content="late arrival")
        older = await message_service.list_page(
            group.id, BOB, before_message_id=latest[0].id, limit=2
        )
        assert [m.id for m in older] == [sent[1].id, sent[2].id]

        oldest = await message_service.list_page(
            group.id, BOB, before_message_id=older[0].id, limit=2
        )
        assert [m.id for m in oldest] == [sent[0].id]

    @pytest.mark.asyncio
    async def test_cursor_from_other_conversation(
        self,
        message_service: MessageService,
        conversation_service: ConversationService,
        group: ConversationResponse,
    ) -> None:
        other = await conversation_service.get_or_create_direct(ALICE, BOB)
        foreign = await message_service.send(other.id, ALICE, content="elsewhere")

        with pytest.raises(NotFound):
            await message_service.list_page(group.id, ALICE, before_message_id=foreign.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 201])
    async def test_limit_bounds(
        self, message_service: MessageService, group: ConversationResponse, limit: int
    ) -> None:
        with pytest.raises(ValidationError):
            await message_service.list_page(group.id, ALICE, limit=limit)

    @pytest.mark.asyncio
    async def test_requires_membership(
        self, message_service: MessageService, group: ConversationResponse
    ) -> None:
        with pytest.raises(NotMember):
            await message_service.list_page(group.id, MALLORY)


class TestReactions:
    @pytest.mark.asyncio
    async def test_toggle_is_idempotent_in_pairs(
        self, message_service: MessageService, group: ConversationResponse
    ) -> None:
        message = await message_service.send(group.id, ALICE, content="nice")

        await message_service.toggle_reaction(message.id, BOB, "👍")
        reactions = await message_service.toggle_reaction(message.id, BOB, "👍")
        assert reactions == []

        reactions = await message_service.toggle_reaction(message.id, BOB, "👍")
        assert [(r.emoji, r.count, r.user_ids) for r in reactions] == [("👍", 1, [BOB])]

    @pytest.mark.asyncio
    async def test_event_carries_full_set(
        self,
        message_service: MessageService,
        publisher: InMemoryEventPublisher,
        group: ConversationResponse,
    ) -> None:
        message = await message_service.send(group.id, ALICE, content="party")
        await message_service.toggle_reaction(message.id, BOB, "🎉")
        await message_service.toggle_reaction(message.id, CAROL, " 🎉 ")

        event = publisher.of_type(ReactionChanged)[-1]
        assert event.message_id == message.id
        assert event.conversation_id == group.id
        assert [(r.emoji, r.count) for r in event.reactions] == [("🎉", 2)]

        [listed] = await message_service.list_page(group.id, ALICE)
        assert listed.reactions == event.reactions
        assert await message_service.get_reactions(message.id, ALICE) == event.reactions

    @pytest.mark.asyncio
    async def test_reaction_rules(
        self, message_service: MessageService, group: ConversationResponse
    ) -> None:
        message = await message_service.send(group.id, ALICE, content="hm")

        with pytest.raises(ValidationError):
            await message_service.toggle_reaction(message.id, BOB, "  ")
        with pytest.raises(ValidationError):
            await message_service.toggle_reaction(message.id, BOB, "x" * 11)
        with pytest.raises(NotMember):
            await message_service.toggle_reaction(message.id, MALLORY, "👍")

        await message_service.soft_delete(message.id, ALICE)
        with pytest.raises(NotFound):
            await message_service.toggle_reaction(message.id, BOB, "👍")


class TestTyping:
    @pytest.mark.asyncio
    async def test_typing_is_pass_through(
        self,
        message_service: MessageService,
        publisher: InMemoryEventPublisher,
        group: ConversationResponse,
    ) -> None:
        publisher.clear()
        await message_service.typing_started(group.id, BOB)
        await message_service.typing_stopped(group.id, BOB)

        assert [type(e) for e in publisher.events] == [TypingStarted, TypingStopped]
        assert await message_service.list_page(group.id, BOB) == []

        with pytest.raises(NotMember):
            await message_service.typing_started(group.id, MALLORY)
