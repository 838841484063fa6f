from datetime import datetime, timezone
from typing import Generator
from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from chat_core.dependencies import get_message_service
from chat_core.errors import (
    InvalidReply,
    NotFound,
    NotMember,
    PermissionDenied,
    ValidationError,
)
from chat_core.main import app
from chat_core.models.api.messages import MessageResponse, MessageType, ReactionGroup
from chat_core.services.message_service import MessageService
from tests.conftest import ALICE, BOB

HEADERS = {"X-User-Id": str(ALICE)}


class TestMessagesRouter:
    """Unit tests for the messages router endpoints."""

    @pytest.fixture
    def message_service(self) -> MagicMock:
        return MagicMock(spec=MessageService)

    @pytest.fixture
    def client(self, message_service: MagicMock) -> Generator[TestClient, None, None]:
        app.dependency_overrides[get_message_service] = lambda: message_service
        yield TestClient(app)
        app.dependency_overrides.clear()

    @pytest.fixture
    def sample_message(self) -> MessageResponse:
        now = datetime.now(timezone.utc)
        return MessageResponse(
            id=uuid4(),
            conversation_id=uuid4(),
            sequence=1,
            sender_id=ALICE,
            content="Hello",
            message_type=MessageType.TEXT,
            media_url=None,
            media_type=None,
            reply_to_message_id=None,
            is_edited=False,
            edited_at=None,
            is_deleted=False,
            created_at=now,
            updated_at=now,
        )

    def test_send_message(
        self,
        client: TestClient,
        message_service: MagicMock,
        sample_message: MessageResponse,
    ) -> None:
        message_service.send.return_value = sample_message
        conversation_id = sample_message.conversation_id

        response = client.post(
            f"/api/conversations/{conversation_id}/messages",
            json={"content": "Hello"},
            headers=HEADERS,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["id"] == str(sample_message.id)
        assert data["message_type"] == "text"
        assert data["reactions"] == []
        message_service.send.assert_awaited_once_with(
            conversation_id,
            ALICE,
            content="Hello",
            media_url=None,
            media_type=None,
            reply_to_message_id=None,
        )

    def test_send_invalid_reply(
        self, client: TestClient, message_service: MagicMock
    ) -> None:
        message_service.send.side_effect = InvalidReply(
            "Reply target is not in this conversation"
        )

        response = client.post(
            f"/api/conversations/{uuid4()}/messages",
            json={"content": "re", "reply_to_message_id": str(uuid4())},
            headers=HEADERS,
        )

        assert response.status_code == 422
        assert response.json()["error"] == "InvalidReply"

    def test_list_messages_passes_cursor(
        self,
        client: TestClient,
        message_service: MagicMock,
        sample_message: MessageResponse,
    ) -> None:
        message_service.list_page.return_value = [sample_message]
        conversation_id = uuid4()
        cursor = uuid4()

        response = client.get(
            f"/api/conversations/{conversation_id}/messages?before={cursor}&limit=20",
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert len(response.json()) == 1
        message_service.list_page.assert_awaited_once_with(
            conversation_id, ALICE, before_message_id=cursor, limit=20
        )

    def test_list_messages_rejects_oversized_page(self, client: TestClient) -> None:
        response = client.get(
            f"/api/conversations/{uuid4()}/messages?limit=100000", headers=HEADERS
        )
        assert response.status_code == 422

    def test_edit_message(
        self,
        client: TestClient,
        message_service: MagicMock,
        sample_message: MessageResponse,
    ) -> None:
        edited = sample_message.model_copy(
            update={"content": "Hello again", "is_edited": True}
        )
        message_service.edit_message.return_value = edited

        response = client.patch(
            f"/api/messages/{sample_message.id}",
            json={"content": "Hello again"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["is_edited"] is True
        message_service.edit_message.assert_awaited_once_with(
            sample_message.id, ALICE, "Hello again"
        )

    def test_edit_someone_elses_message(
        self, client: TestClient, message_service: MagicMock
    ) -> None:
        message_service.edit_message.side_effect = PermissionDenied(
            "Only the sender can edit a message"
        )

        response = client.patch(
            f"/api/messages/{uuid4()}", json={"content": "x"}, headers=HEADERS
        )

        assert response.status_code == 403
        assert response.json()["error"] == "PermissionDenied"

    def test_delete_message(
        self, client: TestClient, message_service: MagicMock
    ) -> None:
        message_id = uuid4()

        response = client.delete(f"/api/messages/{message_id}", headers=HEADERS)

        assert response.status_code == 204
        message_service.soft_delete.assert_awaited_once_with(message_id, ALICE)

    def test_delete_missing_message(
        self, client: TestClient, message_service: MagicMock
    ) -> None:
        message_service.soft_delete.side_effect = NotFound("Message not found")

        response = client.delete(f"/api/messages/{uuid4()}", headers=HEADERS)

        assert response.status_code == 404
        assert response.json() == {"error": "NotFound", "detail": "Message not found"}

    def test_clear_messages(
        self, client: TestClient, message_service: MagicMock
    ) -> None:
        conversation_id = uuid4()
        message_service.clear_messages.return_value = 7

        response = client.delete(
            f"/api/conversations/{conversation_id}/messages", headers=HEADERS
        )

        assert response.status_code == 200
        assert response.json() == {"cleared_count": 7}
        message_service.clear_messages.assert_awaited_once_with(conversation_id, ALICE)

    def test_clear_messages_requires_membership(
        self, client: TestClient, message_service: MagicMock
    ) -> None:
        message_service.clear_messages.side_effect = NotMember("nope")

        response = client.delete(f"/api/conversations/{uuid4()}/messages", headers=HEADERS)

        assert response.status_code == 403
        assert response.json()["error"] == "NotMember"

    def test_toggle_reaction(
        self, client: TestClient, message_service: MagicMock
    ) -> None:
        message_id = uuid4()
        message_service.toggle_reaction.return_value = [
            ReactionGroup(emoji="👍", count=2, user_ids=[ALICE, BOB])
        ]

        response = client.post(
            f"/api/messages/{message_id}/reactions",
            json={"emoji": "👍"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        [group] = response.json()
        assert group["count"] == 2
        assert [UUID(u) for u in group["user_ids"]] == [ALICE, BOB]
        message_service.toggle_reaction.assert_awaited_once_with(message_id, ALICE, "👍")

    def test_toggle_reaction_invalid_emoji(
        self, client: TestClient, message_service: MagicMock
    ) -> None:
        message_service.toggle_reaction.side_effect = ValidationError(
            "Emoji must be 1-10 characters"
        )

        response = client.post(
            f"/api/messages/{uuid4()}/reactions", json={"emoji": " "}, headers=HEADERS
        )

        assert response.status_code == 400

    def test_typing_signals(
        self, client: TestClient, message_service: MagicMock
    ) -> None:
        conversation_id = uuid4()

        started = client.post(f"/api/conversations/{conversation_id}/typing", headers=HEADERS)
        stopped = client.delete(
            f"/api/conversations/{conversation_id}/typing", headers=HEADERS
        )

        assert started.status_code == 204
        assert stopped.status_code == 204
        message_service.typing_started.assert_awaited_once_with(conversation_id, ALICE)
        message_service.typing_stopped.assert_awaited_once_with(conversation_id, ALICE)

    def test_malformed_user_header(self, client: TestClient) -> None:
        response = client.delete(
            f"/api/messages/{uuid4()}", headers={"X-User-Id": "not-a-uuid"}
        )
        assert response.status_code == 422
