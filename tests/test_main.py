from typing import Generator
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from chat_core.dependencies import get_conversation_service
from chat_core.errors import Unavailable
from chat_core.main import app
from chat_core.services.conversation_service import ConversationService
from tests.conftest import ALICE


def test_health_check(client: TestClient) -> None:
    """Test the health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert "status" in data
    assert "database" in data
    assert "version" in data
    # Status should be healthy or degraded
    assert data["status"] in ["healthy", "degraded"]
    assert data["environment"] == "test"


class TestErrorHandlers:
    @pytest.fixture
    def service(self) -> Generator[MagicMock, None, None]:
        service = MagicMock(spec=ConversationService)
        app.dependency_overrides[get_conversation_service] = lambda: service
        yield service
        app.dependency_overrides.clear()

    def test_unavailable_maps_to_503(self, service: MagicMock) -> None:
        service.get_conversation.side_effect = Unavailable("Directory unreachable")

        response = TestClient(app).get(
            f"/api/conversations/{uuid4()}", headers={"X-User-Id": str(ALICE)}
        )

        assert response.status_code == 503
        assert response.json() == {
            "error": "Unavailable",
            "detail": "Directory unreachable",
        }

    def test_unhandled_storage_error_maps_to_503(self, service: MagicMock) -> None:
        service.get_conversation.side_effect = OperationalError(
            "SELECT 1", {}, Exception("database is locked")
        )

        response = TestClient(app).get(
            f"/api/conversations/{uuid4()}", headers={"X-User-Id": str(ALICE)}
        )

        assert response.status_code == 503
        assert response.json()["error"] == "Unavailable"
