import os

# The package reads its configuration at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENV", "test")

from typing import Any, AsyncGenerator, Generator  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from chat_core.clients.memory_event_publisher import InMemoryEventPublisher  # noqa: E402
from chat_core.clients.static_directory_client import StaticDirectoryClient  # noqa: E402
from chat_core.database import Base  # noqa: E402
from chat_core.main import app  # noqa: E402
from chat_core.models import db as db_models  # noqa: E402,F401
from chat_core.services.conversation_service import ConversationService  # noqa: E402
from chat_core.services.message_service import MessageService  # noqa: E402
from chat_core.services.read_tracker_service import ReadTrackerService  # noqa: E402

# Fixed ids so "lowest user id" tie-breaks are predictable
ALICE = UUID("00000000-0000-0000-0000-00000000000a")
BOB = UUID("00000000-0000-0000-0000-00000000000b")
CAROL = UUID("00000000-0000-0000-0000-00000000000c")
DAVE = UUID("00000000-0000-0000-0000-00000000000d")
MALLORY = UUID("00000000-0000-0000-0000-0000000000ff")


@pytest.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the full schema, one per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        future=True,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
async def test_db(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Database session for integration tests."""
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def mock_db() -> AsyncGenerator[AsyncMock, None]:
    """Create a mock database session for unit tests."""
    mock_session = AsyncMock()
    mock_session.commit = AsyncMock()
    mock_session.rollback = AsyncMock()
    mock_session.close = AsyncMock()
    mock_session.flush = AsyncMock()
    mock_session.execute = AsyncMock()
    mock_session.add = MagicMock()  # add is sync, not async

    yield mock_session


@pytest.fixture
def directory() -> StaticDirectoryClient:
    """Open directory: every user exists, nobody is blocked."""
    return StaticDirectoryClient()


@pytest.fixture
def publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def conversation_service(
    test_db: AsyncSession,
    directory: StaticDirectoryClient,
    publisher: InMemoryEventPublisher,
) -> ConversationService:
    return ConversationService(test_db, directory, publisher)


@pytest.fixture
def message_service(
    test_db: AsyncSession,
    directory: StaticDirectoryClient,
    publisher: InMemoryEventPublisher,
) -> MessageService:
    return MessageService(test_db, directory, publisher)


@pytest.fixture
def read_tracker(
    test_db: AsyncSession, publisher: InMemoryEventPublisher
) -> ReadTrackerService:
    return ReadTrackerService(test_db, publisher)


@pytest.fixture
def client() -> Generator[TestClient, Any, None]:
    """Create a test client for the FastAPI app."""
    with TestClient(app) as test_client:
        yield test_client
