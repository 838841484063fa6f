"""FastAPI dependencies: caller identity, collaborators and services."""

from functools import lru_cache
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from chat_core import config
from chat_core.clients.base_directory_client import BaseDirectoryClient
from chat_core.clients.base_event_publisher import BaseEventPublisher
from chat_core.clients.http_directory_client import HttpDirectoryClient
from chat_core.clients.http_event_publisher import HttpEventPublisher
from chat_core.clients.memory_event_publisher import InMemoryEventPublisher
from chat_core.clients.static_directory_client import StaticDirectoryClient
from chat_core.database import get_db
from chat_core.services.conversation_service import ConversationService
from chat_core.services.message_service import MessageService
from chat_core.services.read_tracker_service import ReadTrackerService


async def current_user_id(
    x_user_id: UUID = Header(..., description="Caller identity set by the auth gateway"),
) -> UUID:
    return x_user_id


@lru_cache
def get_directory() -> BaseDirectoryClient:
    if config.DIRECTORY_SERVICE_URL:
        return HttpDirectoryClient(
            config.DIRECTORY_SERVICE_URL,
            config.DIRECTORY_SERVICE_API_KEY,
            cache_size=config.DIRECTORY_CACHE_SIZE,
        )
    # No directory configured: every user exists and nobody is blocked
    return StaticDirectoryClient()


@lru_cache
def get_event_publisher() -> BaseEventPublisher:
    if config.EVENT_TRANSPORT_URL:
        return HttpEventPublisher(
            config.EVENT_TRANSPORT_URL, config.EVENT_TRANSPORT_API_KEY
        )
    return InMemoryEventPublisher()


def get_conversation_service(
    db: AsyncSession = Depends(get_db),
    directory: BaseDirectoryClient = Depends(get_directory),
    publisher: BaseEventPublisher = Depends(get_event_publisher),
) -> ConversationService:
    return ConversationService(db, directory, publisher)


def get_message_service(
    db: AsyncSession = Depends(get_db),
    directory: BaseDirectoryClient = Depends(get_directory),
    publisher: BaseEventPublisher = Depends(get_event_publisher),
) -> MessageService:
    return MessageService(db, directory, publisher)


def get_read_tracker_service(
    db: AsyncSession = Depends(get_db),
    publisher: BaseEventPublisher = Depends(get_event_publisher),
) -> ReadTrackerService:
    return ReadTrackerService(db, publisher)
