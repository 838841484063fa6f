# Clients for the collaborators this core talks to
from .base_directory_client import BaseDirectoryClient
from .base_event_publisher import BaseEventPublisher
from .http_directory_client import HttpDirectoryClient
from .http_event_publisher import HttpEventPublisher
from .memory_event_publisher import InMemoryEventPublisher
from .static_directory_client import StaticDirectoryClient

__all__ = [
    "BaseDirectoryClient",
    "BaseEventPublisher",
    "HttpDirectoryClient",
    "HttpEventPublisher",
    "InMemoryEventPublisher",
    "StaticDirectoryClient",
]
