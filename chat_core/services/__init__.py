# Services orchestrating repositories, the directory and the event publisher
from .conversation_service import ConversationService
from .message_service import MessageService, message_type_for
from .read_tracker_service import ReadTrackerService

__all__ = [
    "ConversationService",
    "MessageService",
    "ReadTrackerService",
    "message_type_for",
]
