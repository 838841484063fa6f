# Wire contracts and persistence models
from .api import (
    ChatEvent,
    ConversationResponse,
    ConversationType,
    MessageResponse,
    MessageType,
    ParticipantResponse,
    ParticipantRole,
    UserSummary,
)
from .db import (
    ConversationModel,
    DirectConversationPairModel,
    MessageModel,
    ParticipantModel,
    ReactionModel,
)

__all__ = [
    "ChatEvent",
    "ConversationResponse",
    "ConversationType",
    "MessageResponse",
    "MessageType",
    "ParticipantResponse",
    "ParticipantRole",
    "UserSummary",
    "ConversationModel",
    "DirectConversationPairModel",
    "MessageModel",
    "ParticipantModel",
    "ReactionModel",
]
