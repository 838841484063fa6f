# SQLAlchemy database models
from .conversation_model import ConversationModel, DirectConversationPairModel
from .message_model import MessageModel
from .participant_model import ParticipantModel
from .reaction_model import ReactionModel

__all__ = [
    "ConversationModel",
    "DirectConversationPairModel",
    "MessageModel",
    "ParticipantModel",
    "ReactionModel",
]
