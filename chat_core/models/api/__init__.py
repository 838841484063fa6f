# API models for request/response contracts
from .conversations import (
    ConversationResponse,
    ConversationSummary,
    ConversationType,
    CreateGroupRequest,
    MarkReadRequest,
    MessagePreview,
    ReadStateResponse,
    UpdateGroupRequest,
)
from .events import (
    ChatEvent,
    ConversationRead,
    MessageDeleted,
    MessageEdited,
    MessageSent,
    MessagesCleared,
    ParticipantChanged,
    ParticipantChangeType,
    ReactionChanged,
    TypingStarted,
    TypingStopped,
)
from .messages import (
    EditMessageRequest,
    MessageResponse,
    MessageType,
    ReactionGroup,
    ReplyPreview,
    SendMessageRequest,
    ToggleReactionRequest,
)
from .participants import (
    AddParticipantRequest,
    ChangeRoleRequest,
    ParticipantResponse,
    ParticipantRole,
    TransferOwnershipRequest,
    UserSummary,
)

__all__ = [
    "AddParticipantRequest",
    "ChangeRoleRequest",
    "ChatEvent",
    "ConversationRead",
    "ConversationResponse",
    "ConversationSummary",
    "ConversationType",
    "CreateGroupRequest",
    "EditMessageRequest",
    "MarkReadRequest",
    "MessageDeleted",
    "MessageEdited",
    "MessagePreview",
    "MessageResponse",
    "MessageSent",
    "MessagesCleared",
    "MessageType",
    "ParticipantChanged",
    "ParticipantChangeType",
    "ParticipantResponse",
    "ParticipantRole",
    "ReactionChanged",
    "ReactionGroup",
    "ReadStateResponse",
    "ReplyPreview",
    "SendMessageRequest",
    "ToggleReactionRequest",
    "TransferOwnershipRequest",
    "TypingStarted",
    "TypingStopped",
    "UpdateGroupRequest",
    "UserSummary",
]
