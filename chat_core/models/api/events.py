"""Domain events handed to the real-time transport after a commit."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from chat_core.models.api.messages import MessageResponse, ReactionGroup
from chat_core.models.api.participants import UserSummary


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ParticipantChangeType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"
    ROLE_CHANGED = "role_changed"


class MessageSent(BaseModel):
    event_type: Literal["message_sent"] = "message_sent"
    conversation_id: UUID
    message: MessageResponse
    sender: Optional[UserSummary] = None
    reply_to_sender: Optional[UserSummary] = None
    occurred_at: datetime = Field(default_factory=_now)


class MessageEdited(BaseModel):
    event_type: Literal["message_edited"] = "message_edited"
    conversation_id: UUID
    message: MessageResponse
    occurred_at: datetime = Field(default_factory=_now)


class MessageDeleted(BaseModel):
    event_type: Literal["message_deleted"] = "message_deleted"
    conversation_id: UUID
    message_id: UUID
    occurred_at: datetime = Field(default_factory=_now)


class MessagesCleared(BaseModel):
    event_type: Literal["messages_cleared"] = "messages_cleared"
    conversation_id: UUID
    cleared_by: UUID
    message_count: int
    occurred_at: datetime = Field(default_factory=_now)


class ConversationRead(BaseModel):
    """Read receipt: the user has read everything up to ``last_read_at``."""

    event_type: Literal["conversation_read"] = "conversation_read"
    conversation_id: UUID
    user_id: UUID
    last_read_at: datetime
    occurred_at: datetime = Field(default_factory=_now)


class ReactionChanged(BaseModel):
    """Carries the full reaction set so clients reconcile without a fetch."""

    event_type: Literal["reaction_changed"] = "reaction_changed"
    conversation_id: UUID
    message_id: UUID
    reactions: List[ReactionGroup]
    occurred_at: datetime = Field(default_factory=_now)


class ParticipantChanged(BaseModel):
    event_type: Literal["participant_changed"] = "participant_changed"
    conversation_id: UUID
    change_type: ParticipantChangeType
    user_id: UUID
    new_owner_id: Optional[UUID] = None
    actor_id: Optional[UUID] = None
    occurred_at: datetime = Field(default_factory=_now)


class TypingStarted(BaseModel):
    event_type: Literal["typing_started"] = "typing_started"
    conversation_id: UUID
    user_id: UUID
    occurred_at: datetime = Field(default_factory=_now)


class TypingStopped(BaseModel):
    event_type: Literal["typing_stopped"] = "typing_stopped"
    conversation_id: UUID
    user_id: UUID
    occurred_at: datetime = Field(default_factory=_now)


ChatEvent = Union[
    MessageSent,
    MessageEdited,
    MessageDeleted,
    MessagesCleared,
    ConversationRead,
    ReactionChanged,
    ParticipantChanged,
    TypingStarted,
    TypingStopped,
]
