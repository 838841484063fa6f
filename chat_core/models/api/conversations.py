from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from chat_core.models.api.participants import ParticipantResponse


class ConversationType(str, Enum):
    DIRECT = "direct"
    GROUP = "group"


class MessagePreview(BaseModel):
    """Last-message preview shown in conversation lists."""

    id: UUID
    sender_id: UUID
    content: Optional[str]
    message_type: str
    created_at: datetime


class ConversationResponse(BaseModel):
    """Response model for conversation data."""

    id: UUID
    conversation_type: ConversationType
    title: Optional[str]
    description: Optional[str]
    group_image_url: Optional[str]
    created_by_id: UUID
    is_active: bool
    last_message_id: Optional[UUID]
    last_message_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    participants: List[ParticipantResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ConversationSummary(BaseModel):
    """Conversation list entry with badge data."""

    conversation: ConversationResponse
    last_message: Optional[MessagePreview]
    unread_count: int = 0


class CreateGroupRequest(BaseModel):
    """Request model for creating a group conversation."""

    title: str = Field(..., description="Group title")
    description: Optional[str] = Field(default=None, description="Group description")
    group_image_url: Optional[str] = Field(default=None, description="Group image URL")
    member_ids: List[UUID] = Field(..., description="Users added as members")


class UpdateGroupRequest(BaseModel):
    """Request model for updating group details. Omitted fields are unchanged."""

    title: Optional[str] = None
    description: Optional[str] = None
    group_image_url: Optional[str] = None


class MarkReadRequest(BaseModel):
    upto: Optional[datetime] = Field(
        default=None, description="Read watermark; defaults to now"
    )


class ReadStateResponse(BaseModel):
    conversation_id: UUID
    last_read_at: Optional[datetime]
    unread_count: int
