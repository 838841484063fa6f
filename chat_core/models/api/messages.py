from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    GIF = "gif"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"


class ReactionGroup(BaseModel):
    """All reactions on a message that use one emoji."""

    emoji: str
    count: int
    user_ids: List[UUID]


class ReplyPreview(BaseModel):
    """The message a reply points at. Deleted targets render as tombstones."""

    id: UUID
    sender_id: UUID
    content: Optional[str]
    media_url: Optional[str]
    is_deleted: bool


class SendMessageRequest(BaseModel):
    """Request model for sending a message."""

    content: Optional[str] = Field(default=None, description="Message text")
    media_url: Optional[str] = Field(default=None, description="Attached media URL")
    media_type: Optional[str] = Field(
        default=None, description="MIME type of the media, e.g. image/png"
    )
    reply_to_message_id: Optional[UUID] = Field(
        default=None, description="Message in the same conversation being replied to"
    )


class EditMessageRequest(BaseModel):
    content: Optional[str] = Field(default=None, description="Replacement text")


class ToggleReactionRequest(BaseModel):
    emoji: str = Field(..., description="Unicode emoji")


class MessageResponse(BaseModel):
    """Response model for message data."""

    id: UUID
    conversation_id: UUID
    sequence: int
    sender_id: UUID
    content: Optional[str]
    message_type: MessageType
    media_url: Optional[str]
    media_type: Optional[str]
    reply_to_message_id: Optional[UUID]
    reply_to: Optional[ReplyPreview] = None
    reactions: List[ReactionGroup] = Field(default_factory=list)
    is_edited: bool
    edited_at: Optional[datetime]
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
