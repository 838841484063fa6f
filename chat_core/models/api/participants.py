from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ParticipantRole(str, Enum):
    """Role within a conversation. Direct conversations only use MEMBER."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class ParticipantResponse(BaseModel):
    """Response model for participant data."""

    id: UUID
    conversation_id: UUID
    user_id: UUID
    role: ParticipantRole
    is_active: bool
    joined_at: datetime
    left_at: Optional[datetime]
    last_read_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class AddParticipantRequest(BaseModel):
    user_id: UUID = Field(..., description="User to add to the group")


class ChangeRoleRequest(BaseModel):
    role: ParticipantRole = Field(..., description="New role (admin or member)")


class TransferOwnershipRequest(BaseModel):
    new_owner_id: UUID = Field(..., description="Active participant to promote")


class UserSummary(BaseModel):
    """User identity as resolved by the participant directory."""

    id: UUID
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
