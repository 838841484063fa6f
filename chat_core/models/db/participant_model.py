import uuid

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from chat_core.database import Base
from chat_core.models.db.types import UTCDateTime, utcnow


class ParticipantModel(Base):
    """SQLAlchemy model for participants table."""

    __tablename__ = "participants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Uuid, nullable=False)
    role = Column(String(10), nullable=False, default="member")
    is_active = Column(Boolean, nullable=False, default=True)
    joined_at = Column(UTCDateTime, nullable=False, default=utcnow)
    left_at = Column(UTCDateTime)
    last_read_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    conversation = relationship("ConversationModel", back_populates="participants")

    __table_args__ = (
        # Re-adding a former member reactivates this row
        UniqueConstraint("conversation_id", "user_id", name="uq_participant_user"),
        Index("ix_participants_user_active", "user_id", "is_active"),
    )

    # Constraints (enforced by database CHECK constraints in migrations)
    # role IN ('owner', 'admin', 'member')
