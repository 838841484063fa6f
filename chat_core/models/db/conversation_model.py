import uuid

from sqlalchemy import (
    BigInteger,
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


class ConversationModel(Base):
    """SQLAlchemy model for conversations table."""

    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_type = Column(String(20), nullable=False)
    title = Column(String(100))
    description = Column(String(500))
    group_image_url = Column(String(500))
    created_by_id = Column(Uuid, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Denormalized cache of the newest message; messages stay authoritative
    last_message_id = Column(Uuid)
    last_message_at = Column(UTCDateTime)
    last_sequence = Column(BigInteger, nullable=False, default=0)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    participants = relationship(
        "ParticipantModel",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    # Constraints (enforced by database CHECK constraints in migrations)
    # conversation_type IN ('direct', 'group')


class DirectConversationPairModel(Base):
    """One row per active direct conversation, keyed by the ordered user pair.

    The unique constraint is what keeps concurrent get-or-create calls from
    producing two direct conversations for the same users. The row is removed
    when its conversation is deactivated.
    """

    __tablename__ = "direct_conversation_pairs"

    conversation_id = Column(
        Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True
    )
    user_low_id = Column(Uuid, nullable=False)
    user_high_id = Column(Uuid, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_direct_pair_users"),
        Index("ix_direct_pair_high", "user_high_id"),
    )
