import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from chat_core.database import Base
from chat_core.models.db.types import UTCDateTime, utcnow


class MessageModel(Base):
    """SQLAlchemy model for messages table.

    Rows are never physically removed; ``is_deleted`` marks a tombstone so
    reply chains stay resolvable.
    """

    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid, ForeignKey("conversations.id"), nullable=False
    )
    sequence = Column(BigInteger, nullable=False)
    sender_id = Column(Uuid, nullable=False)
    content = Column(Text)
    message_type = Column(String(10), nullable=False, default="text")
    media_url = Column(String(500))
    media_type = Column(String(50))
    reply_to_message_id = Column(Uuid, ForeignKey("messages.id"))
    is_edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(UTCDateTime)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence", name="uq_messages_sequence"),
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    # Constraints (enforced by database CHECK constraints in migrations)
    # content IS NOT NULL OR media_url IS NOT NULL
    # message_type IN ('text', 'image', 'gif', 'video', 'audio', 'file')
