import uuid

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint, Uuid
from chat_core.database import Base
from chat_core.models.db.types import UTCDateTime, utcnow


class ReactionModel(Base):
    """SQLAlchemy model for message_reactions table."""

    __tablename__ = "message_reactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id = Column(
        Uuid, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Uuid, nullable=False)
    emoji = Column(String(10), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_reaction"),
    )
