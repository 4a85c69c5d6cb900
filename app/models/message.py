"""Message model"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, JSON, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
from app.database import Base
from app.utils.time_utils import utc_now


class Message(Base):
    """
    Direct message between two users about one listing

    Messages sharing a conversation_id form one conversation; there is no
    separate conversation table.
    """

    __tablename__ = "messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(String(120), nullable=False, index=True)

    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recipient_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    listing_id = Column(UUID(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)

    # Content
    message_text = Column(Text, nullable=False)
    attachments = Column(JSON, nullable=True)  # [{"url": ..., "type": ..., "size": ...}]

    # Read state (recipient only, never reverts)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now, nullable=False)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id])
    recipient = relationship("User", foreign_keys=[recipient_id])
    listing = relationship("Listing")

    __table_args__ = (
        Index("idx_messages_conversation_created", "conversation_id", "created_at"),
        Index("idx_messages_recipient_read", "recipient_id", "is_read"),
        Index("idx_messages_sender_created", "sender_id", "created_at"),
    )

    def __repr__(self):
        return f"<Message(id={self.id}, conversation={self.conversation_id}, read={self.is_read})>"
