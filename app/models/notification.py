"""In-app notification model"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum
import uuid
from app.database import Base
from app.utils.time_utils import utc_now


class NotificationType(str, enum.Enum):
    new_message = "new_message"
    listing_sold = "listing_sold"
    new_favorite = "new_favorite"
    transaction_update = "transaction_update"
    review_received = "review_received"
    listing_expiring = "listing_expiring"
    price_drop = "price_drop"
    listing_approved = "listing_approved"
    system_announcement = "system_announcement"


class Notification(Base):
    """Notification record shown in the user's inbox (pull-based)"""

    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(50), nullable=False)
    title = Column(String(100), nullable=False)
    message = Column(String(500), nullable=False)

    # Related entities
    related_listing_id = Column(UUID(as_uuid=True), ForeignKey("listings.id", ondelete="SET NULL"), nullable=True)
    related_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    related_transaction_id = Column(UUID(as_uuid=True), ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True)
    action_url = Column(Text, nullable=True)

    # Status
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now, nullable=False)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_notifications_user_read_created", "user_id", "is_read", "created_at"),
        Index("idx_notifications_user_type", "user_id", "type"),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"
