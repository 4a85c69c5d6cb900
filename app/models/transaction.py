"""Transaction and review models"""
from sqlalchemy import (
    Column, String, DateTime, Integer, Numeric, ForeignKey, Text, UniqueConstraint, Index,
    CheckConstraint, text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum
import uuid
from app.database import Base
from app.utils.time_utils import utc_now


class TransactionStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    meetup_scheduled = "meetup_scheduled"
    completed = "completed"
    cancelled = "cancelled"
    disputed = "disputed"


class PaymentMethod(str, enum.Enum):
    cash = "cash"
    venmo = "venmo"
    zelle = "zelle"
    paypal = "paypal"
    other = "other"


class ReviewType(str, enum.Enum):
    buyer_to_seller = "buyer_to_seller"
    seller_to_buyer = "seller_to_buyer"


class Transaction(Base):
    """Offline sale agreement for a listing (money never moves through here)"""

    __tablename__ = "transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    listing_id = Column(UUID(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    buyer_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    seller_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    final_price = Column(Numeric(10, 2), nullable=False)
    transaction_status = Column(String(30), default=TransactionStatus.pending.value, nullable=False)
    payment_method = Column(String(20), default=PaymentMethod.cash.value, nullable=False)  # informational only

    # Meetup
    meeting_location = Column(String(255), nullable=True)
    meeting_time = Column(DateTime, nullable=True)
    meeting_notes = Column(Text, nullable=True)

    # Outcome
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    disputed_at = Column(DateTime, nullable=True)
    dispute_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    # Relationships
    listing = relationship("Listing")
    buyer = relationship("User", foreign_keys=[buyer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    reviews = relationship("Review", back_populates="transaction", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("buyer_id <> seller_id", name="ck_transaction_distinct_parties"),
        Index("idx_transactions_buyer_status", "buyer_id", "transaction_status"),
        Index("idx_transactions_seller_status", "seller_id", "transaction_status"),
        # At most one non-cancelled transaction per listing
        Index(
            "uq_transactions_listing_open",
            "listing_id",
            unique=True,
            postgresql_where=text("transaction_status <> 'cancelled'"),
            sqlite_where=text("transaction_status <> 'cancelled'"),
        ),
    )

    def is_participant(self, user_id) -> bool:
        return user_id in (self.buyer_id, self.seller_id)

    def __repr__(self):
        return f"<Transaction(id={self.id}, listing_id={self.listing_id}, status={self.transaction_status})>"


class Review(Base):
    """One participant's feedback on a completed transaction"""

    __tablename__ = "reviews"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transaction_id = Column(UUID(as_uuid=True), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False)
    reviewer_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reviewee_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Review
    rating = Column(Integer, nullable=False)  # 1-5 stars
    review_text = Column(String(500), nullable=True)
    review_type = Column(String(20), nullable=False)

    # Sub-ratings (1-5, optional)
    communication_rating = Column(Integer, nullable=True)
    accuracy_rating = Column(Integer, nullable=True)
    reliability_rating = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now, nullable=False)

    # Relationships
    transaction = relationship("Transaction", back_populates="reviews")
    reviewer = relationship("User", foreign_keys=[reviewer_id])
    reviewee = relationship("User", foreign_keys=[reviewee_id])

    # Unique constraint: one review per reviewer per transaction
    __table_args__ = (
        UniqueConstraint("transaction_id", "reviewer_id", name="uq_review_transaction_reviewer"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        Index("idx_reviews_reviewee_created", "reviewee_id", "created_at"),
    )

    def __repr__(self):
        return f"<Review(id={self.id}, rating={self.rating}, type={self.review_type})>"
