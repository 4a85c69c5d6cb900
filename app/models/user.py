"""User and university models"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Float, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
from app.database import Base
from app.utils.time_utils import utc_now


class University(Base):
    """Institution a user belongs to; listings are scoped to one"""

    __tablename__ = "universities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), unique=True, nullable=False)
    domain = Column(String(255), unique=True, nullable=False, index=True)  # e.g. "state.edu"

    # Location
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    country = Column(String(100), default="USA", nullable=False)

    # Settings
    max_listing_duration_days = Column(Integer, default=30, nullable=False)
    moderation_enabled = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utc_now, nullable=False)

    # Relationships
    users = relationship("User", back_populates="university")

    def __repr__(self):
        return f"<University(id={self.id}, name={self.name})>"


class User(Base):
    """Marketplace user account"""

    __tablename__ = "users"

    ACCOUNT_STATUSES = ["active", "suspended", "deleted"]

    # Identity
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    university_id = Column(UUID(as_uuid=True), ForeignKey("universities.id"), nullable=False, index=True)

    # Profile
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    phone_number = Column(String(20), nullable=True)
    profile_image_url = Column(Text, nullable=True)
    bio = Column(String(500), nullable=True)

    # Reputation: mean of all ratings received, recomputed on each review
    reputation_score = Column(Float, default=5.0, nullable=False)

    # Counters
    total_listings = Column(Integer, default=0, nullable=False)
    total_sales = Column(Integer, default=0, nullable=False)
    total_purchases = Column(Integer, default=0, nullable=False)

    # Status
    account_status = Column(String(20), default="active", nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    university = relationship("University", back_populates="users")
    listings = relationship("Listing", foreign_keys="Listing.seller_id", back_populates="seller")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.account_status == "active"

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, reputation={self.reputation_score})>"
