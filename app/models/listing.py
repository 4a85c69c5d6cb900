"""Listing models"""
from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Numeric, ForeignKey, Text, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum
import uuid
from app.database import Base
from app.utils.time_utils import utc_now


class ListingStatus(str, enum.Enum):
    draft = "draft"
    active = "active"
    pending = "pending"
    sold = "sold"
    expired = "expired"
    deleted = "deleted"


class ListingCategory(str, enum.Enum):
    textbooks = "Textbooks"
    electronics = "Electronics"
    furniture = "Furniture"
    clothing = "Clothing"
    kitchen = "Kitchen & Appliances"
    sports = "Sports & Outdoors"
    school_supplies = "School Supplies"
    decor = "Decor"
    other = "Other"


class ListingCondition(str, enum.Enum):
    new = "New"
    like_new = "Like New"
    good = "Good"
    fair = "Fair"
    poor = "Poor"


TERMINAL_LISTING_STATUSES = {ListingStatus.sold.value, ListingStatus.deleted.value}


class Listing(Base):
    """Marketplace item offered by one seller within one university"""

    __tablename__ = "listings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    seller_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    university_id = Column(UUID(as_uuid=True), ForeignKey("universities.id"), nullable=False, index=True)

    # Listing information
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(50), nullable=False, index=True)
    condition = Column(String(20), nullable=False)
    tags = Column(JSON, nullable=True)
    location_pickup = Column(String(255), nullable=True)

    # Pricing
    price = Column(Numeric(10, 2), nullable=False)
    original_price = Column(Numeric(10, 2), nullable=True)
    is_negotiable = Column(Boolean, default=True, nullable=False)

    # Lifecycle
    status = Column(String(20), default=ListingStatus.active.value, nullable=False, index=True)
    available_from = Column(DateTime, default=utc_now, nullable=False)
    available_until = Column(DateTime, nullable=False)
    sold_at = Column(DateTime, nullable=True)
    sold_to_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    expiry_notified_at = Column(DateTime, nullable=True)

    # Analytics
    views = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    # Relationships
    seller = relationship("User", foreign_keys=[seller_id], back_populates="listings")
    sold_to = relationship("User", foreign_keys=[sold_to_id])
    university = relationship("University")
    images = relationship(
        "ListingImage",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ListingImage.display_order",
    )
    view_history = relationship(
        "ListingViewDay",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ListingViewDay.day",
    )

    __table_args__ = (
        Index("idx_listings_university_status_created", "university_id", "status", "created_at"),
        Index("idx_listings_seller_status", "seller_id", "status"),
        Index("idx_listings_category_status_price", "category", "status", "price"),
    )

    @property
    def is_expired(self) -> bool:
        return self.status == ListingStatus.active.value and self.available_until < utc_now()

    @property
    def savings_percentage(self) -> int:
        if not self.original_price or self.original_price <= self.price:
            return 0
        return round((self.original_price - self.price) / self.original_price * 100)

    def __repr__(self):
        return f"<Listing(id={self.id}, title={self.title}, status={self.status})>"


class ListingImage(Base):
    """Image reference returned by the image host"""

    __tablename__ = "listing_images"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    listing_id = Column(UUID(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)

    url = Column(Text, nullable=False)
    thumbnail_url = Column(Text, nullable=True)
    display_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utc_now, nullable=False)

    listing = relationship("Listing", back_populates="images")

    def __repr__(self):
        return f"<ListingImage(listing_id={self.listing_id}, order={self.display_order})>"


class ListingViewDay(Base):
    """Per-day view bucket; one row per (listing, calendar day)"""

    __tablename__ = "listing_view_days"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    listing_id = Column(UUID(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    day = Column(DateTime, nullable=False)  # truncated to midnight UTC
    count = Column(Integer, default=0, nullable=False)

    listing = relationship("Listing", back_populates="view_history")

    __table_args__ = (
        UniqueConstraint("listing_id", "day", name="uq_listing_view_day"),
        Index("idx_listing_view_days_listing", "listing_id", "day"),
    )

    def __repr__(self):
        return f"<ListingViewDay(listing_id={self.listing_id}, day={self.day}, count={self.count})>"
