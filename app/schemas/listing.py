"""Listing schemas"""
from pydantic import BaseModel, Field, field_validator, model_validator, field_serializer
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from app.config import settings
from app.models.listing import ListingCategory, ListingCondition
from app.utils.time_utils import to_utc_isoformat, to_naive_utc


class ListingFields(BaseModel):
    """Full set of seller-editable listing fields, validated as a whole"""
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    category: ListingCategory
    condition: ListingCondition
    price: Decimal = Field(..., ge=0, le=settings.LISTING_MAX_PRICE)
    original_price: Optional[Decimal] = Field(None, ge=0)
    is_negotiable: bool = True
    location_pickup: Optional[str] = Field(None, max_length=255)
    tags: Optional[List[str]] = None
    available_from: Optional[datetime] = None
    available_until: Optional[datetime] = None

    @field_validator("tags")
    def normalize_tags(cls, v):
        if v is None:
            return v
        return [tag.strip().lower() for tag in v if tag and tag.strip()]

    @field_validator("available_from", "available_until")
    def normalize_datetime(cls, v):
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_window(self):
        if self.available_from and self.available_until and self.available_until <= self.available_from:
            raise ValueError("available_until must be after available_from")
        return self

    class Config:
        str_strip_whitespace = True


class ListingCreate(ListingFields):
    """Schema for creating a listing"""
    status: str = Field("active", pattern="^(draft|active)$")


class ListingUpdate(BaseModel):
    """Partial listing update; protected fields are not accepted"""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[ListingCategory] = None
    condition: Optional[ListingCondition] = None
    price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    is_negotiable: Optional[bool] = None
    location_pickup: Optional[str] = None
    tags: Optional[List[str]] = None
    available_from: Optional[datetime] = None
    available_until: Optional[datetime] = None
    status: Optional[str] = Field(None, pattern="^(draft|active|pending)$")

    class Config:
        str_strip_whitespace = True


class ListingImageResponse(BaseModel):
    """Listing image reference"""
    url: str
    thumbnail_url: Optional[str] = None
    display_order: int

    class Config:
        from_attributes = True


class ViewDayResponse(BaseModel):
    """One day of view history"""
    day: datetime
    count: int

    @field_serializer("day")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return to_utc_isoformat(value)

    class Config:
        from_attributes = True


class SellerSummary(BaseModel):
    """Public seller fields shown alongside a listing"""
    id: UUID
    first_name: str
    last_name: str
    profile_image_url: Optional[str] = None
    reputation_score: float

    class Config:
        from_attributes = True


class ListingResponse(BaseModel):
    """Listing response"""
    id: UUID
    seller_id: UUID
    university_id: UUID
    title: str
    description: str
    category: str
    condition: str
    price: Decimal
    original_price: Optional[Decimal] = None
    is_negotiable: bool
    location_pickup: Optional[str] = None
    tags: Optional[List[str]] = None
    status: str
    views: int
    savings_percentage: int = 0
    images: List[ListingImageResponse] = []
    available_from: datetime
    available_until: datetime
    sold_at: Optional[datetime] = None
    sold_to_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    seller: Optional[SellerSummary] = None

    @field_serializer("available_from", "available_until", "sold_at", "created_at", "updated_at")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return to_utc_isoformat(value)

    class Config:
        from_attributes = True


class ListingDetailResponse(ListingResponse):
    """Listing with view history (owner view)"""
    view_history: List[ViewDayResponse] = []


class ListingListResponse(BaseModel):
    """Paginated listings"""
    listings: List[ListingResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class MarkSoldRequest(BaseModel):
    """Buyer a listing was sold to outside a tracked transaction"""
    buyer_id: str
