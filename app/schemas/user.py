"""User schemas"""
from pydantic import BaseModel, Field, field_serializer
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from app.schemas.listing import ListingResponse
from app.schemas.transaction import ReviewResponse
from app.utils.time_utils import to_utc_isoformat


class UniversitySummary(BaseModel):
    """University shown on a profile"""
    id: UUID
    name: str
    domain: str

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    """Public user fields"""
    id: UUID
    first_name: str
    last_name: str
    profile_image_url: Optional[str] = None
    bio: Optional[str] = None
    reputation_score: float
    total_listings: int
    total_sales: int
    total_purchases: int
    university: Optional[UniversitySummary] = None
    created_at: datetime

    @field_serializer('created_at')
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return to_utc_isoformat(value)

    class Config:
        from_attributes = True


class CurrentUserResponse(UserResponse):
    """Own account, including private fields"""
    email: str
    email_verified: bool
    phone_number: Optional[str] = None
    account_status: str


class ProfileUpdate(BaseModel):
    """Editable profile fields"""
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)


class ProfileResponse(BaseModel):
    """Public profile with recent activity"""
    user: UserResponse
    recent_listings: List[ListingResponse]
    recent_reviews: List[ReviewResponse]
