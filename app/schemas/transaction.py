"""Transaction and review schemas"""
from pydantic import BaseModel, Field, field_validator, field_serializer
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from app.models.transaction import PaymentMethod
from app.utils.time_utils import to_utc_isoformat, to_naive_utc


class TransactionCreate(BaseModel):
    """Open a transaction as the buyer"""
    listing_id: str
    final_price: Decimal
    payment_method: PaymentMethod = PaymentMethod.cash


class MeetupSchedule(BaseModel):
    """Meeting details"""
    location: str = Field(..., min_length=1, max_length=255)
    scheduled_time: datetime
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("scheduled_time")
    def normalize_datetime(cls, v):
        return to_naive_utc(v)


class ReasonRequest(BaseModel):
    """Reason for cancelling or disputing"""
    reason: str = Field(..., min_length=1, max_length=1000)


class TransactionResponse(BaseModel):
    """Transaction response"""
    id: UUID
    listing_id: UUID
    buyer_id: UUID
    seller_id: UUID
    final_price: Decimal
    transaction_status: str
    payment_method: str
    meeting_location: Optional[str] = None
    meeting_time: Optional[datetime] = None
    meeting_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    disputed_at: Optional[datetime] = None
    dispute_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer(
        'meeting_time', 'completed_at', 'cancelled_at', 'disputed_at', 'created_at', 'updated_at'
    )
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return to_utc_isoformat(value)

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    """Paginated transactions"""
    transactions: List[TransactionResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ReviewCreate(BaseModel):
    """Review the other party of a completed transaction"""
    rating: int
    review_text: Optional[str] = None
    communication_rating: Optional[int] = None
    accuracy_rating: Optional[int] = None
    reliability_rating: Optional[int] = None


class ReviewResponse(BaseModel):
    """Review response"""
    id: UUID
    transaction_id: UUID
    reviewer_id: UUID
    reviewee_id: UUID
    rating: int
    review_text: Optional[str] = None
    review_type: str
    communication_rating: Optional[int] = None
    accuracy_rating: Optional[int] = None
    reliability_rating: Optional[int] = None
    created_at: datetime

    @field_serializer('created_at')
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return to_utc_isoformat(value)

    class Config:
        from_attributes = True


class ReviewListResponse(BaseModel):
    """Reviews a user has received"""
    reviews: List[ReviewResponse]
    total: int
    page: int
    page_size: int
    reputation_score: float
    rating_distribution: Dict[int, int]
