"""Notification schemas"""
from pydantic import BaseModel, field_serializer
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from app.utils.time_utils import to_utc_isoformat


class NotificationResponse(BaseModel):
    """In-app notification"""
    id: UUID
    type: str
    title: str
    message: str
    related_listing_id: Optional[UUID] = None
    related_user_id: Optional[UUID] = None
    related_transaction_id: Optional[UUID] = None
    action_url: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    @field_serializer('read_at', 'created_at')
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return to_utc_isoformat(value)

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    """Paginated notifications"""
    notifications: List[NotificationResponse]
    total: int
    unread_count: int
    page: int
    page_size: int


class MarkAllReadResponse(BaseModel):
    """Result of marking all notifications read"""
    modified: int
