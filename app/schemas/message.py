"""Message and conversation schemas"""
from pydantic import BaseModel, Field, field_serializer
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from app.utils.time_utils import to_utc_isoformat


class MessageCreate(BaseModel):
    """Send a message about a listing"""
    recipient_id: str
    listing_id: str
    message_text: str = Field(..., min_length=1)
    attachments: Optional[List[Dict[str, Any]]] = None


class MessageResponse(BaseModel):
    """Message response"""
    id: UUID
    conversation_id: str
    sender_id: UUID
    recipient_id: UUID
    listing_id: UUID
    message_text: str
    attachments: Optional[List[Dict[str, Any]]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    @field_serializer('read_at', 'created_at')
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return to_utc_isoformat(value)

    class Config:
        from_attributes = True


class MessageListResponse(BaseModel):
    """One page of a conversation, oldest first"""
    messages: List[MessageResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ConversationListing(BaseModel):
    """Listing summary shown in the inbox"""
    id: UUID
    title: str
    price: Decimal
    status: str

    class Config:
        from_attributes = True


class ConversationParticipant(BaseModel):
    """Other participant of a conversation"""
    id: UUID
    first_name: str
    last_name: str
    profile_image_url: Optional[str] = None

    class Config:
        from_attributes = True


class ConversationResponse(BaseModel):
    """Inbox row"""
    conversation_id: str
    last_message: MessageResponse
    unread_count: int
    listing: Optional[ConversationListing] = None
    other_user: Optional[ConversationParticipant] = None

    class Config:
        from_attributes = True


class ConversationListResponse(BaseModel):
    """User's conversations, most recent first"""
    conversations: List[ConversationResponse]
    total: int


class UnreadCountResponse(BaseModel):
    """Unread counter"""
    unread_count: int


class MarkReadResponse(BaseModel):
    """Result of a bulk mark-read"""
    modified: int
