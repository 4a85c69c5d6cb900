"""Messaging API endpoints"""
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.core.dependencies import get_current_user
from app.core.rate_limit import limiter
from app.models.user import User
from app.services.conversation_service import ConversationService
from app.services.email_service import email_service
from app.schemas.message import (
    MessageCreate,
    MessageResponse,
    MessageListResponse,
    ConversationResponse,
    ConversationListResponse,
    UnreadCountResponse,
    MarkReadResponse,
)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.MESSAGE_RATE_LIMIT)
def send_message(
    request: Request,
    message_data: MessageCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Send a message about a listing

    - **recipient_id**: User to message
    - **listing_id**: Listing the conversation is about
    - **message_text**: Up to 1000 characters

    The recipient gets an in-app notification and, when SMTP is
    configured, an email.
    """
    service = ConversationService(db)
    message = service.send_message(
        sender_id=current_user.id,
        recipient_id=message_data.recipient_id,
        listing_id=message_data.listing_id,
        message_text=message_data.message_text,
        attachments=message_data.attachments
    )

    background_tasks.add_task(
        email_service.send_new_message_email,
        recipient=message.recipient.email,
        sender_name=current_user.full_name,
        listing_title=message.listing.title,
        message_preview=message.message_text,
        conversation_id=message.conversation_id
    )

    return MessageResponse.model_validate(message)


@router.get("/conversations", response_model=ConversationListResponse)
def get_conversations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get the current user's conversations, most recent first"""
    service = ConversationService(db)
    conversations = service.get_conversations(current_user.id)

    return ConversationListResponse(
        conversations=[ConversationResponse.model_validate(c) for c in conversations],
        total=len(conversations)
    )


@router.get("/conversations/{conversation_id}", response_model=MessageListResponse)
def get_conversation_messages(
    conversation_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get messages in a conversation

    Page 1 holds the most recent messages; each page is ordered oldest
    first. Messages addressed to the current user are marked read.
    """
    service = ConversationService(db)
    messages, total = service.get_messages(
        conversation_id=conversation_id,
        requester_id=current_user.id,
        page=page,
        page_size=page_size
    )

    return MessageListResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size
    )


@router.post("/conversations/{conversation_id}/read", response_model=MarkReadResponse)
def mark_conversation_read(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark all messages addressed to the current user in a conversation as read"""
    service = ConversationService(db)
    modified = service.mark_conversation_read(conversation_id, current_user.id)
    return MarkReadResponse(modified=modified)


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Count unread messages for the current user"""
    service = ConversationService(db)
    return UnreadCountResponse(unread_count=service.get_unread_count(current_user.id))
