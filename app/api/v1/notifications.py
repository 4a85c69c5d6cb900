"""In-app notification API endpoints"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.dependencies import get_current_user
from app.models.user import User
from app.services.notification_service import NotificationService
from app.schemas.message import UnreadCountResponse
from app.schemas.notification import (
    NotificationResponse,
    NotificationListResponse,
    MarkAllReadResponse,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def get_notifications(
    unread_only: bool = Query(False, description="Only return unread notifications"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get the current user's notifications, newest first"""
    service = NotificationService(db)
    notifications, total = service.get_notifications(
        user_id=current_user.id,
        unread_only=unread_only,
        skip=(page - 1) * page_size,
        limit=page_size
    )

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=service.get_unread_count(current_user.id),
        page=page,
        page_size=page_size
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Count unread notifications"""
    service = NotificationService(db)
    return UnreadCountResponse(unread_count=service.get_unread_count(current_user.id))


@router.post("/read-all", response_model=MarkAllReadResponse)
def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark every notification as read"""
    service = NotificationService(db)
    return MarkAllReadResponse(modified=service.mark_all_read(current_user.id))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark one notification as read"""
    service = NotificationService(db)
    return NotificationResponse.model_validate(service.mark_read(notification_id, current_user.id))
