"""In-app notification service"""
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional, Tuple, Union
import uuid
import logging

from app.core.exceptions import NotFoundError
from app.models.notification import Notification, NotificationType
from app.utils.ids import parse_uuid
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

UUIDLike = Union[str, uuid.UUID]


class NotificationService:
    """Service for creating and reading in-app notifications"""

    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        user_id: UUIDLike,
        notification_type: Union[NotificationType, str],
        title: str,
        message: str,
        related_listing_id: Optional[UUIDLike] = None,
        related_user_id: Optional[UUIDLike] = None,
        related_transaction_id: Optional[UUIDLike] = None,
        action_url: Optional[str] = None
    ) -> Optional[Notification]:
        """
        Create a notification, best-effort

        Callers commit their own state change before calling this. Any
        failure here is logged and swallowed so it can never undo or fail
        the triggering operation.

        Returns:
            Created notification, or None if it could not be stored
        """
        try:
            notification = Notification(
                user_id=parse_uuid(user_id, "User"),
                type=NotificationType(notification_type).value,
                title=title[:100],
                message=message[:500],
                related_listing_id=parse_uuid(related_listing_id, "Listing") if related_listing_id else None,
                related_user_id=parse_uuid(related_user_id, "User") if related_user_id else None,
                related_transaction_id=(
                    parse_uuid(related_transaction_id, "Transaction") if related_transaction_id else None
                ),
                action_url=action_url
            )

            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)

            return notification

        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create {notification_type} notification for user {user_id}: {str(e)}")
            return None

    def get_notifications(
        self,
        user_id: UUIDLike,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Notification], int]:
        """Get a user's notifications, newest first"""
        query = self.db.query(Notification).filter(
            Notification.user_id == parse_uuid(user_id, "User")
        )

        if unread_only:
            query = query.filter(Notification.is_read.is_(False))

        total = query.count()
        notifications = query.order_by(desc(Notification.created_at)).offset(skip).limit(limit).all()

        return notifications, total

    def get_unread_count(self, user_id: UUIDLike) -> int:
        """Count unread notifications for a user"""
        return self.db.query(Notification).filter(
            Notification.user_id == parse_uuid(user_id, "User"),
            Notification.is_read.is_(False)
        ).count()

    def mark_read(self, notification_id: UUIDLike, user_id: UUIDLike) -> Notification:
        """Mark one notification as read (no-op if already read)"""
        notification = self.db.query(Notification).filter(
            Notification.id == parse_uuid(notification_id, "Notification"),
            Notification.user_id == parse_uuid(user_id, "User")
        ).first()

        if not notification:
            raise NotFoundError("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utc_now()
            self.db.commit()
            self.db.refresh(notification)

        return notification

    def mark_all_read(self, user_id: UUIDLike) -> int:
        """Mark every unread notification of a user as read; returns count modified"""
        modified = self.db.query(Notification).filter(
            Notification.user_id == parse_uuid(user_id, "User"),
            Notification.is_read.is_(False)
        ).update(
            {Notification.is_read: True, Notification.read_at: utc_now()},
            synchronize_session=False
        )
        self.db.commit()

        return modified
