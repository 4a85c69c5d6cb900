"""Conversation service for buyer/seller messaging"""
from sqlalchemy.orm import Session
from sqlalchemy import desc, and_, or_, func, case
from typing import List, Dict, Any, Optional, Tuple, Union
import uuid
import logging

from app.config import settings
from app.core.exceptions import ValidationError, NotFoundError, AuthorizationError
from app.models.listing import Listing
from app.models.message import Message
from app.models.notification import NotificationType
from app.models.user import User
from app.services.notification_service import NotificationService
from app.utils.ids import parse_uuid
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

UUIDLike = Union[str, uuid.UUID]

CONVERSATION_ID_SEPARATOR = "_"


def conversation_id_for(user_a: UUIDLike, user_b: UUIDLike, listing_id: UUIDLike) -> str:
    """
    Derive the conversation key for two users discussing one listing.

    The participant ids are sorted, so the result does not depend on who
    sent first or on argument order.
    """
    first, second = sorted([str(user_a), str(user_b)])
    return CONVERSATION_ID_SEPARATOR.join([first, second, str(listing_id)])


class ConversationService:
    """Service for message threading and read tracking"""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    def send_message(
        self,
        sender_id: UUIDLike,
        recipient_id: UUIDLike,
        listing_id: UUIDLike,
        message_text: str,
        attachments: Optional[List[Dict[str, Any]]] = None
    ) -> Message:
        """
        Send a message about a listing

        Args:
            sender_id: Sending user
            recipient_id: Receiving user
            listing_id: Listing the conversation is about
            message_text: Message body
            attachments: Optional attachment descriptors

        Returns:
            Stored message (unread)
        """
        sender_uuid = parse_uuid(sender_id, "Sender")
        recipient_uuid = parse_uuid(recipient_id, "Recipient")

        if sender_uuid == recipient_uuid:
            raise ValidationError.for_field("recipient_id", "Cannot send message to yourself")

        text = (message_text or "").strip()
        if not text:
            raise ValidationError.for_field("message_text", "Message text is required")
        if len(text) > settings.MESSAGE_MAX_LENGTH:
            raise ValidationError.for_field(
                "message_text",
                f"Message cannot exceed {settings.MESSAGE_MAX_LENGTH} characters"
            )

        listing = self.db.query(Listing).filter(
            Listing.id == parse_uuid(listing_id, "Listing")
        ).first()
        if not listing:
            raise NotFoundError("Listing not found")

        recipient = self.db.query(User).filter(User.id == recipient_uuid).first()
        if not recipient:
            raise NotFoundError("Recipient not found")

        sender = self.db.query(User).filter(User.id == sender_uuid).first()
        if not sender:
            raise NotFoundError("Sender not found")

        conversation_id = conversation_id_for(sender.id, recipient.id, listing.id)

        message = Message(
            conversation_id=conversation_id,
            sender_id=sender.id,
            recipient_id=recipient.id,
            listing_id=listing.id,
            message_text=text,
            attachments=attachments or None,
            is_read=False
        )

        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)

        logger.info(f"Message {message.id} sent in conversation {conversation_id}")

        self.notifications.notify(
            user_id=recipient.id,
            notification_type=NotificationType.new_message,
            title="New Message",
            message=f'{sender.first_name} sent you a message about "{listing.title}"',
            related_listing_id=listing.id,
            related_user_id=sender.id,
            action_url=f"/messages/{conversation_id}"
        )

        return message

    def get_conversations(self, user_id: UUIDLike) -> List[Dict[str, Any]]:
        """
        Get all conversations a user takes part in

        One row per conversation: the latest message, the number of messages
        in it still unread by this user, the listing, and the other
        participant. Sorted by latest message, newest first.
        """
        user_uuid = parse_uuid(user_id, "User")

        unread_for_user = case(
            (and_(Message.recipient_id == user_uuid, Message.is_read.is_(False)), 1),
            else_=0
        )

        ranked = self.db.query(
            Message.id.label("message_id"),
            func.row_number().over(
                partition_by=Message.conversation_id,
                order_by=(desc(Message.created_at), desc(Message.id))
            ).label("position"),
            func.sum(unread_for_user).over(
                partition_by=Message.conversation_id
            ).label("unread_count")
        ).filter(
            or_(Message.sender_id == user_uuid, Message.recipient_id == user_uuid)
        ).subquery()

        rows = self.db.query(Message, ranked.c.unread_count).join(
            ranked, Message.id == ranked.c.message_id
        ).filter(
            ranked.c.position == 1
        ).order_by(desc(Message.created_at)).all()

        conversations = []
        for last_message, unread_count in rows:
            other_user = (
                last_message.recipient if last_message.sender_id == user_uuid else last_message.sender
            )
            conversations.append({
                "conversation_id": last_message.conversation_id,
                "last_message": last_message,
                "unread_count": int(unread_count or 0),
                "listing": last_message.listing,
                "other_user": other_user
            })

        return conversations

    def get_messages(
        self,
        conversation_id: str,
        requester_id: UUIDLike,
        page: int = 1,
        page_size: int = 50
    ) -> Tuple[List[Message], int]:
        """
        Get one page of a conversation and mark it read for the requester

        Page 1 holds the newest page_size messages; each page is returned
        oldest first.

        Returns:
            Tuple of (messages, total message count)
        """
        if page < 1:
            raise ValidationError.for_field("page", "Page must be at least 1")
        if page_size < 1 or page_size > 100:
            raise ValidationError.for_field("page_size", "Page size must be between 1 and 100")

        requester_uuid = parse_uuid(requester_id, "User")

        first_message = self.db.query(Message).filter(
            Message.conversation_id == conversation_id
        ).order_by(Message.created_at.asc(), Message.id.asc()).first()

        if not first_message:
            raise NotFoundError("Conversation not found")

        if requester_uuid not in (first_message.sender_id, first_message.recipient_id):
            raise AuthorizationError("Not authorized to view this conversation")

        self.mark_conversation_read(conversation_id, requester_uuid)

        query = self.db.query(Message).filter(Message.conversation_id == conversation_id)
        total = query.count()

        newest_first = query.order_by(
            desc(Message.created_at)
        ).offset((page - 1) * page_size).limit(page_size).all()

        return list(reversed(newest_first)), total

    def get_unread_count(self, user_id: UUIDLike) -> int:
        """Count unread messages addressed to a user across all conversations"""
        return self.db.query(Message).filter(
            Message.recipient_id == parse_uuid(user_id, "User"),
            Message.is_read.is_(False)
        ).count()

    def mark_conversation_read(self, conversation_id: str, user_id: UUIDLike) -> int:
        """
        Mark all unread messages addressed to a user in a conversation as read

        Single bulk UPDATE; messages that arrive after it runs stay unread.

        Returns:
            Number of messages modified (0 on repeat calls)
        """
        modified = self.db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.recipient_id == parse_uuid(user_id, "User"),
            Message.is_read.is_(False)
        ).update(
            {Message.is_read: True, Message.read_at: utc_now()},
            synchronize_session=False
        )
        self.db.commit()

        if modified:
            logger.info(f"Marked {modified} messages read in conversation {conversation_id}")

        return modified
