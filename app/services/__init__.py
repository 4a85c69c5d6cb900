"""Business logic services"""
from app.services.listing_service import ListingService
from app.services.conversation_service import ConversationService
from app.services.transaction_service import TransactionService
from app.services.notification_service import NotificationService
from app.services.user_service import UserService

__all__ = [
    "ListingService",
    "ConversationService",
    "TransactionService",
    "NotificationService",
    "UserService",
]
