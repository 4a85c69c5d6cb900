"""Database models"""
from app.models.user import User, University
from app.models.listing import Listing, ListingImage, ListingViewDay
from app.models.message import Message
from app.models.transaction import Transaction, Review
from app.models.notification import Notification

__all__ = [
    "User",
    "University",
    "Listing",
    "ListingImage",
    "ListingViewDay",
    "Message",
    "Transaction",
    "Review",
    "Notification",
]
