"""User directory service"""
from sqlalchemy.orm import Session
from sqlalchemy import desc, func
from typing import Dict, Any, Optional, Union
import uuid
import logging

from app.core.exceptions import ValidationError, NotFoundError, AuthorizationError
from app.models.listing import Listing, ListingStatus
from app.models.transaction import Review
from app.models.user import User, University
from app.utils.ids import parse_uuid
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

PROFILE_EDITABLE_FIELDS = {"first_name", "last_name", "bio"}
PROFILE_FIELD_LIMITS = {"first_name": 50, "last_name": 50, "bio": 500}

PROFILE_RECENT_LISTINGS = 6
PROFILE_RECENT_REVIEWS = 5


class UserService:
    """Service for looking up users and managing their public profile"""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: Union[str, uuid.UUID]) -> User:
        """Get a user by ID"""
        user = self.db.query(User).filter(User.id == parse_uuid(user_id, "User")).first()

        if not user:
            raise NotFoundError("User not found")

        return user

    def find_by_email(self, email: str) -> Optional[User]:
        """Find a user by email (case-insensitive)"""
        if not email:
            return None
        return self.db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()

    def get_university(self, university_id: Union[str, uuid.UUID]) -> University:
        """Get a university by ID"""
        university = self.db.query(University).filter(
            University.id == parse_uuid(university_id, "University")
        ).first()

        if not university:
            raise NotFoundError("University not found")

        return university

    def get_profile(self, user_id: Union[str, uuid.UUID]) -> Dict[str, Any]:
        """
        Get a user's public profile

        Returns:
            Dict with the user, their most recent active listings, and the
            most recent reviews they have received
        """
        user = self.get_user(user_id)

        recent_listings = self.db.query(Listing).filter(
            Listing.seller_id == user.id,
            Listing.status == ListingStatus.active.value,
            Listing.available_until >= utc_now()
        ).order_by(desc(Listing.created_at)).limit(PROFILE_RECENT_LISTINGS).all()

        recent_reviews = self.db.query(Review).filter(
            Review.reviewee_id == user.id
        ).order_by(desc(Review.created_at)).limit(PROFILE_RECENT_REVIEWS).all()

        return {
            "user": user,
            "recent_listings": recent_listings,
            "recent_reviews": recent_reviews
        }

    def update_profile(
        self,
        user_id: Union[str, uuid.UUID],
        editor_id: Union[str, uuid.UUID],
        fields: Dict[str, Any]
    ) -> User:
        """
        Update a user's own profile

        Only first name, last name, and bio can be changed here; anything
        else in fields is ignored.
        """
        user = self.get_user(user_id)

        if user.id != parse_uuid(editor_id, "User"):
            raise AuthorizationError("Not authorized to update this profile")

        updates = {k: v for k, v in fields.items() if k in PROFILE_EDITABLE_FIELDS}

        for field, value in updates.items():
            if value is not None:
                value = value.strip()
            if field in ("first_name", "last_name") and not value:
                raise ValidationError.for_field(field, f"{field.replace('_', ' ').capitalize()} is required")
            if value and len(value) > PROFILE_FIELD_LIMITS[field]:
                raise ValidationError.for_field(
                    field,
                    f"{field.replace('_', ' ').capitalize()} cannot exceed {PROFILE_FIELD_LIMITS[field]} characters"
                )
            setattr(user, field, value or None)

        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Profile updated for user {user.id}")

        return user

    def set_profile_image(
        self,
        user_id: Union[str, uuid.UUID],
        editor_id: Union[str, uuid.UUID],
        image_url: str
    ) -> User:
        """Replace a user's profile image URL (owner only)"""
        user = self.get_user(user_id)

        if user.id != parse_uuid(editor_id, "User"):
            raise AuthorizationError("Not authorized to update this profile")

        previous = user.profile_image_url
        user.profile_image_url = image_url
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Profile image for user {user.id} replaced ({previous or 'none'} -> {image_url})")

        return user
