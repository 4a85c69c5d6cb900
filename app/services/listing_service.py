"""Listing lifecycle service"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import and_, desc, or_
from pydantic import ValidationError as PydanticValidationError
from typing import List, Dict, Any, Optional, Tuple, Union
from datetime import datetime, timedelta
import uuid
import logging

from app.config import settings
from app.core.exceptions import (
    ValidationError,
    NotFoundError,
    AuthorizationError,
    InvalidStateError,
)
from app.models.listing import (
    Listing,
    ListingImage,
    ListingViewDay,
    ListingStatus,
    TERMINAL_LISTING_STATUSES,
)
from app.models.user import User, University
from app.schemas.listing import ListingCreate, ListingFields, ListingUpdate
from app.utils.ids import parse_uuid
from app.utils.time_utils import utc_now, start_of_day

logger = logging.getLogger(__name__)

# Internal state a seller may never write through update()
PROTECTED_FIELDS = {
    "id",
    "seller_id",
    "seller",
    "university_id",
    "university",
    "views",
    "view_history",
    "images",
    "sold_at",
    "sold_to_id",
    "sold_to",
    "expiry_notified_at",
    "created_at",
    "updated_at",
}

EDITABLE_FIELDS = list(ListingFields.model_fields.keys())

# Status changes a seller may request directly
SELLER_STATUS_TRANSITIONS = {
    ListingStatus.draft.value: {ListingStatus.active.value},
    ListingStatus.active.value: {ListingStatus.pending.value, ListingStatus.draft.value},
    ListingStatus.pending.value: {ListingStatus.active.value},
    ListingStatus.expired.value: {ListingStatus.active.value},
}


def correct_expired_status(listing: Listing, now: Optional[datetime] = None) -> bool:
    """
    Flip an active listing whose availability window has closed to expired.

    Applied on every load path before the listing is served or mutated.
    Returns True if the status was changed.
    """
    now = now or utc_now()
    if listing.status == ListingStatus.active.value and listing.available_until < now:
        listing.status = ListingStatus.expired.value
        return True
    return False


class ListingService:
    """Service for the listing lifecycle"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self, listing_id: Union[str, uuid.UUID]) -> Listing:
        """
        Load a listing and apply lazy expiry correction

        The correction is committed on its own so it persists even when the
        operation that triggered the load is later rejected.
        """
        listing = self.db.query(Listing).filter(
            Listing.id == parse_uuid(listing_id, "Listing")
        ).first()

        if not listing:
            raise NotFoundError("Listing not found")

        if correct_expired_status(listing):
            self.db.commit()
            logger.info(f"Listing {listing.id} expired (window closed {listing.available_until})")

        return listing

    def get_listing(self, listing_id: Union[str, uuid.UUID]) -> Listing:
        """Get a single listing with expiry correction applied"""
        return self._load(listing_id)

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    def create_listing(
        self,
        seller_id: Union[str, uuid.UUID],
        university_id: Union[str, uuid.UUID],
        fields: Union[Dict[str, Any], ListingCreate]
    ) -> Listing:
        """
        Create a new listing

        Args:
            seller_id: Owner of the listing
            university_id: Institution the listing is scoped to
            fields: Listing fields (dict or ListingCreate)

        Returns:
            Created listing, active for the university's listing duration
            unless an explicit window was supplied
        """
        if isinstance(fields, ListingCreate):
            data = fields
        else:
            try:
                data = ListingCreate.model_validate(fields)
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e)

        seller = self.db.query(User).filter(User.id == parse_uuid(seller_id, "Seller")).first()
        if not seller:
            raise NotFoundError("Seller not found")

        university = self.db.query(University).filter(
            University.id == parse_uuid(university_id, "University")
        ).first()
        if not university:
            raise NotFoundError("University not found")

        now = utc_now()
        duration_days = university.max_listing_duration_days or settings.LISTING_DURATION_DAYS
        available_from = data.available_from or now
        available_until = data.available_until or (available_from + timedelta(days=duration_days))

        listing = Listing(
            seller_id=seller.id,
            university_id=university.id,
            title=data.title,
            description=data.description,
            category=data.category.value,
            condition=data.condition.value,
            price=data.price,
            original_price=data.original_price,
            is_negotiable=data.is_negotiable,
            location_pickup=data.location_pickup,
            tags=data.tags,
            status=data.status,
            available_from=available_from,
            available_until=available_until,
            views=0,
        )
        correct_expired_status(listing, now)

        self.db.add(listing)
        seller.total_listings += 1
        self.db.commit()
        self.db.refresh(listing)

        logger.info(f"Listing {listing.id} created by seller {seller.id}")

        return listing

    def update_listing(
        self,
        listing_id: Union[str, uuid.UUID],
        editor_id: Union[str, uuid.UUID],
        fields: Union[Dict[str, Any], ListingUpdate]
    ) -> Listing:
        """
        Update a listing as its seller

        Protected internal fields are silently dropped. The merged listing is
        validated as a whole; expiry correction runs before and after the
        change so an edit can never resurrect a listing whose window closed.
        """
        if isinstance(fields, ListingUpdate):
            updates = fields.model_dump(exclude_unset=True)
        else:
            updates = {k: v for k, v in dict(fields).items() if k not in PROTECTED_FIELDS}

        listing = self._load(listing_id)

        if listing.seller_id != parse_uuid(editor_id, "User"):
            raise AuthorizationError("Not authorized to update this listing")

        if listing.status in TERMINAL_LISTING_STATUSES:
            raise InvalidStateError(f"Cannot update a listing that is {listing.status}")

        requested_status = updates.pop("status", None)
        updates = {k: v for k, v in updates.items() if k in EDITABLE_FIELDS}

        merged = {field: getattr(listing, field) for field in EDITABLE_FIELDS}
        merged.update(updates)
        try:
            validated = ListingFields.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e)

        if requested_status and requested_status != listing.status:
            allowed = SELLER_STATUS_TRANSITIONS.get(listing.status, set())
            if requested_status not in allowed:
                raise InvalidStateError(
                    f"Cannot change listing status from {listing.status} to {requested_status}"
                )

        for field in updates:
            value = getattr(validated, field)
            if field in ("category", "condition") and value is not None:
                value = value.value
            setattr(listing, field, value)

        if requested_status:
            listing.status = requested_status

        correct_expired_status(listing)

        self.db.commit()
        self.db.refresh(listing)

        logger.info(f"Listing {listing.id} updated by seller {listing.seller_id}")

        return listing

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    def mark_sold(
        self,
        listing_id: Union[str, uuid.UUID],
        buyer_id: Union[str, uuid.UUID],
        commit: bool = True
    ) -> Listing:
        """Mark a listing as sold to a buyer"""
        listing = self._load(listing_id)

        if listing.status in TERMINAL_LISTING_STATUSES:
            raise InvalidStateError(f"Listing is already {listing.status}")

        buyer = self.db.query(User).filter(User.id == parse_uuid(buyer_id, "Buyer")).first()
        if not buyer:
            raise NotFoundError("Buyer not found")
        if buyer.id == listing.seller_id:
            raise ValidationError.for_field("buyer_id", "Seller cannot be the buyer")

        listing.status = ListingStatus.sold.value
        listing.sold_at = utc_now()
        listing.sold_to_id = buyer.id

        if commit:
            self.db.commit()
            self.db.refresh(listing)

        logger.info(f"Listing {listing.id} marked sold to {listing.sold_to_id}")

        return listing

    def delete_listing(
        self,
        listing_id: Union[str, uuid.UUID],
        editor_id: Union[str, uuid.UUID]
    ) -> Listing:
        """Soft delete a listing (status becomes deleted)"""
        listing = self._load(listing_id)

        if listing.seller_id != parse_uuid(editor_id, "User"):
            raise AuthorizationError("Not authorized to delete this listing")

        if listing.status in TERMINAL_LISTING_STATUSES:
            raise InvalidStateError(f"Listing is already {listing.status}")

        listing.status = ListingStatus.deleted.value
        self.db.commit()
        self.db.refresh(listing)

        logger.info(f"Listing {listing.id} deleted")

        return listing

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def add_images(
        self,
        listing_id: Union[str, uuid.UUID],
        editor_id: Union[str, uuid.UUID],
        image_urls: List[str]
    ) -> Listing:
        """Append image references returned by the image host"""
        listing = self._load(listing_id)

        if listing.seller_id != parse_uuid(editor_id, "User"):
            raise AuthorizationError("Not authorized")

        if listing.status in TERMINAL_LISTING_STATUSES:
            raise InvalidStateError(f"Cannot add images to a listing that is {listing.status}")

        if not image_urls:
            raise ValidationError.for_field("images", "Please upload at least one image")

        existing = len(listing.images)
        if existing + len(image_urls) > settings.LISTING_MAX_IMAGES:
            raise ValidationError.for_field(
                "images",
                f"Maximum {settings.LISTING_MAX_IMAGES} images allowed per listing"
            )

        for index, url in enumerate(image_urls):
            listing.images.append(ListingImage(url=url, display_order=existing + index))

        self.db.commit()
        self.db.refresh(listing)

        return listing

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def record_view(
        self,
        listing_id: Union[str, uuid.UUID],
        viewer_id: Optional[Union[str, uuid.UUID]] = None
    ) -> bool:
        """
        Count a view unless the viewer is the listing's seller

        The counter and today's history bucket are incremented in SQL so
        concurrent viewers never overwrite each other's increments.

        Returns:
            True if the view was counted
        """
        listing_uuid = parse_uuid(listing_id, "Listing")

        seller_id = self.db.query(Listing.seller_id).filter(Listing.id == listing_uuid).scalar()
        if seller_id is None:
            return False

        if viewer_id is not None and seller_id == parse_uuid(viewer_id, "User"):
            return False

        today = start_of_day(utc_now())

        try:
            self.db.query(Listing).filter(Listing.id == listing_uuid).update(
                {Listing.views: Listing.views + 1},
                synchronize_session=False
            )
            self._increment_view_day(listing_uuid, today)
            self._evict_old_view_days(listing_uuid)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return True

    def _increment_view_day(self, listing_id: uuid.UUID, day: datetime) -> None:
        """Increment today's bucket, inserting it if this is the first view of the day"""
        updated = self.db.query(ListingViewDay).filter(
            ListingViewDay.listing_id == listing_id,
            ListingViewDay.day == day
        ).update({ListingViewDay.count: ListingViewDay.count + 1}, synchronize_session=False)

        if updated:
            return

        try:
            with self.db.begin_nested():
                self.db.add(ListingViewDay(listing_id=listing_id, day=day, count=1))
        except IntegrityError:
            # Another request inserted today's bucket first
            self.db.query(ListingViewDay).filter(
                ListingViewDay.listing_id == listing_id,
                ListingViewDay.day == day
            ).update({ListingViewDay.count: ListingViewDay.count + 1}, synchronize_session=False)

    def _evict_old_view_days(self, listing_id: uuid.UUID) -> None:
        """Keep only the most recent VIEW_HISTORY_DAYS buckets"""
        stale_ids = [
            row.id for row in self.db.query(ListingViewDay.id).filter(
                ListingViewDay.listing_id == listing_id
            ).order_by(desc(ListingViewDay.day)).offset(settings.VIEW_HISTORY_DAYS).all()
        ]
        if stale_ids:
            self.db.query(ListingViewDay).filter(
                ListingViewDay.id.in_(stale_ids)
            ).delete(synchronize_session=False)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search_listings(
        self,
        university_id: Optional[str] = None,
        category: Optional[str] = None,
        condition: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        search: Optional[str] = None,
        status: str = ListingStatus.active.value,
        sort_by: str = "newest",
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Listing], int]:
        """
        Search listings with simple filters

        Args:
            university_id: Filter by university
            category: Filter by category
            condition: Filter by condition
            min_price: Minimum price
            max_price: Maximum price
            search: Search in title/description
            status: Lifecycle status (default active)
            sort_by: newest, price_asc, price_desc, views
            skip: Records to skip
            limit: Max records to return

        Returns:
            Tuple of (listings list, total count)
        """
        now = utc_now()
        query = self.db.query(Listing)

        # Rows past their window are logically expired even if not yet corrected
        if status == ListingStatus.active.value:
            query = query.filter(Listing.status == status, Listing.available_until >= now)
        elif status == ListingStatus.expired.value:
            query = query.filter(or_(
                Listing.status == status,
                and_(Listing.status == ListingStatus.active.value, Listing.available_until < now)
            ))
        else:
            query = query.filter(Listing.status == status)

        if university_id:
            query = query.filter(Listing.university_id == parse_uuid(university_id, "University"))

        if category:
            query = query.filter(Listing.category == category)

        if condition:
            query = query.filter(Listing.condition == condition)

        if min_price is not None:
            query = query.filter(Listing.price >= min_price)

        if max_price is not None:
            query = query.filter(Listing.price <= max_price)

        if search:
            search_pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Listing.title.ilike(search_pattern),
                    Listing.description.ilike(search_pattern)
                )
            )

        total = query.count()

        if sort_by == "price_asc":
            query = query.order_by(Listing.price.asc())
        elif sort_by == "price_desc":
            query = query.order_by(desc(Listing.price))
        elif sort_by == "views":
            query = query.order_by(desc(Listing.views))
        else:  # newest
            query = query.order_by(desc(Listing.created_at))

        listings = query.offset(skip).limit(limit).all()

        if sum(correct_expired_status(listing, now) for listing in listings):
            self.db.commit()

        return listings, total

    def get_user_listings(
        self,
        user_id: Union[str, uuid.UUID],
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Listing], int]:
        """Get a seller's listings, newest first, with expiry corrections applied"""
        query = self.db.query(Listing).filter(Listing.seller_id == parse_uuid(user_id, "User"))

        now = utc_now()
        corrected = 0
        for listing in query.filter(
            Listing.status == ListingStatus.active.value,
            Listing.available_until < now
        ).all():
            if correct_expired_status(listing, now):
                corrected += 1
        if corrected:
            self.db.commit()

        if status:
            query = query.filter(Listing.status == status)

        total = query.count()
        listings = query.order_by(desc(Listing.created_at)).offset(skip).limit(limit).all()

        return listings, total
