"""Transaction and reputation service"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import desc, func, or_
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Dict, Any, Optional, Tuple, Union, Iterable
from datetime import datetime
import uuid
import logging

from app.core.exceptions import (
    ValidationError,
    NotFoundError,
    AuthorizationError,
    InvalidStateError,
    ConflictError,
)
from app.models.listing import TERMINAL_LISTING_STATUSES
from app.models.notification import NotificationType
from app.models.transaction import (
    Transaction,
    Review,
    TransactionStatus,
    PaymentMethod,
    ReviewType,
)
from app.models.user import User
from app.services.listing_service import ListingService
from app.services.notification_service import NotificationService
from app.utils.ids import parse_uuid
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

UUIDLike = Union[str, uuid.UUID]

DEFAULT_REPUTATION = 5.0

SUBRATING_FIELDS = {
    "communication": "communication_rating",
    "accuracy": "accuracy_rating",
    "reliability": "reliability_rating",
}

NON_TERMINAL_STATUSES = {
    TransactionStatus.pending.value,
    TransactionStatus.confirmed.value,
    TransactionStatus.meetup_scheduled.value,
}

# Forward path; cancel and dispute are allowed from any non-terminal state
FORWARD_TRANSITIONS = {
    TransactionStatus.pending.value: TransactionStatus.confirmed.value,
    TransactionStatus.confirmed.value: TransactionStatus.meetup_scheduled.value,
    TransactionStatus.meetup_scheduled.value: TransactionStatus.completed.value,
}


def can_transition(current: str, target: str) -> bool:
    """Whether a transaction may move from current to target status"""
    if current not in NON_TERMINAL_STATUSES:
        return False
    if target in (TransactionStatus.cancelled.value, TransactionStatus.disputed.value):
        return True
    return FORWARD_TRANSITIONS.get(current) == target


def compute_reputation(ratings: Iterable[int]) -> float:
    """Mean of all ratings rounded half up to 2 decimals; 5.0 when there are none"""
    ratings = list(ratings)
    if not ratings:
        return DEFAULT_REPUTATION
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class TransactionService:
    """Service for the offline sale handshake, reviews, and reputation"""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id: UUIDLike, user_id: UUIDLike) -> Transaction:
        """Get a transaction visible to one of its participants"""
        transaction = self.db.query(Transaction).filter(
            Transaction.id == parse_uuid(transaction_id, "Transaction")
        ).first()

        if not transaction:
            raise NotFoundError("Transaction not found")

        if not transaction.is_participant(parse_uuid(user_id, "User")):
            raise AuthorizationError("Not authorized to access this transaction")

        return transaction

    def get_user_transactions(
        self,
        user_id: UUIDLike,
        role: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Transaction], int]:
        """
        Get transactions a user takes part in

        Args:
            user_id: User ID
            role: "buyer", "seller", or None for both
            status: Filter by transaction status
            skip: Records to skip
            limit: Max records to return

        Returns:
            Tuple of (transactions, total count)
        """
        user_uuid = parse_uuid(user_id, "User")
        query = self.db.query(Transaction)

        if role == "buyer":
            query = query.filter(Transaction.buyer_id == user_uuid)
        elif role == "seller":
            query = query.filter(Transaction.seller_id == user_uuid)
        else:
            query = query.filter(or_(Transaction.buyer_id == user_uuid, Transaction.seller_id == user_uuid))

        if status:
            query = query.filter(Transaction.transaction_status == status)

        total = query.count()
        transactions = query.order_by(desc(Transaction.created_at)).offset(skip).limit(limit).all()

        return transactions, total

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    def open_transaction(
        self,
        listing_id: UUIDLike,
        buyer_id: UUIDLike,
        seller_id: UUIDLike,
        final_price: Union[Decimal, float, int, str],
        payment_method: str = PaymentMethod.cash.value
    ) -> Transaction:
        """
        Open a pending transaction for a listing

        Only one non-cancelled transaction may exist per listing; the
        database enforces this with a partial unique index.
        """
        buyer_uuid = parse_uuid(buyer_id, "Buyer")
        seller_uuid = parse_uuid(seller_id, "Seller")

        if buyer_uuid == seller_uuid:
            raise ValidationError.for_field("buyer_id", "Buyer and seller must be different users")

        try:
            price = Decimal(str(final_price))
        except (InvalidOperation, ValueError):
            raise ValidationError.for_field("final_price", "Final price must be a number")
        if not price.is_finite() or price < 0:
            raise ValidationError.for_field("final_price", "Final price cannot be negative")

        try:
            method = PaymentMethod(payment_method).value
        except ValueError:
            raise ValidationError.for_field(
                "payment_method",
                f"Payment method must be one of: {', '.join(m.value for m in PaymentMethod)}"
            )

        listing = ListingService(self.db).get_listing(listing_id)

        if listing.seller_id != seller_uuid:
            raise ValidationError.for_field("seller_id", "Seller does not own this listing")

        if listing.status in TERMINAL_LISTING_STATUSES:
            raise InvalidStateError(f"Cannot open a transaction on a listing that is {listing.status}")

        buyer = self.db.query(User).filter(User.id == buyer_uuid).first()
        if not buyer:
            raise NotFoundError("Buyer not found")

        existing = self.db.query(Transaction).filter(
            Transaction.listing_id == listing.id,
            Transaction.transaction_status != TransactionStatus.cancelled.value
        ).first()
        if existing:
            raise ConflictError("An active transaction already exists for this listing")

        transaction = Transaction(
            listing_id=listing.id,
            buyer_id=buyer_uuid,
            seller_id=seller_uuid,
            final_price=price,
            payment_method=method,
            transaction_status=TransactionStatus.pending.value
        )

        try:
            self.db.add(transaction)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("An active transaction already exists for this listing")

        self.db.refresh(transaction)

        logger.info(f"Transaction {transaction.id} opened for listing {listing.id}")

        self._notify_counterparty(
            transaction,
            actor_id=buyer_uuid,
            title="New Transaction",
            message=f'A transaction was opened for "{listing.title}"'
        )

        return transaction

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _transition(self, transaction: Transaction, target: str) -> None:
        current = transaction.transaction_status
        if not can_transition(current, target):
            raise InvalidStateError(f"Cannot move transaction from {current} to {target}")
        transaction.transaction_status = target

    def confirm(self, transaction_id: UUIDLike, user_id: UUIDLike) -> Transaction:
        """pending -> confirmed"""
        transaction = self.get_transaction(transaction_id, user_id)
        self._transition(transaction, TransactionStatus.confirmed.value)
        return self._commit_transition(transaction, user_id, "Transaction confirmed")

    def schedule_meetup(
        self,
        transaction_id: UUIDLike,
        user_id: UUIDLike,
        location: str,
        scheduled_time: datetime,
        notes: Optional[str] = None
    ) -> Transaction:
        """confirmed -> meetup_scheduled, recording meeting details"""
        if not location or not location.strip():
            raise ValidationError.for_field("location", "Meeting location is required")

        transaction = self.get_transaction(transaction_id, user_id)
        self._transition(transaction, TransactionStatus.meetup_scheduled.value)

        transaction.meeting_location = location.strip()
        transaction.meeting_time = scheduled_time
        transaction.meeting_notes = notes

        return self._commit_transition(transaction, user_id, "Meetup scheduled")

    def complete(self, transaction_id: UUIDLike, user_id: UUIDLike) -> Transaction:
        """
        meetup_scheduled -> completed

        The listing is marked sold to the buyer and both parties' counters
        are updated in the same commit.
        """
        transaction = self.get_transaction(transaction_id, user_id)

        if not can_transition(transaction.transaction_status, TransactionStatus.completed.value):
            raise InvalidStateError(
                f"Cannot move transaction from {transaction.transaction_status} to completed"
            )

        listing_service = ListingService(self.db)
        listing_service.mark_sold(transaction.listing_id, transaction.buyer_id, commit=False)

        transaction.transaction_status = TransactionStatus.completed.value
        transaction.completed_at = utc_now()

        seller = self.db.query(User).filter(User.id == transaction.seller_id).first()
        buyer = self.db.query(User).filter(User.id == transaction.buyer_id).first()
        if seller:
            seller.total_sales += 1
        if buyer:
            buyer.total_purchases += 1

        return self._commit_transition(transaction, user_id, "Transaction completed")

    def cancel(self, transaction_id: UUIDLike, user_id: UUIDLike, reason: str) -> Transaction:
        """Any non-terminal state -> cancelled"""
        if not reason or not reason.strip():
            raise ValidationError.for_field("reason", "Cancellation reason is required")

        transaction = self.get_transaction(transaction_id, user_id)
        self._transition(transaction, TransactionStatus.cancelled.value)

        transaction.cancelled_at = utc_now()
        transaction.cancellation_reason = reason.strip()

        return self._commit_transition(transaction, user_id, "Transaction cancelled")

    def dispute(self, transaction_id: UUIDLike, user_id: UUIDLike, reason: str) -> Transaction:
        """Any non-terminal state -> disputed"""
        if not reason or not reason.strip():
            raise ValidationError.for_field("reason", "Dispute reason is required")

        transaction = self.get_transaction(transaction_id, user_id)
        self._transition(transaction, TransactionStatus.disputed.value)

        transaction.disputed_at = utc_now()
        transaction.dispute_reason = reason.strip()

        return self._commit_transition(transaction, user_id, "Transaction disputed")

    def _commit_transition(self, transaction: Transaction, actor_id: UUIDLike, title: str) -> Transaction:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(transaction)

        logger.info(f"Transaction {transaction.id} is now {transaction.transaction_status}")

        self._notify_counterparty(
            transaction,
            actor_id=parse_uuid(actor_id, "User"),
            title=title,
            message=f"Your transaction is now {transaction.transaction_status.replace('_', ' ')}"
        )

        return transaction

    def _notify_counterparty(self, transaction: Transaction, actor_id: uuid.UUID, title: str, message: str) -> None:
        counterparty = transaction.seller_id if actor_id == transaction.buyer_id else transaction.buyer_id
        self.notifications.notify(
            user_id=counterparty,
            notification_type=NotificationType.transaction_update,
            title=title,
            message=message,
            related_listing_id=transaction.listing_id,
            related_user_id=actor_id,
            related_transaction_id=transaction.id,
            action_url=f"/transactions/{transaction.id}"
        )

    # ------------------------------------------------------------------
    # Reviews and reputation
    # ------------------------------------------------------------------

    def submit_review(
        self,
        transaction_id: UUIDLike,
        reviewer_id: UUIDLike,
        rating: int,
        review_text: Optional[str] = None,
        subratings: Optional[Dict[str, int]] = None
    ) -> Review:
        """
        Review the other party of a completed transaction

        Each participant may review a transaction once. The reviewee's
        reputation is recomputed from every rating they have received and
        committed together with the review.

        Args:
            transaction_id: Completed transaction
            reviewer_id: Buyer or seller of the transaction
            rating: 1-5
            review_text: Optional text (max 500 characters)
            subratings: Optional {"communication"|"accuracy"|"reliability": 1-5}

        Returns:
            Created review
        """
        reviewer_uuid = parse_uuid(reviewer_id, "User")

        transaction = self.db.query(Transaction).filter(
            Transaction.id == parse_uuid(transaction_id, "Transaction")
        ).first()
        if not transaction:
            raise NotFoundError("Transaction not found")

        if not transaction.is_participant(reviewer_uuid):
            raise AuthorizationError("Only the buyer or seller can review this transaction")

        if transaction.transaction_status != TransactionStatus.completed.value:
            raise InvalidStateError("Only completed transactions can be reviewed")

        self._validate_rating("rating", rating)

        if review_text is not None:
            review_text = review_text.strip() or None
            if review_text and len(review_text) > 500:
                raise ValidationError.for_field("review_text", "Review cannot exceed 500 characters")

        columns = {}
        for key, value in (subratings or {}).items():
            if key not in SUBRATING_FIELDS:
                raise ValidationError.for_field(f"subratings.{key}", "Unknown rating category")
            if value is not None:
                self._validate_rating(f"subratings.{key}", value)
                columns[SUBRATING_FIELDS[key]] = value

        existing = self.db.query(Review).filter(
            Review.transaction_id == transaction.id,
            Review.reviewer_id == reviewer_uuid
        ).first()
        if existing:
            raise ConflictError("You have already reviewed this transaction")

        if reviewer_uuid == transaction.buyer_id:
            reviewee_id = transaction.seller_id
            review_type = ReviewType.buyer_to_seller.value
        else:
            reviewee_id = transaction.buyer_id
            review_type = ReviewType.seller_to_buyer.value

        review = Review(
            transaction_id=transaction.id,
            reviewer_id=reviewer_uuid,
            reviewee_id=reviewee_id,
            rating=rating,
            review_text=review_text,
            review_type=review_type,
            **columns
        )

        try:
            self.db.add(review)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("You have already reviewed this transaction")

        try:
            reputation = self.recompute_reputation(reviewee_id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("You have already reviewed this transaction")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(review)

        logger.info(f"Review {review.id} recorded; user {reviewee_id} reputation now {reputation}")

        self.notifications.notify(
            user_id=reviewee_id,
            notification_type=NotificationType.review_received,
            title="New Review",
            message=f"You received a {rating}-star review",
            related_listing_id=transaction.listing_id,
            related_user_id=reviewer_uuid,
            related_transaction_id=transaction.id,
            action_url=f"/users/{reviewee_id}/reviews"
        )

        return review

    @staticmethod
    def _validate_rating(field: str, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
            raise ValidationError.for_field(field, "Rating must be an integer between 1 and 5")

    def recompute_reputation(self, user_id: UUIDLike) -> float:
        """
        Recompute a user's reputation from every rating they have received

        Flushes but does not commit; the caller commits.
        """
        user_uuid = parse_uuid(user_id, "User")
        ratings = [
            row.rating for row in self.db.query(Review.rating).filter(Review.reviewee_id == user_uuid).all()
        ]
        reputation = compute_reputation(ratings)

        user = self.db.query(User).filter(User.id == user_uuid).first()
        if not user:
            raise NotFoundError("User not found")

        user.reputation_score = reputation
        self.db.flush()

        return reputation

    def get_user_reviews(
        self,
        user_id: UUIDLike,
        skip: int = 0,
        limit: int = 10
    ) -> Tuple[List[Review], int, Dict[int, int]]:
        """
        Get reviews a user has received, newest first

        Returns:
            Tuple of (reviews, total count, {rating: count})
        """
        user_uuid = parse_uuid(user_id, "User")
        query = self.db.query(Review).filter(Review.reviewee_id == user_uuid)

        total = query.count()
        reviews = query.order_by(desc(Review.created_at)).offset(skip).limit(limit).all()

        distribution = {
            rating: count for rating, count in self.db.query(
                Review.rating, func.count(Review.id)
            ).filter(
                Review.reviewee_id == user_uuid
            ).group_by(Review.rating).all()
        }

        return reviews, total, distribution
