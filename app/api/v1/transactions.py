"""Transaction and review API endpoints"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from app.database import get_db
from app.core.dependencies import get_current_user
from app.models.user import User
from app.services.listing_service import ListingService
from app.services.transaction_service import TransactionService
from app.schemas.transaction import (
    TransactionCreate,
    TransactionResponse,
    TransactionListResponse,
    MeetupSchedule,
    ReasonRequest,
    ReviewCreate,
    ReviewResponse,
)

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def open_transaction(
    transaction_data: TransactionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Open a transaction for a listing as the buyer

    - **listing_id**: Listing being bought
    - **final_price**: Agreed price
    - **payment_method**: cash, venmo, zelle, paypal, or other (informational)

    Only one open transaction may exist per listing.
    """
    listing = ListingService(db).get_listing(transaction_data.listing_id)

    service = TransactionService(db)
    transaction = service.open_transaction(
        listing_id=listing.id,
        buyer_id=current_user.id,
        seller_id=listing.seller_id,
        final_price=transaction_data.final_price,
        payment_method=transaction_data.payment_method.value
    )
    return TransactionResponse.model_validate(transaction)


@router.get("", response_model=TransactionListResponse)
def get_my_transactions(
    role: Optional[str] = Query(None, pattern="^(buyer|seller)$"),
    transaction_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get transactions the current user takes part in, newest first"""
    service = TransactionService(db)
    transactions, total = service.get_user_transactions(
        user_id=current_user.id,
        role=role,
        status=transaction_status,
        skip=(page - 1) * page_size,
        limit=page_size
    )

    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a transaction (participants only)"""
    service = TransactionService(db)
    return TransactionResponse.model_validate(service.get_transaction(transaction_id, current_user.id))


@router.post("/{transaction_id}/confirm", response_model=TransactionResponse)
def confirm_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """pending -> confirmed"""
    service = TransactionService(db)
    return TransactionResponse.model_validate(service.confirm(transaction_id, current_user.id))


@router.post("/{transaction_id}/meetup", response_model=TransactionResponse)
def schedule_meetup(
    transaction_id: str,
    meetup_data: MeetupSchedule,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Schedule the meetup for a confirmed transaction

    - **location**: Where to meet
    - **scheduled_time**: When to meet
    - **notes**: Optional notes
    """
    service = TransactionService(db)
    transaction = service.schedule_meetup(
        transaction_id=transaction_id,
        user_id=current_user.id,
        location=meetup_data.location,
        scheduled_time=meetup_data.scheduled_time,
        notes=meetup_data.notes
    )
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/complete", response_model=TransactionResponse)
def complete_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Complete the transaction; the listing is marked sold to the buyer"""
    service = TransactionService(db)
    return TransactionResponse.model_validate(service.complete(transaction_id, current_user.id))


@router.post("/{transaction_id}/cancel", response_model=TransactionResponse)
def cancel_transaction(
    transaction_id: str,
    reason_data: ReasonRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cancel a transaction that has not completed"""
    service = TransactionService(db)
    transaction = service.cancel(transaction_id, current_user.id, reason_data.reason)
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/dispute", response_model=TransactionResponse)
def dispute_transaction(
    transaction_id: str,
    reason_data: ReasonRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Flag a transaction that has not completed as disputed"""
    service = TransactionService(db)
    transaction = service.dispute(transaction_id, current_user.id, reason_data.reason)
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/review", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def submit_review(
    transaction_id: str,
    review_data: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Review the other party of a completed transaction

    - **rating**: 1-5 stars
    - **review_text**: Optional, up to 500 characters
    - **communication_rating** / **accuracy_rating** / **reliability_rating**: Optional, 1-5

    Each participant can review a transaction once.
    """
    service = TransactionService(db)
    review = service.submit_review(
        transaction_id=transaction_id,
        reviewer_id=current_user.id,
        rating=review_data.rating,
        review_text=review_data.review_text,
        subratings={
            "communication": review_data.communication_rating,
            "accuracy": review_data.accuracy_rating,
            "reliability": review_data.reliability_rating,
        }
    )
    return ReviewResponse.model_validate(review)
