"""User profile API endpoints"""
from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import Optional

from app.database import get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import AuthorizationError
from app.models.user import User
from app.services.image_host_service import image_host_service, ImageHostError
from app.services.listing_service import ListingService
from app.services.transaction_service import TransactionService
from app.services.user_service import UserService
from app.schemas.listing import ListingResponse, ListingListResponse
from app.schemas.transaction import ReviewResponse, ReviewListResponse
from app.schemas.user import (
    CurrentUserResponse,
    UserResponse,
    ProfileUpdate,
    ProfileResponse,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=CurrentUserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """Get the current user's account"""
    return CurrentUserResponse.model_validate(current_user)


@router.patch("/me", response_model=CurrentUserResponse)
def update_me(
    profile_data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update the current user's profile

    - **first_name** / **last_name**: Up to 50 characters
    - **bio**: Up to 500 characters
    """
    service = UserService(db)
    user = service.update_profile(
        user_id=current_user.id,
        editor_id=current_user.id,
        fields=profile_data.model_dump(exclude_unset=True)
    )
    return CurrentUserResponse.model_validate(user)


@router.get("/{user_id}", response_model=ProfileResponse)
def get_profile(user_id: str, db: Session = Depends(get_db)):
    """
    Get a user's public profile

    Includes recent active listings and recent reviews received.
    No authentication required
    """
    service = UserService(db)
    profile = service.get_profile(user_id)

    return ProfileResponse(
        user=UserResponse.model_validate(profile["user"]),
        recent_listings=[ListingResponse.model_validate(listing) for listing in profile["recent_listings"]],
        recent_reviews=[ReviewResponse.model_validate(r) for r in profile["recent_reviews"]]
    )


@router.post("/{user_id}/profile-image", response_model=CurrentUserResponse)
async def upload_profile_image(
    user_id: str,
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Upload a new profile image (own profile only)

    - **image**: jpg, jpeg, png, gif, or webp file

    The new image replaces any previous one on the profile.
    """
    if user_id != str(current_user.id):
        raise AuthorizationError("Not authorized to update this profile")

    try:
        content = await image.read()
        url = await image_host_service.upload_image(
            content=content,
            filename=image.filename or "image",
            content_type=image.content_type,
            folder="profiles"
        )
    except ImageHostError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Error uploading image: {str(e)}"
        )

    service = UserService(db)
    user = await run_in_threadpool(service.set_profile_image, current_user.id, current_user.id, url)
    return await run_in_threadpool(CurrentUserResponse.model_validate, user)


@router.get("/{user_id}/listings", response_model=ListingListResponse)
def get_user_listings(
    user_id: str,
    listing_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Get a user's listings, newest first"""
    user = UserService(db).get_user(user_id)

    service = ListingService(db)
    listings, total = service.get_user_listings(
        user_id=user.id,
        status=listing_status,
        skip=(page - 1) * page_size,
        limit=page_size
    )

    return ListingListResponse(
        listings=[ListingResponse.model_validate(listing) for listing in listings],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size
    )


@router.get("/{user_id}/reviews", response_model=ReviewListResponse)
def get_user_reviews(
    user_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    """
    Get reviews a user has received

    Returns the reviews newest first, the user's reputation score, and the
    count of reviews per star rating.
    """
    user = UserService(db).get_user(user_id)

    service = TransactionService(db)
    reviews, total, distribution = service.get_user_reviews(
        user_id=user.id,
        skip=(page - 1) * page_size,
        limit=page_size
    )

    return ReviewListResponse(
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
        total=total,
        page=page,
        page_size=page_size,
        reputation_score=user.reputation_score,
        rating_distribution={rating: distribution.get(rating, 0) for rating in range(1, 6)}
    )
