"""Listing API endpoints"""
from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import Optional, List

from app.config import settings
from app.database import get_db
from app.core.dependencies import get_current_user, get_optional_user
from app.core.exceptions import AuthorizationError, ValidationError
from app.models.user import User
from app.services.listing_service import ListingService
from app.services.image_host_service import image_host_service, ImageHostError
from app.schemas.listing import (
    ListingCreate,
    ListingUpdate,
    ListingResponse,
    ListingDetailResponse,
    ListingListResponse,
    MarkSoldRequest,
)

router = APIRouter(prefix="/listings", tags=["listings"])


@router.get("", response_model=ListingListResponse)
def search_listings(
    university_id: Optional[str] = Query(None, description="Filter by university"),
    category: Optional[str] = Query(None, description="Filter by category"),
    condition: Optional[str] = Query(None, description="Filter by condition"),
    min_price: Optional[float] = Query(None, ge=0, description="Minimum price filter"),
    max_price: Optional[float] = Query(None, ge=0, description="Maximum price filter"),
    search: Optional[str] = Query(None, description="Search in title and description"),
    listing_status: str = Query("active", alias="status", pattern="^(draft|active|pending|sold|expired)$"),
    sort_by: str = Query("newest", pattern="^(newest|price_asc|price_desc|views)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """
    Search listings

    - **university_id**: Only listings from this university
    - **category** / **condition**: Exact match filters
    - **min_price** / **max_price**: Inclusive price range
    - **search**: Substring match on title and description
    - **status**: Lifecycle status (default active)
    - **sort_by**: newest, price_asc, price_desc, views

    No authentication required
    """
    skip = (page - 1) * page_size
    service = ListingService(db)
    listings, total = service.search_listings(
        university_id=university_id,
        category=category,
        condition=condition,
        min_price=min_price,
        max_price=max_price,
        search=search,
        status=listing_status,
        sort_by=sort_by,
        skip=skip,
        limit=page_size
    )

    return ListingListResponse(
        listings=[ListingResponse.model_validate(listing) for listing in listings],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size
    )


@router.post("", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
def create_listing(
    listing_data: ListingCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a listing at the current user's university

    The listing is active for the university's listing duration
    (30 days by default) unless **available_until** is given.
    """
    service = ListingService(db)
    listing = service.create_listing(
        seller_id=current_user.id,
        university_id=current_user.university_id,
        fields=listing_data
    )
    return ListingResponse.model_validate(listing)


@router.get("/{listing_id}", response_model=ListingDetailResponse)
def get_listing(
    listing_id: str,
    count_view: bool = Query(True, description="Count this request as a view"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """
    Get a listing

    Views by the seller are not counted. View history is only returned
    to the seller.
    """
    service = ListingService(db)
    listing = service.get_listing(listing_id)

    if count_view:
        service.record_view(listing.id, current_user.id if current_user else None)
        db.refresh(listing)

    response = ListingDetailResponse.model_validate(listing)
    if not current_user or current_user.id != listing.seller_id:
        response.view_history = []
    return response


@router.patch("/{listing_id}", response_model=ListingResponse)
def update_listing(
    listing_id: str,
    update_data: ListingUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update a listing (seller only)

    Sold or deleted listings cannot be edited. An expired listing can be
    reactivated by setting **status** to active together with a future
    **available_until**.
    """
    service = ListingService(db)
    listing = service.update_listing(
        listing_id=listing_id,
        editor_id=current_user.id,
        fields=update_data
    )
    return ListingResponse.model_validate(listing)


@router.delete("/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_listing(
    listing_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Soft delete a listing (seller only)"""
    service = ListingService(db)
    service.delete_listing(listing_id=listing_id, editor_id=current_user.id)
    return None


@router.post("/{listing_id}/sold", response_model=ListingResponse)
def mark_listing_sold(
    listing_id: str,
    sold_data: MarkSoldRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark a listing sold to a buyer (seller only)"""
    service = ListingService(db)
    listing = service.get_listing(listing_id)

    if listing.seller_id != current_user.id:
        raise AuthorizationError("Not authorized to update this listing")

    listing = service.mark_sold(listing.id, sold_data.buyer_id)
    return ListingResponse.model_validate(listing)


@router.post("/{listing_id}/images", response_model=ListingResponse)
async def upload_listing_images(
    listing_id: str,
    images: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Upload images for a listing (seller only, max 5 per listing)

    - **images**: jpg, jpeg, png, gif, or webp files

    Files are stored on the external image host; the listing keeps the
    returned URLs in upload order.
    """
    service = ListingService(db)
    listing = await run_in_threadpool(service.get_listing, listing_id)

    if listing.seller_id != current_user.id:
        raise AuthorizationError("Not authorized")

    image_count = await run_in_threadpool(lambda: len(listing.images))
    if image_count + len(images) > settings.LISTING_MAX_IMAGES:
        raise ValidationError.for_field(
            "images",
            f"Maximum {settings.LISTING_MAX_IMAGES} images allowed per listing"
        )

    urls = []
    try:
        for image in images:
            content = await image.read()
            urls.append(await image_host_service.upload_image(
                content=content,
                filename=image.filename or "image",
                content_type=image.content_type
            ))
    except ImageHostError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Error uploading image: {str(e)}"
        )

    listing = await run_in_threadpool(service.add_images, listing.id, current_user.id, urls)
    return await run_in_threadpool(ListingResponse.model_validate, listing)
