"""
Listing and user review API endpoints.
"""

from fastapi import APIRouter, Depends, Path, status
from toolshare.models.user import User
from toolshare.schemas.review import (
    ListingReviewCreate,
    ReviewCreatedResponse,
    ReviewListResponse,
    UserReviewCreate,
)
from toolshare.services.review import ReviewService
from toolshare.utils.dependencies import get_current_user, get_review_service
from toolshare.utils.validators import parse_uuid


listing_review_router = APIRouter(prefix="/listing-review", tags=["Reviews"])
user_review_router = APIRouter(prefix="/user-review", tags=["Reviews"])


@listing_review_router.post(
    "/create-review",
    response_model=ReviewCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Review a listing"
)
async def create_listing_review(
    review_data: ListingReviewCreate,
    current_user: User = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service)
) -> ReviewCreatedResponse:
    return await review_service.create_listing_review(current_user, review_data)


@listing_review_router.get(
    "/get-reviews/{listing_id}",
    response_model=ReviewListResponse,
    summary="Reviews of a listing"
)
async def get_listing_reviews(
    listing_id: str = Path(..., description="Listing ID"),
    current_user: User = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service)
) -> ReviewListResponse:
    reviews = await review_service.list_listing_reviews(parse_uuid(listing_id, "listingId"))
    return ReviewListResponse(reviews=reviews)


@user_review_router.post(
    "/create-review/{reviewee_id}",
    response_model=ReviewCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Review a user"
)
async def create_user_review(
    review_data: UserReviewCreate,
    reviewee_id: str = Path(..., description="ID of the user being reviewed"),
    current_user: User = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service)
) -> ReviewCreatedResponse:
    return await review_service.create_user_review(
        current_user, parse_uuid(reviewee_id, "revieweeId"), review_data
    )


@user_review_router.get(
    "/get-reviews/{reviewee_id}",
    response_model=ReviewListResponse,
    summary="Reviews of a user"
)
async def get_user_reviews(
    reviewee_id: str = Path(..., description="ID of the reviewed user"),
    current_user: User = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service)
) -> ReviewListResponse:
    reviews = await review_service.list_user_reviews(parse_uuid(reviewee_id, "revieweeId"))
    return ReviewListResponse(reviews=reviews)
