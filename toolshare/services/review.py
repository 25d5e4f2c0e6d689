"""
Review aggregation service.
Inserting a review and refreshing the subject's average rating happen in one
transaction, so the stored average always matches the stored reviews.
"""

from typing import Iterable, List
from toolshare.database import UnitOfWork
from toolshare.models.user import User
from toolshare.repositories.listing import ListingRepository
from toolshare.repositories.review import ListingReviewRepository, UserReviewRepository
from toolshare.repositories.user import UserRepository
from toolshare.schemas.common import UserSummary
from toolshare.schemas.review import ListingReviewCreate, ReviewCreatedResponse, ReviewOut, UserReviewCreate
from toolshare.utils.exceptions import BadRequestError, ListingNotFoundError, NotFoundError
import uuid
import logging

logger = logging.getLogger(__name__)


def average_rating(ratings: Iterable[float]) -> float:
    """Arithmetic mean, 0 when there are no ratings."""
    ratings = list(ratings)
    if not ratings:
        return 0.0
    return sum(ratings) / len(ratings)


def _review_out(review, subject_id: uuid.UUID, reviewer: User = None) -> ReviewOut:
    reviewer = reviewer or review.reviewer
    return ReviewOut(
        id=review.id,
        subject_id=subject_id,
        reviewer_id=review.reviewer_id,
        reviewer=UserSummary(id=reviewer.id, name=reviewer.name) if reviewer is not None else None,
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at,
    )


class ReviewService:
    """Creates reviews and keeps denormalized ratings current."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def create_listing_review(self, reviewer: User, review_data: ListingReviewCreate) -> ReviewCreatedResponse:
        """
        Review a listing and recompute its rating.

        Raises:
            ListingNotFoundError: If the listing doesn't exist
            BadRequestError: If the reviewer owns the listing
        """
        async with self.uow.transaction() as session:
            listing_repo = ListingRepository(session)
            listing = await listing_repo.get_by_id(review_data.listing_id)
            if listing is None:
                raise ListingNotFoundError(str(review_data.listing_id))
            if listing.owner_id == reviewer.id:
                raise BadRequestError("You cannot review your own listing")

            review_repo = ListingReviewRepository(session)
            review = await review_repo.create({
                "listing_id": listing.id,
                "reviewer_id": reviewer.id,
                "rating": review_data.rating,
                "comment": review_data.comment,
            })
            average = average_rating(await review_repo.ratings_for_listing(listing.id))
            await listing_repo.set_rating(listing.id, average)

        logger.info(f"Listing {listing.id} reviewed by user {reviewer.id}; rating now {average:.2f}")
        return ReviewCreatedResponse(
            review=_review_out(review, listing.id, reviewer),
            average_rating=average,
        )

    async def create_user_review(
        self,
        reviewer: User,
        reviewee_id: uuid.UUID,
        review_data: UserReviewCreate
    ) -> ReviewCreatedResponse:
        """
        Review another user and recompute their rating.

        Raises:
            NotFoundError: If the reviewee doesn't exist
            BadRequestError: If the reviewer reviews themselves
        """
        if reviewee_id == reviewer.id:
            raise BadRequestError("You cannot review yourself")

        async with self.uow.transaction() as session:
            user_repo = UserRepository(session)
            if await user_repo.get_by_id(reviewee_id) is None:
                raise NotFoundError("User", str(reviewee_id))

            review_repo = UserReviewRepository(session)
            review = await review_repo.create({
                "reviewee_id": reviewee_id,
                "reviewer_id": reviewer.id,
                "rating": review_data.rating,
                "comment": review_data.comment,
            })
            average = average_rating(await review_repo.ratings_for_user(reviewee_id))
            await user_repo.set_rating(reviewee_id, average)

        logger.info(f"User {reviewee_id} reviewed by user {reviewer.id}; rating now {average:.2f}")
        return ReviewCreatedResponse(
            review=_review_out(review, reviewee_id, reviewer),
            average_rating=average,
        )

    async def list_listing_reviews(self, listing_id: uuid.UUID) -> List[ReviewOut]:
        async with self.uow.session() as session:
            if not await ListingRepository(session).exists(listing_id):
                raise ListingNotFoundError(str(listing_id))
            reviews = await ListingReviewRepository(session).get_for_listing(listing_id)
        return [_review_out(r, listing_id) for r in reviews]

    async def list_user_reviews(self, reviewee_id: uuid.UUID) -> List[ReviewOut]:
        async with self.uow.session() as session:
            if not await UserRepository(session).exists(reviewee_id):
                raise NotFoundError("User", str(reviewee_id))
            reviews = await UserReviewRepository(session).get_for_user(reviewee_id)
        return [_review_out(r, reviewee_id) for r in reviews]
