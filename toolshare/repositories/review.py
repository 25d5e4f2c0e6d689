"""
Review repositories for listing and user reviews.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from toolshare.repositories.base import BaseRepository
from toolshare.models.review import ListingReview, UserReview
from typing import List
import uuid


class ListingReviewRepository(BaseRepository[ListingReview]):
    """Repository for listing reviews."""

    def __init__(self, db: AsyncSession):
        super().__init__(ListingReview, db)

    async def get_for_listing(self, listing_id: uuid.UUID) -> List[ListingReview]:
        return await self.get_multi(filters={"listing_id": listing_id}, order_by="-created_at")

    async def ratings_for_listing(self, listing_id: uuid.UUID) -> List[float]:
        result = await self.db.execute(
            select(ListingReview.rating).where(ListingReview.listing_id == listing_id)
        )
        return list(result.scalars().all())


class UserReviewRepository(BaseRepository[UserReview]):
    """Repository for user reviews."""

    def __init__(self, db: AsyncSession):
        super().__init__(UserReview, db)

    async def get_for_user(self, reviewee_id: uuid.UUID) -> List[UserReview]:
        return await self.get_multi(filters={"reviewee_id": reviewee_id}, order_by="-created_at")

    async def ratings_for_user(self, reviewee_id: uuid.UUID) -> List[float]:
        result = await self.db.execute(
            select(UserReview.rating).where(UserReview.reviewee_id == reviewee_id)
        )
        return list(result.scalars().all())
