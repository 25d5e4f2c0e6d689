"""
Listing, image and tag repositories.
Image and tag writes are always scoped to a single listing.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, exists, func, or_
from toolshare.repositories.base import BaseRepository
from toolshare.models.listing import Listing, ListingImage, Tag
from typing import Optional, List, Iterable, Sequence
import uuid
import logging

logger = logging.getLogger(__name__)


def lock_listing_statement(listing_id: uuid.UUID):
    return select(Listing).where(Listing.id == listing_id).with_for_update(of=Listing)


class ListingRepository(BaseRepository[Listing]):
    """Repository for listing rows."""

    def __init__(self, db: AsyncSession):
        super().__init__(Listing, db)

    async def get_by_owner(self, owner_id: uuid.UUID) -> List[Listing]:
        """All listings owned by a user, newest first."""
        return await self.get_multi(filters={"owner_id": owner_id}, order_by="-created_at")

    async def get_for_update(self, listing_id: uuid.UUID) -> Optional[Listing]:
        """
        Load a listing and hold a row lock until the transaction ends.
        Writers that check then insert against a listing serialise on this lock;
        SQLite ignores ``FOR UPDATE`` and serialises writers database-wide.
        """
        result = await self.db.execute(lock_listing_statement(listing_id))
        return result.scalar_one_or_none()

    async def set_rating(self, listing_id: uuid.UUID, rating: float) -> bool:
        return await self.update(listing_id, {"rating": rating})

    async def search(
        self,
        keyword: Optional[str] = None,
        category: Optional[str] = None,
        tags: Sequence[str] = (),
        limit: Optional[int] = None
    ) -> List[Listing]:
        """
        Listings matching every given filter, newest first.

        ``keyword`` is a case-insensitive substring of the title or description.
        ``tags`` matches listings carrying at least one of the given tags.
        """
        query = select(Listing)
        if keyword:
            pattern = f"%{keyword}%"
            query = query.where(or_(Listing.title.ilike(pattern), Listing.description.ilike(pattern)))
        if category:
            query = query.where(func.lower(Listing.category) == category.lower())
        if tags:
            tagged = select(Tag.listing_id).where(Tag.text.in_([tag.lower() for tag in tags]))
            query = query.where(Listing.id.in_(tagged))

        query = query.order_by(Listing.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())


class ListingImageRepository(BaseRepository[ListingImage]):
    """Repository for listing image references."""

    def __init__(self, db: AsyncSession):
        super().__init__(ListingImage, db)

    async def add_images(
        self,
        listing_id: uuid.UUID,
        urls: Sequence[str],
        first_is_main: bool = True
    ) -> List[ListingImage]:
        """
        Insert one image row per URL, in upload order.

        Args:
            listing_id: Owning listing
            urls: Object store URLs
            first_is_main: Flag the first URL as the main photo

        Returns:
            Created image rows
        """
        return await self.bulk_create(
            {
                "listing_id": listing_id,
                "url": url,
                "is_main_photo": first_is_main and index == 0,
            }
            for index, url in enumerate(urls)
        )

    async def get_for_listing(
        self,
        listing_id: uuid.UUID,
        image_ids: Optional[Iterable[uuid.UUID]] = None
    ) -> List[ListingImage]:
        """Images of a listing, optionally restricted to the given IDs."""
        query = select(ListingImage).where(ListingImage.listing_id == listing_id)
        if image_ids is not None:
            query = query.where(ListingImage.id.in_(list(image_ids)))
        result = await self.db.execute(query.order_by(ListingImage.created_at.asc()))
        return list(result.scalars().all())

    async def count_for_listing(self, listing_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(ListingImage.id)).where(ListingImage.listing_id == listing_id)
        )
        return result.scalar() or 0

    async def has_main_photo(self, listing_id: uuid.UUID, excluding: Iterable[uuid.UUID] = ()) -> bool:
        excluding = list(excluding)
        condition = (ListingImage.listing_id == listing_id) & ListingImage.is_main_photo.is_(True)
        if excluding:
            condition = condition & ListingImage.id.not_in(excluding)
        result = await self.db.execute(select(exists().where(condition)))
        return bool(result.scalar())

    async def delete_images(self, listing_id: uuid.UUID, image_ids: Iterable[uuid.UUID]) -> int:
        return await self.bulk_delete(image_ids, listing_id=listing_id)


class TagRepository(BaseRepository[Tag]):
    """Repository for listing tags."""

    def __init__(self, db: AsyncSession):
        super().__init__(Tag, db)

    async def add_tags(self, listing_id: uuid.UUID, tags: Iterable[str]) -> List[Tag]:
        """
        Insert one tag row per entry, lower-cased.
        Duplicates are stored as given.
        """
        return await self.bulk_create(
            {"listing_id": listing_id, "text": text.strip().lower()}
            for text in tags
            if text and text.strip()
        )

    async def delete_tags(self, listing_id: uuid.UUID, tag_ids: Iterable[uuid.UUID]) -> int:
        return await self.bulk_delete(tag_ids, listing_id=listing_id)
