"""
Listing write coordinator.

Creates, edits and deletes listings together with their image blobs. Object
store calls are sequenced strictly before the database transaction opens
(uploads) or strictly after it commits (deletes of replaced images), so a
committed row never points at a missing blob and a blob is never removed
while a committed row still references it.
"""

from typing import List, Optional
from toolshare.config import settings
from toolshare.database import UnitOfWork
from toolshare.models.listing import Listing
from toolshare.models.user import User
from toolshare.repositories.listing import ListingRepository, ListingImageRepository, TagRepository
from toolshare.schemas.listing import ListingCreate, ListingEdit
from toolshare.services.object_store import ObjectStore, delete_blobs
from toolshare.utils.file_utils import ImagePayload
from toolshare.utils.exceptions import (
    APIException,
    ImageLimitExceededError,
    ListingNotFoundError,
    ListingOwnershipError,
    ListingWriteError,
)
import uuid
import logging

logger = logging.getLogger(__name__)


class ListingService:
    """
    Coordinates listing rows and image blobs.

    Pre-commit failures roll back and delete the blobs uploaded for that
    request. Post-commit cleanup only targets blobs the committed state no
    longer references. Cleanup failures are logged, never raised.
    """

    def __init__(self, uow: UnitOfWork, object_store: ObjectStore):
        self.uow = uow
        self.object_store = object_store

    async def create_listing(
        self,
        owner: User,
        listing_data: ListingCreate,
        images: Optional[List[ImagePayload]] = None
    ) -> uuid.UUID:
        """
        Create a listing with its images and tags.

        Args:
            owner: Authenticated user creating the listing
            listing_data: Validated listing fields and tags
            images: Validated image payloads, the first becomes the main photo

        Returns:
            ID of the new listing

        Raises:
            ListingWriteError: If any write fails; uploaded blobs are cleaned up
        """
        uploaded_urls = await self._upload_images(images or [], action="create")

        try:
            async with self.uow.transaction() as session:
                listing = await ListingRepository(session).create({
                    "owner_id": owner.id,
                    "title": listing_data.title,
                    "category": listing_data.category,
                    "description": listing_data.description,
                    "rate": listing_data.rate,
                })
                await ListingImageRepository(session).add_images(listing.id, uploaded_urls)
                await TagRepository(session).add_tags(listing.id, listing_data.tags)
                listing_id = listing.id
        except Exception as e:
            logger.error(f"Listing creation by user {owner.id} rolled back: {e}")
            await delete_blobs(self.object_store, uploaded_urls, "create rollback")
            raise ListingWriteError("create", e)

        logger.info(
            f"Listing created by user {owner.id}: {listing_id} "
            f"({len(uploaded_urls)} images, {len(listing_data.tags)} tags)"
        )
        return listing_id

    async def edit_listing(
        self,
        owner: User,
        edit_data: ListingEdit,
        images: Optional[List[ImagePayload]] = None
    ) -> uuid.UUID:
        """
        Apply an incremental edit to a listing.

        Args:
            owner: Authenticated user, must own the listing
            edit_data: Scalar changes plus tag/image additions and removals
            images: New image payloads to append

        Returns:
            ID of the edited listing

        Raises:
            ListingNotFoundError: If the listing doesn't exist
            ListingOwnershipError: If the caller doesn't own the listing
            ImageLimitExceededError: If the listing would end up with too many images
            ListingWriteError: If the transaction fails; new blobs are cleaned up
        """
        listing_id = edit_data.listing_id
        listing = await self._get_owned_listing(owner, listing_id)
        images = images or []

        removing = set(edit_data.images_to_remove)
        kept = sum(1 for image in listing.images if image.id not in removing)
        self._check_image_limit(kept + len(images))

        uploaded_urls = await self._upload_images(images, action="update")
        removed_urls: List[str] = []

        try:
            async with self.uow.transaction() as session:
                listing_repo = ListingRepository(session)
                image_repo = ListingImageRepository(session)
                tag_repo = TagRepository(session)

                # Concurrent edits of the same listing serialise here
                await listing_repo.get_for_update(listing_id)
                await listing_repo.update(listing_id, edit_data.scalar_changes())

                if uploaded_urls:
                    needs_main = not await image_repo.has_main_photo(
                        listing_id, excluding=edit_data.images_to_remove
                    )
                    await image_repo.add_images(listing_id, uploaded_urls, first_is_main=needs_main)

                await tag_repo.add_tags(listing_id, edit_data.new_tags)
                await tag_repo.delete_tags(listing_id, edit_data.tags_to_remove)

                if edit_data.images_to_remove:
                    removed = await image_repo.get_for_listing(listing_id, edit_data.images_to_remove)
                    await image_repo.delete_images(listing_id, [image.id for image in removed])
                    removed_urls = [image.url for image in removed]

                self._check_image_limit(await image_repo.count_for_listing(listing_id))
        except APIException:
            await delete_blobs(self.object_store, uploaded_urls, "edit rollback")
            raise
        except Exception as e:
            logger.error(f"Listing edit {listing_id} rolled back: {e}")
            await delete_blobs(self.object_store, uploaded_urls, "edit rollback")
            raise ListingWriteError("update", e)

        # Committed: the removed images are no longer referenced
        await delete_blobs(self.object_store, removed_urls, "edit cleanup")

        logger.info(
            f"Listing {listing_id} edited by user {owner.id}: "
            f"+{len(uploaded_urls)}/-{len(removed_urls)} images, "
            f"+{len(edit_data.new_tags)}/-{len(edit_data.tags_to_remove)} tags"
        )
        return listing_id

    async def delete_listing(self, owner: User, listing_id: uuid.UUID) -> None:
        """
        Delete a listing and then its image blobs.

        Raises:
            ListingNotFoundError: If the listing doesn't exist
            ListingOwnershipError: If the caller doesn't own the listing
            ListingWriteError: If the row delete fails; no blob is touched
        """
        listing = await self._get_owned_listing(owner, listing_id)
        image_urls = [image.url for image in listing.images]

        try:
            async with self.uow.transaction() as session:
                deleted = await ListingRepository(session).delete(listing_id)
        except Exception as e:
            logger.error(f"Listing delete {listing_id} rolled back: {e}")
            raise ListingWriteError("delete", e)

        if not deleted:
            raise ListingNotFoundError(str(listing_id))

        await delete_blobs(self.object_store, image_urls, "delete cleanup")
        logger.info(f"Listing {listing_id} deleted by user {owner.id}")

    async def get_listing(self, listing_id: uuid.UUID) -> Listing:
        """
        Get a listing with images and tags.

        Raises:
            ListingNotFoundError: If the listing doesn't exist
        """
        async with self.uow.session() as session:
            listing = await ListingRepository(session).get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(str(listing_id))
        return listing

    async def get_user_listings(self, owner_id: uuid.UUID) -> List[Listing]:
        """All listings owned by a user, newest first."""
        async with self.uow.session() as session:
            return await ListingRepository(session).get_by_owner(owner_id)

    async def search_listings(
        self,
        keyword: Optional[str] = None,
        category: Optional[str] = None,
        tags: Optional[List[str]] = None
    ) -> List[Listing]:
        """Keyword, category and tag search; blank filters are ignored."""
        keyword = (keyword or "").strip() or None
        category = (category or "").strip() or None
        tags = [tag.strip() for tag in tags or [] if tag and tag.strip()]

        async with self.uow.session() as session:
            listings = await ListingRepository(session).search(
                keyword=keyword,
                category=category,
                tags=tags,
                limit=settings.search_result_limit,
            )
        logger.debug(f"Search keyword={keyword!r} category={category!r} tags={tags}: {len(listings)} hits")
        return listings

    async def _get_owned_listing(self, owner: User, listing_id: uuid.UUID) -> Listing:
        listing = await self.get_listing(listing_id)
        if listing.owner_id != owner.id:
            raise ListingOwnershipError()
        return listing

    @staticmethod
    def _check_image_limit(total: int) -> None:
        if total > settings.max_images_per_listing:
            raise ImageLimitExceededError(total, settings.max_images_per_listing)

    async def _upload_images(self, images: List[ImagePayload], action: str) -> List[str]:
        """
        Upload images in order before any transaction opens.
        A failed upload removes the blobs uploaded so far.
        """
        urls: List[str] = []
        for image in images:
            try:
                urls.append(await self.object_store.upload(image.data, image.content_type))
            except Exception as e:
                logger.error(f"Image upload failed during listing {action}: {e}")
                await delete_blobs(self.object_store, urls, f"{action} upload failure")
                raise ListingWriteError(action, e)
        return urls
