"""
Profile reads and updates.

A new profile photo is uploaded before the transaction opens. If the
transaction rolls back, the new blob is deleted. If it commits, the photo it
replaced is deleted.
"""

from typing import Optional
from toolshare.database import UnitOfWork
from toolshare.models.user import User
from toolshare.repositories.user import UserRepository
from toolshare.schemas.user import UserUpdate
from toolshare.services.object_store import ObjectStore, delete_blobs
from toolshare.utils.file_utils import ImagePayload
from toolshare.utils.exceptions import (
    APIException,
    BadRequestError,
    DuplicateResourceError,
    ProfileWriteError,
    UserNotFoundError,
)
import uuid
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Reads profiles and coordinates profile rows with their photo blob."""

    def __init__(self, uow: UnitOfWork, object_store: ObjectStore):
        self.uow = uow
        self.object_store = object_store

    async def get_user(self, user_id: uuid.UUID) -> User:
        """
        Raises:
            UserNotFoundError: If the user doesn't exist
        """
        async with self.uow.session() as session:
            user = await UserRepository(session).get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    async def lookup_by_email(self, email: Optional[str]) -> User:
        """
        Find another user by email, e.g. to start a conversation with them.

        Raises:
            BadRequestError: If no email was given
            UserNotFoundError: If no account uses the email
        """
        if not email or not email.strip():
            raise BadRequestError("Email is required")

        async with self.uow.session() as session:
            user = await UserRepository(session).get_by_email(email)
        if user is None:
            raise UserNotFoundError()
        return user

    async def update_profile(
        self,
        user: User,
        update_data: UserUpdate,
        photo: Optional[ImagePayload] = None
    ) -> User:
        """
        Change profile fields and optionally replace the profile photo.

        Args:
            user: Authenticated user whose profile changes
            update_data: Fields to change
            photo: Validated replacement photo

        Returns:
            The updated user

        Raises:
            BadRequestError: If nothing would change or the email is malformed
            DuplicateResourceError: If the new email belongs to another account
            ProfileWriteError: If the upload or the transaction fails
        """
        changes = update_data.changes()
        if not changes and photo is None:
            raise BadRequestError("No changes were made to the user")

        if "email" in changes:
            try:
                changes["email"] = User.validate_email_format(changes["email"])
            except ValueError as e:
                raise BadRequestError(str(e))

        new_url: Optional[str] = None
        if photo is not None:
            try:
                new_url = await self.object_store.upload(photo.data, photo.content_type)
            except Exception as e:
                logger.error(f"Profile photo upload failed for user {user.id}: {e}")
                raise ProfileWriteError(e)
            changes["profile_photo_url"] = new_url

        old_url: Optional[str] = None
        try:
            async with self.uow.transaction() as session:
                user_repo = UserRepository(session)
                current = await user_repo.get_by_id(user.id)
                if current is None:
                    raise UserNotFoundError(str(user.id))

                if "email" in changes:
                    holder = await user_repo.get_by_email(changes["email"])
                    if holder is not None and holder.id != user.id:
                        raise DuplicateResourceError("User", changes["email"])

                old_url = current.profile_photo_url
                await user_repo.update(user.id, changes)
        except APIException:
            await delete_blobs(self.object_store, [new_url] if new_url else [], "profile rollback")
            raise
        except Exception as e:
            logger.error(f"Profile update for user {user.id} rolled back: {e}")
            await delete_blobs(self.object_store, [new_url] if new_url else [], "profile rollback")
            raise ProfileWriteError(e)

        # Committed: the replaced photo is no longer referenced
        if new_url and old_url and old_url != new_url:
            await delete_blobs(self.object_store, [old_url], "profile cleanup")

        logger.info(f"Profile of user {user.id} updated: {', '.join(sorted(changes))}")
        return await self.get_user(user.id)
