"""
User repository for account lookups and rating updates.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from toolshare.repositories.base import BaseRepository
from toolshare.models.user import User
from typing import Optional, Dict, Any, Iterable, List
import uuid
import logging

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for user accounts."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(self, user_data: Dict[str, Any]) -> User:
        """
        Create a new user from already hashed credentials.

        Args:
            user_data: email, hashed_password, name and optional profile fields

        Returns:
            Created user instance
        """
        user_data = {**user_data, "email": User.validate_email_format(user_data["email"])}
        user = await self.create(user_data)
        logger.info(f"Created user: {user.email} (ID: {user.id})")
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email address (case-insensitive)."""
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.lower().strip())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    async def get_many(self, ids: Iterable[uuid.UUID]) -> List[User]:
        """Fetch several users in one query."""
        ids = list(ids)
        if not ids:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return list(result.scalars().all())

    async def set_rating(self, user_id: uuid.UUID, rating: float) -> bool:
        return await self.update(user_id, {"rating": rating})
