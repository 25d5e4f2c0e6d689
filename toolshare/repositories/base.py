"""
Generic async repository.
Writes are staged and flushed inside the caller's transaction; committing and
rolling back belong to ``UnitOfWork``.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from toolshare.database import Base
from typing import TypeVar, Generic, Optional, List, Dict, Any, Type, Iterable
import uuid
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """CRUD helpers shared by the per-model repositories."""

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    @property
    def _name(self) -> str:
        return self.model.__name__

    async def create(self, obj_in: Dict[str, Any]) -> ModelType:
        """
        Add one row and flush so the generated id and timestamps are populated.

        Args:
            obj_in: Column values keyed by attribute name

        Returns:
            The new, flushed instance
        """
        instance = self.model(**obj_in)
        self.db.add(instance)
        await self.db.flush()
        logger.debug(f"{self._name} {instance.id} staged")
        return instance

    async def bulk_create(self, objects_in: Iterable[Dict[str, Any]]) -> List[ModelType]:
        """Add several rows with a single flush. An empty input is a no-op."""
        instances = [self.model(**values) for values in objects_in]
        if instances:
            self.db.add_all(instances)
            await self.db.flush()
            logger.debug(f"{len(instances)} {self._name} rows staged")
        return instances

    async def get_by_id(self, id: uuid.UUID) -> Optional[ModelType]:
        result = await self.db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def exists(self, id: uuid.UUID) -> bool:
        result = await self.db.execute(select(self.model.id).where(self.model.id == id))
        return result.first() is not None

    async def get_multi(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None
    ) -> List[ModelType]:
        """
        Rows matching every equality filter.

        A list, tuple or set filter value becomes an ``IN`` clause. ``order_by``
        names an attribute, with a leading ``-`` for descending; newest first
        when omitted.
        """
        query = select(self.model)
        for field, value in (filters or {}).items():
            column = getattr(self.model, field)
            if isinstance(value, (list, tuple, set)):
                query = query.where(column.in_(list(value)))
            else:
                query = query.where(column == value)

        descending = order_by is None or order_by.startswith("-")
        column = getattr(self.model, (order_by or "created_at").lstrip("-"))
        query = query.order_by(column.desc() if descending else column.asc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update(self, id: uuid.UUID, obj_in: Dict[str, Any]) -> bool:
        """
        Set the given columns on one row. ``None`` values are skipped.

        Returns:
            False when there was nothing to set or the row does not exist
        """
        values = {key: value for key, value in obj_in.items() if value is not None}
        if not values:
            return False
        result = await self.db.execute(update(self.model).where(self.model.id == id).values(**values))
        return result.rowcount > 0

    async def delete(self, id: uuid.UUID) -> bool:
        """Remove one row; dependent rows go with it through ``ON DELETE CASCADE``."""
        result = await self.db.execute(delete(self.model).where(self.model.id == id))
        if result.rowcount:
            logger.debug(f"{self._name} {id} deleted")
        return result.rowcount > 0

    async def bulk_delete(self, ids: Iterable[uuid.UUID], **scope: Any) -> int:
        """
        Remove rows by id. Keyword arguments narrow the delete further, so
        ids belonging to another parent are left alone.

        Returns:
            Number of rows removed
        """
        ids = list(ids)
        if not ids:
            return 0
        stmt = delete(self.model).where(self.model.id.in_(ids))
        for field, value in scope.items():
            stmt = stmt.where(getattr(self.model, field) == value)
        result = await self.db.execute(stmt)
        logger.debug(f"{result.rowcount} {self._name} rows deleted")
        return result.rowcount
