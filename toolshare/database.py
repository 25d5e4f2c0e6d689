"""
Database connection, session and transaction management.
Handles async database operations with SQLAlchemy and exposes a UnitOfWork
that scopes every multi-row write to a single transaction.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import event, text, DateTime, TypeDecorator, Uuid
from contextlib import asynccontextmanager
from toolshare.config import settings
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timestamp column stored as naive UTC and returned as aware UTC.
    Keeps comparisons and ordering identical on PostgreSQL and SQLite.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Build engine keyword arguments for the configured backend."""
    if database_url.startswith("sqlite"):
        return {"echo": settings.debug}
    return {
        "echo": settings.debug,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,  # Validate connections before use
        "pool_recycle": 3600,
        "pool_timeout": 30,
        "connect_args": {
            "server_settings": {
                "application_name": "toolshare_api",
            }
        },
    }


def configure_engine(target: AsyncEngine) -> AsyncEngine:
    """
    Apply backend specific connection setup.

    SQLite only enforces ON DELETE CASCADE when foreign keys are switched on
    for each connection.
    """
    if target.dialect.name == "sqlite":
        @event.listens_for(target.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return target


engine = configure_engine(
    create_async_engine(settings.database_url, **_engine_options(settings.database_url))
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base: UUID primary key plus UTC created/updated timestamps."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Timestamps are set in Python so sub-second ordering survives every backend
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
        index=True
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"


class UnitOfWork:
    """
    Transaction scope shared by the write coordinators.

    ``transaction()`` opens a dedicated session, commits when the block exits
    normally, rolls back when it raises and always releases the connection.
    ``session()`` is a short-lived read session that never commits.
    Repositories only flush; committing is exclusively the job of this class.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.warning(f"Transaction rolled back: {type(e).__name__} - {e}")
                raise


default_unit_of_work = UnitOfWork(AsyncSessionLocal)


def get_unit_of_work() -> UnitOfWork:
    """
    Dependency returning the application's unit of work.
    Overridden in tests to point at an isolated database.
    """
    return default_unit_of_work


async def test_database_connection() -> bool:
    """``SELECT 1`` round trip; False instead of raising when unreachable."""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database check failed: {e}")
        return False
    return True


async def create_tables(target: AsyncEngine = engine):
    # Registers every model on Base.metadata
    import toolshare.models  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")


async def close_db_connection():
    await engine.dispose()
    logger.info("Database engine disposed")
