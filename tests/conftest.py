"""
Test configuration and fixtures for the tool rental API.
Provides a per-test SQLite database, an in-memory object store, an HTTP
client bound to the app and test data factories.
"""

import os
import tempfile

# Must be set before the application settings are first imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "toolshare_test.db"))
os.environ.setdefault("UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "toolshare_test_uploads"))

import io
from contextlib import asynccontextmanager
import uuid
import pytest
from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from toolshare.database import UnitOfWork, configure_engine, create_tables, get_unit_of_work
from toolshare.main import app
from toolshare.models.listing import Listing
from toolshare.models.reservation import Reservation, ReservationStatus
from toolshare.models.user import User
from toolshare.repositories.listing import ListingImageRepository, ListingRepository, TagRepository
from toolshare.repositories.reservation import ReservationRepository
from toolshare.repositories.user import UserRepository
from toolshare.services.object_store import ObjectStore
from toolshare.services.reservation import utc_today
from toolshare.utils.auth import create_access_token, hash_password
from toolshare.utils.dependencies import get_object_store
from toolshare.utils.exceptions import ObjectStoreError


class FakeObjectStore(ObjectStore):
    """In-memory object store that records every call and can be told to fail."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.uploaded: List[str] = []
        self.deleted: List[str] = []
        self.fail_upload_after: Optional[int] = None
        self.fail_deletes = False

    async def upload(self, data: bytes, content_type: str) -> str:
        if self.fail_upload_after is not None and len(self.uploaded) >= self.fail_upload_after:
            raise ObjectStoreError("simulated upload failure")
        url = f"memory://blobs/{uuid.uuid4().hex}"
        self.blobs[url] = data
        self.uploaded.append(url)
        return url

    async def delete(self, url: str) -> bool:
        self.deleted.append(url)
        if self.fail_deletes:
            return False
        self.blobs.pop(url, None)
        return True


class CommitFailingUnitOfWork(UnitOfWork):
    """Unit of work whose commits always fail after the block body ran."""

    def __init__(self, session_factory: async_sessionmaker):
        super().__init__(session_factory)
        self.commit_attempts = 0

    @asynccontextmanager
    async def transaction(self):
        async with self.session_factory() as session:
            yield session
            await session.rollback()
            self.commit_attempts += 1
            raise RuntimeError("simulated commit failure")


def make_image_bytes(fmt: str = "PNG", size=(8, 8)) -> bytes:
    """Encode a tiny solid-colour image."""
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, format=fmt)
    return buffer.getvalue()


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test with foreign keys enforced."""
    test_engine = configure_engine(create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"))
    await create_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def uow(session_factory) -> UnitOfWork:
    return UnitOfWork(session_factory)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for direct repository tests and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
async def client(uow, object_store) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app with the test database and object store."""
    app.dependency_overrides[get_unit_of_work] = lambda: uow
    app.dependency_overrides[get_object_store] = lambda: object_store

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client

    app.dependency_overrides.clear()


# Test data factories
class UserFactory:
    """Factory for creating test users."""

    @staticmethod
    def create_user_data(
        email: str = None,
        password: str = "testpassword123",
        name: str = "Test User"
    ) -> dict:
        return {
            "email": email or f"test{uuid.uuid4().hex[:8]}@example.com",
            "hashed_password": hash_password(password),
            "name": name,
        }

    @staticmethod
    async def create_user(
        uow: UnitOfWork,
        email: str = None,
        password: str = "testpassword123",
        name: str = "Test User"
    ) -> User:
        async with uow.transaction() as session:
            return await UserRepository(session).create_user(
                UserFactory.create_user_data(email=email, password=password, name=name)
            )


class ListingFactory:
    """Factory for creating test listings."""

    @staticmethod
    async def create_listing(
        uow: UnitOfWork,
        owner: User,
        title: str = "Cordless drill",
        category: str = "Power Tools",
        description: str = "18V drill with two batteries",
        rate: Decimal = Decimal("15.00"),
        tags: List[str] = None,
        image_urls: List[str] = None
    ) -> uuid.UUID:
        async with uow.transaction() as session:
            listing = await ListingRepository(session).create({
                "owner_id": owner.id,
                "title": title,
                "category": category,
                "description": description,
                "rate": rate,
            })
            await ListingImageRepository(session).add_images(listing.id, image_urls or [])
            await TagRepository(session).add_tags(listing.id, tags or [])
            return listing.id

    @staticmethod
    async def get_listing(uow: UnitOfWork, listing_id: uuid.UUID) -> Optional[Listing]:
        async with uow.session() as session:
            return await ListingRepository(session).get_by_id(listing_id)


class ReservationFactory:
    """Factory for creating test reservations."""

    @staticmethod
    async def create_reservation(
        uow: UnitOfWork,
        listing_id: uuid.UUID,
        user: User,
        start_date: date,
        end_date: date,
        status: ReservationStatus = ReservationStatus.PENDING
    ) -> Reservation:
        async with uow.transaction() as session:
            return await ReservationRepository(session).create({
                "listing_id": listing_id,
                "user_id": user.id,
                "start_date": start_date,
                "end_date": end_date,
                "total_price": Decimal("10.00") * (end_date - start_date).days,
                "status": status,
            })


# Common test fixtures
@pytest.fixture
async def owner(uow) -> User:
    """A user who lists tools."""
    return await UserFactory.create_user(uow, email="owner@test.com", name="Olivia Owner")


@pytest.fixture
async def renter(uow) -> User:
    """A user who rents tools."""
    return await UserFactory.create_user(uow, email="renter@test.com", name="Ryan Renter")


@pytest.fixture
async def outsider(uow) -> User:
    """A user unrelated to the listing or conversation under test."""
    return await UserFactory.create_user(uow, email="outsider@test.com", name="Oscar Outsider")


@pytest.fixture
async def listing_id(uow, owner) -> uuid.UUID:
    return await ListingFactory.create_listing(uow, owner, tags=["drill", "cordless"])


@pytest.fixture
def tomorrow() -> date:
    return utc_today() + timedelta(days=1)
