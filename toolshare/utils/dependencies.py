"""
FastAPI dependency injection utilities for authentication, storage and services.
Every service is built from the request's unit of work so tests can swap the
database and object store through ``app.dependency_overrides``.
"""

from typing import Optional
from functools import lru_cache
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from toolshare.database import UnitOfWork, get_unit_of_work
from toolshare.models.user import User
from toolshare.services.auth import AuthService
from toolshare.services.conversation import ConversationService
from toolshare.services.listing import ListingService
from toolshare.services.message import MessageService
from toolshare.services.object_store import LocalObjectStore, ObjectStore
from toolshare.services.reservation import ReservationService
from toolshare.services.review import ReviewService
from toolshare.services.user import UserService
from toolshare.utils.exceptions import (
    UnauthorizedError,
    InvalidTokenError,
    TokenExpiredError,
)


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


@lru_cache()
def get_object_store() -> ObjectStore:
    """Object store backing listing and profile photos."""
    return LocalObjectStore()


async def get_auth_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> AuthService:
    return AuthService(uow)


async def get_listing_service(
    uow: UnitOfWork = Depends(get_unit_of_work),
    object_store: ObjectStore = Depends(get_object_store)
) -> ListingService:
    return ListingService(uow, object_store)


async def get_user_service(
    uow: UnitOfWork = Depends(get_unit_of_work),
    object_store: ObjectStore = Depends(get_object_store)
) -> UserService:
    return UserService(uow, object_store)


async def get_reservation_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> ReservationService:
    return ReservationService(uow)


async def get_conversation_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> ConversationService:
    return ConversationService(uow)


async def get_message_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> MessageService:
    return MessageService(uow)


async def get_review_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> ReviewService:
    return ReviewService(uow)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Get current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer credentials
        auth_service: Authentication service

    Returns:
        Current User object

    Raises:
        UnauthorizedError: If no token provided
        InvalidTokenError: If the token is invalid
        TokenExpiredError: If the token is expired
    """
    if not credentials:
        raise UnauthorizedError("Authentication token required")

    try:
        return await auth_service.get_current_user(credentials.credentials)
    except (InvalidTokenError, TokenExpiredError):
        raise
    except Exception as e:
        raise UnauthorizedError(f"Authentication failed: {str(e)}")
