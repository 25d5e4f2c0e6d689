"""
Utility modules for the tool rental API.
"""

from .auth import (
    create_access_token,
    verify_token,
    hash_password,
    verify_password,
    TokenPayload
)

from .exceptions import (
    APIException,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    ConflictError,
    BadRequestError,
    InternalServerError,
    InvalidCredentialsError,
    TokenExpiredError,
    InvalidTokenError,
    ListingWriteError,
    ReservationConflictError,
    NotParticipantError
)

# Dependencies are imported directly where needed to avoid circular imports

__all__ = [
    # Auth utilities
    "create_access_token",
    "verify_token",
    "hash_password",
    "verify_password",
    "TokenPayload",

    # Exceptions
    "APIException",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConflictError",
    "BadRequestError",
    "InternalServerError",
    "InvalidCredentialsError",
    "TokenExpiredError",
    "InvalidTokenError",
    "ListingWriteError",
    "ReservationConflictError",
    "NotParticipantError",
]
