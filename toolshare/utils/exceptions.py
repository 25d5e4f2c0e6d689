"""
API exception hierarchy.
Each class fixes an HTTP status and an ``error_code``; the error handler turns
them into ``{"error": {...}}`` bodies.
"""

from typing import Any, Dict, Optional, List
from fastapi import HTTPException, status


class APIException(HTTPException):
    """
    Base class for errors raised deliberately by services and routers.

    Subclasses set ``default_status`` and ``default_code``; either can be
    overridden per instance.
    """

    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "API_ERROR"
    default_detail: str = "Request failed"

    def __init__(
        self,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status_code or self.default_status,
            detail=detail or self.default_detail,
            headers=headers,
        )
        self.error_code = error_code or self.default_code


class BadRequestError(APIException):
    default_status = status.HTTP_400_BAD_REQUEST
    default_code = "BAD_REQUEST"
    default_detail = "Bad request"


class UnauthorizedError(APIException):
    default_status = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"
    default_detail = "Authentication required"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(APIException):
    default_status = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"
    default_detail = "Access forbidden"


class NotFoundError(APIException):
    default_status = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        suffix = f" with ID: {resource_id}" if resource_id else ""
        super().__init__(f"{resource} not found{suffix}")
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(APIException):
    default_status = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"
    default_detail = "Conflict with the current state of the resource"


class InternalServerError(APIException):
    default_code = "INTERNAL_SERVER_ERROR"
    default_detail = "Internal server error"


# Authentication
class InvalidCredentialsError(UnauthorizedError):
    default_detail = "Invalid email or password"


class TokenExpiredError(UnauthorizedError):
    default_detail = "Token has expired"


class InvalidTokenError(UnauthorizedError):
    default_detail = "Invalid token"


class DuplicateResourceError(ConflictError):
    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' already exists")


# Listings
class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str):
        super().__init__("Listing", listing_id)


class ListingOwnershipError(ForbiddenError):
    default_detail = "You don't own this listing"


class ListingWriteError(InternalServerError):
    """A listing write was rolled back; the underlying cause is attached."""

    def __init__(self, action: str, cause: Exception):
        super().__init__(f"Failed to {action} listing: {cause}")
        self.action = action
        self.cause = cause


# Reservations
class ReservationConflictError(ConflictError):
    """Requested dates overlap an existing reservation."""

    def __init__(self, listing_id: str):
        super().__init__(f"Listing {listing_id} is already reserved for the requested dates")


# Messaging
class NotParticipantError(ForbiddenError):
    """Caller is neither buyer nor seller of the conversation."""

    default_detail = "User is not a participant in this conversation"


# Uploads and storage
class UnsupportedFileTypeError(BadRequestError):
    def __init__(self, file_type: str, supported_types: List[str]):
        supported = ", ".join(supported_types)
        super().__init__(f"Unsupported file type '{file_type}'. Supported types: {supported}")


class FileSizeExceededError(BadRequestError):
    def __init__(self, size: int, max_size: int):
        super().__init__(f"File size {size} bytes exceeds maximum allowed size {max_size} bytes")


class ObjectStoreError(InternalServerError):
    def __init__(self, detail: str):
        super().__init__(f"Object store error: {detail}")


class ImageLimitExceededError(BadRequestError):
    def __init__(self, total: int, max_images: int):
        super().__init__(f"Maximum {max_images} images allowed per listing, the edit would leave {total}")


# Users
class UserNotFoundError(NotFoundError):
    def __init__(self, identifier: Optional[str] = None):
        super().__init__("User", identifier)


class ProfileWriteError(InternalServerError):
    """A profile update was rolled back; the underlying cause is attached."""

    def __init__(self, cause: Exception):
        super().__init__(f"Failed to update profile: {cause}")
        self.cause = cause
