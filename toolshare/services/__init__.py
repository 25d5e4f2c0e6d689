"""
Service layer for business logic implementation.
Contains the listing, reservation, messaging and review coordinators.
"""

from .auth import AuthService
from .listing import ListingService
from .reservation import ReservationService
from .conversation import ConversationService
from .message import MessageService
from .review import ReviewService
from .user import UserService
from .object_store import ObjectStore, LocalObjectStore
from .error_handler import ErrorHandlerService

__all__ = [
    "AuthService",
    "ListingService",
    "ReservationService",
    "ConversationService",
    "MessageService",
    "ReviewService",
    "UserService",
    "ObjectStore",
    "LocalObjectStore",
    "ErrorHandlerService"
]
