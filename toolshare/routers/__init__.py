"""
API route handlers for the tool rental API.
"""

from .auth import router as auth_router
from .listings import router as listings_router
from .reservations import router as reservations_router
from .messages import router as messages_router
from .reviews import listing_review_router, user_review_router
from .users import router as users_router
from .search import router as search_router

__all__ = [
    "auth_router",
    "listings_router",
    "reservations_router",
    "messages_router",
    "listing_review_router",
    "user_review_router",
    "users_router",
    "search_router",
]
