"""
Repository layer for data access operations.
"""

from toolshare.repositories.base import BaseRepository
from toolshare.repositories.user import UserRepository
from toolshare.repositories.listing import ListingRepository, ListingImageRepository, TagRepository
from toolshare.repositories.reservation import ReservationRepository
from toolshare.repositories.conversation import (
    ConversationRepository,
    MessageRepository,
    ConversationReadRepository,
)
from toolshare.repositories.review import ListingReviewRepository, UserReviewRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "ListingRepository",
    "ListingImageRepository",
    "TagRepository",
    "ReservationRepository",
    "ConversationRepository",
    "MessageRepository",
    "ConversationReadRepository",
    "ListingReviewRepository",
    "UserReviewRepository",
]
