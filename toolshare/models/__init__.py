"""
Database models for the Tool Rental Marketplace API.
"""

from toolshare.models.user import User
from toolshare.models.listing import Listing, ListingImage, Tag
from toolshare.models.reservation import Reservation, ReservationStatus
from toolshare.models.conversation import Conversation, Message, ConversationRead
from toolshare.models.review import ListingReview, UserReview

__all__ = [
    "User",
    "Listing",
    "ListingImage",
    "Tag",
    "Reservation",
    "ReservationStatus",
    "Conversation",
    "Message",
    "ConversationRead",
    "ListingReview",
    "UserReview",
]
