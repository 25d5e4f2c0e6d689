"""
Pydantic schemas for request/response validation.
"""

from .common import CamelModel, MessageResponse, UserSummary
from .user import UserResponse, UserUpdate, UserUpdatedResponse, UserFoundResponse, UserLookupResponse
from .auth import RegisterRequest, LoginRequest, TokenResponse
from .listing import (
    ListingCreate,
    ListingEdit,
    ListingResponse,
    ListingCreatedResponse,
    ListingEditedResponse,
    ListingListResponse,
)
from .reservation import (
    ReservationCreate,
    ReservationResponse,
    ReservationCreatedResponse,
    ReservationListResponse,
)
from .conversation import (
    ConversationCreate,
    ConversationOut,
    ConversationCreatedResponse,
    ConversationDetailResponse,
    ConversationListResponse,
    MessageCreate,
    MessageOut,
    MessageListResponse,
    SendMessageResponse,
    UnreadCountResponse,
)
from .review import (
    ListingReviewCreate,
    UserReviewCreate,
    ReviewOut,
    ReviewCreatedResponse,
    ReviewListResponse,
)

__all__ = [
    "CamelModel",
    "MessageResponse",
    "UserSummary",
    "UserResponse",
    "UserUpdate",
    "UserUpdatedResponse",
    "UserFoundResponse",
    "UserLookupResponse",
    "RegisterRequest",
    "LoginRequest",
    "TokenResponse",
    "ListingCreate",
    "ListingEdit",
    "ListingResponse",
    "ListingCreatedResponse",
    "ListingEditedResponse",
    "ListingListResponse",
    "ReservationCreate",
    "ReservationResponse",
    "ReservationCreatedResponse",
    "ReservationListResponse",
    "ConversationCreate",
    "ConversationOut",
    "ConversationCreatedResponse",
    "ConversationDetailResponse",
    "ConversationListResponse",
    "MessageCreate",
    "MessageOut",
    "MessageListResponse",
    "SendMessageResponse",
    "UnreadCountResponse",
    "ListingReviewCreate",
    "UserReviewCreate",
    "ReviewOut",
    "ReviewCreatedResponse",
    "ReviewListResponse",
]
