"""
Pydantic schemas for conversations and messages.
Identifier fields on requests are plain strings so malformed IDs are reported
as 400 with a field-specific message instead of a generic validation error.
"""

from pydantic import Field
from typing import List, Optional
from datetime import datetime
from toolshare.schemas.common import CamelModel, UserSummary
import uuid


class ConversationCreate(CamelModel):
    """Start (or fetch) a conversation. Omit ``listingId`` for a direct message."""

    listing_id: Optional[str] = Field(None, description="Listing the conversation is about")
    buyer_id: Optional[str] = None
    seller_id: Optional[str] = None


class MessageCreate(CamelModel):
    """Message submission."""

    conversation_id: Optional[str] = None
    sender_id: Optional[str] = None
    text: Optional[str] = None


class SenderSummary(CamelModel):
    id: uuid.UUID
    name: str


class ListingSummary(CamelModel):
    id: uuid.UUID
    title: str


class MessageOut(CamelModel):
    """Message with a shallow sender projection."""

    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    text: str
    created_at: datetime
    sender: Optional[SenderSummary] = None


class ConversationOut(CamelModel):
    """Conversation with participant and listing projections."""

    id: uuid.UUID
    listing_id: Optional[uuid.UUID] = None
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    is_direct_message: bool
    last_messaged_at: datetime
    created_at: datetime
    buyer: Optional[UserSummary] = None
    seller: Optional[UserSummary] = None
    listing: Optional[ListingSummary] = None
    last_message: Optional[MessageOut] = None
    unread_count: int = 0


class ConversationCreatedResponse(CamelModel):
    message: str
    conversation: ConversationOut


class ConversationListResponse(CamelModel):
    conversations: List[ConversationOut]


class ConversationDetailResponse(CamelModel):
    conversation: ConversationOut


class SendMessageResponse(CamelModel):
    status: str = "success"
    message: str = "Message sent successfully"
    data: MessageOut


class MessageListResponse(CamelModel):
    messages: List[MessageOut]


class UnreadCountResponse(CamelModel):
    unread_count: int
