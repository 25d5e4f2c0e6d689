"""
Conversation service.
Creates conversations idempotently and serves participant-scoped lookups.
A conversation's context is either a listing or a direct message; direct
messages store no listing reference at all.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union
from toolshare.database import UnitOfWork
from toolshare.models.conversation import Conversation, Message
from toolshare.models.user import User
from toolshare.repositories.conversation import ConversationRepository, MessageRepository
from toolshare.repositories.listing import ListingRepository
from toolshare.repositories.user import UserRepository
from toolshare.schemas.common import UserSummary
from toolshare.schemas.conversation import (
    ConversationCreate,
    ConversationOut,
    ListingSummary,
    MessageOut,
    SenderSummary,
)
from toolshare.utils.exceptions import (
    BadRequestError,
    ListingNotFoundError,
    NotFoundError,
    NotParticipantError,
)
from toolshare.utils.validators import parse_uuid
import uuid
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingContext:
    """Conversation about a specific listing."""

    listing_id: uuid.UUID


@dataclass(frozen=True)
class DirectMessage:
    """Conversation between two users with no listing attached."""


ConversationContext = Union[ListingContext, DirectMessage]


def context_for(listing_id: Optional[uuid.UUID]) -> ConversationContext:
    return ListingContext(listing_id) if listing_id is not None else DirectMessage()


def message_to_out(message: Message) -> MessageOut:
    sender = message.sender
    return MessageOut(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        text=message.text,
        created_at=message.created_at,
        sender=SenderSummary(id=sender.id, name=sender.name) if sender is not None else None,
    )


def conversation_to_out(
    conversation: Conversation,
    last_message: Optional[Message] = None,
    unread_count: int = 0
) -> ConversationOut:
    listing = conversation.listing
    return ConversationOut(
        id=conversation.id,
        listing_id=conversation.listing_id,
        buyer_id=conversation.buyer_id,
        seller_id=conversation.seller_id,
        is_direct_message=conversation.is_direct_message,
        last_messaged_at=conversation.last_messaged_at,
        created_at=conversation.created_at,
        buyer=UserSummary.model_validate(conversation.buyer) if conversation.buyer else None,
        seller=UserSummary.model_validate(conversation.seller) if conversation.seller else None,
        listing=ListingSummary(id=listing.id, title=listing.title) if listing is not None else None,
        last_message=message_to_out(last_message) if last_message is not None else None,
        unread_count=unread_count,
    )


class ConversationService:
    """Creates and looks up conversations, enforcing participant identity."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def create_conversation(
        self,
        caller: User,
        conversation_data: ConversationCreate
    ) -> Tuple[ConversationOut, bool]:
        """
        Create a conversation or return the existing one.

        Direct messages match an existing thread between the same two users
        in either role ordering. Listing conversations match on
        (listing, buyer, seller).

        Args:
            caller: Authenticated user, must be the buyer or the seller
            conversation_data: Participant IDs and optional listing ID

        Returns:
            Tuple of (conversation, created)

        Raises:
            BadRequestError: If IDs are missing or malformed, or buyer equals seller
            NotFoundError: If a participant or the listing doesn't exist
            NotParticipantError: If the caller is not one of the participants
        """
        if not conversation_data.buyer_id or not conversation_data.seller_id:
            raise BadRequestError("Missing required fields: buyerId and sellerId are required")

        buyer_id = parse_uuid(conversation_data.buyer_id, "buyerId")
        seller_id = parse_uuid(conversation_data.seller_id, "sellerId")
        listing_id = (
            parse_uuid(conversation_data.listing_id, "listingId")
            if conversation_data.listing_id else None
        )
        context = context_for(listing_id)

        if buyer_id == seller_id:
            raise BadRequestError("Buyer and seller must be different users")
        if caller.id not in (buyer_id, seller_id):
            raise NotParticipantError("You can only start conversations you take part in")

        async with self.uow.transaction() as session:
            user_repo = UserRepository(session)
            if await user_repo.get_by_id(buyer_id) is None:
                raise NotFoundError("Buyer", str(buyer_id))
            if await user_repo.get_by_id(seller_id) is None:
                raise NotFoundError("Seller", str(seller_id))

            conversation_repo = ConversationRepository(session)
            if isinstance(context, ListingContext):
                if not await ListingRepository(session).exists(context.listing_id):
                    raise ListingNotFoundError(str(context.listing_id))
                existing = await conversation_repo.find_for_listing(context.listing_id, buyer_id, seller_id)
            else:
                existing = await conversation_repo.find_direct(buyer_id, seller_id)

            if existing is not None:
                logger.debug(f"Conversation {existing.id} already exists")
                return conversation_to_out(existing), False

            created = await conversation_repo.create({
                "listing_id": listing_id,
                "buyer_id": buyer_id,
                "seller_id": seller_id,
            })
            conversation_id = created.id

        logger.info(
            f"Conversation {conversation_id} created by user {caller.id} "
            f"({'direct message' if listing_id is None else f'listing {listing_id}'})"
        )
        return await self.get_conversation(caller, conversation_id), True

    async def get_conversation(self, caller: User, conversation_id: uuid.UUID) -> ConversationOut:
        """
        Get a conversation with participant and listing projections.

        Raises:
            NotFoundError: If the conversation doesn't exist
            NotParticipantError: If the caller is not buyer or seller
        """
        async with self.uow.session() as session:
            conversation = await ConversationRepository(session).get_by_id(conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation", str(conversation_id))
            if not conversation.has_participant(caller.id):
                raise NotParticipantError()
            message_repo = MessageRepository(session)
            latest = await message_repo.latest_for_conversations([conversation.id])
            unread = await message_repo.unread_by_conversation(caller.id)
        return conversation_to_out(conversation, latest.get(conversation.id), unread.get(conversation.id, 0))

    async def list_conversations(self, caller: User) -> List[ConversationOut]:
        """
        Conversations the caller takes part in, most recently active first.
        Each entry carries its last message with sender and its unread count.
        """
        async with self.uow.session() as session:
            conversations = await ConversationRepository(session).get_for_user(caller.id)
            message_repo = MessageRepository(session)
            latest = await message_repo.latest_for_conversations(c.id for c in conversations)
            unread = await message_repo.unread_by_conversation(caller.id)

        return [
            conversation_to_out(c, latest.get(c.id), unread.get(c.id, 0))
            for c in conversations
        ]

    async def delete_conversation(self, caller: User, conversation_id: uuid.UUID) -> None:
        """
        Delete a conversation and its messages.

        Raises:
            NotFoundError: If the conversation doesn't exist
            NotParticipantError: If the caller is not buyer or seller
        """
        async with self.uow.transaction() as session:
            conversation_repo = ConversationRepository(session)
            conversation = await conversation_repo.get_by_id(conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation", str(conversation_id))
            if not conversation.has_participant(caller.id):
                raise NotParticipantError("You can only delete conversations you are part of")
            await conversation_repo.delete(conversation_id)

        logger.info(f"Conversation {conversation_id} deleted by user {caller.id}")
