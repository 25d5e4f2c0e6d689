"""
Message delivery service.

Server half of the polling protocol: validated ingestion that records a
message and bumps its conversation in one transaction, incremental fetch
with a clock-skew allowance, and unread counts based on persisted read
markers.
"""

from typing import List, Optional
from datetime import datetime, timedelta
from toolshare.config import settings
from toolshare.database import UnitOfWork, utcnow
from toolshare.models.user import User
from toolshare.repositories.conversation import (
    ConversationReadRepository,
    ConversationRepository,
    MessageRepository,
)
from toolshare.schemas.conversation import MessageCreate, MessageOut
from toolshare.services.conversation import message_to_out
from toolshare.utils.exceptions import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    NotParticipantError,
)
from toolshare.utils.validators import ensure_aware, parse_uuid
import uuid
import logging

logger = logging.getLogger(__name__)


def validate_message_text(text: Optional[str]) -> str:
    """
    Validate message content.

    Returns:
        The text with surrounding whitespace removed

    Raises:
        BadRequestError: If the text is missing, blank or too long
    """
    if text is None:
        raise BadRequestError("Message text is required")
    if not isinstance(text, str):
        raise BadRequestError("Message text must be a string")
    trimmed = text.strip()
    if not trimmed:
        raise BadRequestError("Message cannot be empty")
    if len(trimmed) > settings.message_max_length:
        raise BadRequestError(
            f"Message is too long (maximum {settings.message_max_length} characters)"
        )
    return trimmed


def clamp_limit(limit: Optional[int]) -> int:
    """Fetch limit bounded to 1..message_fetch_limit, defaulting to the maximum."""
    if limit is None:
        return settings.message_fetch_limit
    return max(1, min(int(limit), settings.message_fetch_limit))


class MessageService:
    """Validates, stores and serves conversation messages."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def send_message(self, caller: User, message_data: MessageCreate) -> MessageOut:
        """
        Store a message.

        The message insert, the conversation's ``last_messaged_at`` bump and
        the sender's read marker are committed together.

        Args:
            caller: Authenticated user
            message_data: Conversation ID, sender ID and text

        Returns:
            The stored message with sender projection

        Raises:
            BadRequestError: If fields are missing, malformed or the text is invalid
            ForbiddenError: If the sender is not the authenticated caller
            NotFoundError: If the conversation doesn't exist
            NotParticipantError: If the sender is not buyer or seller
        """
        text = validate_message_text(message_data.text)
        if not message_data.conversation_id or not message_data.sender_id:
            raise BadRequestError(
                "Missing required fields: conversationId, senderId, and text are required"
            )
        conversation_id = parse_uuid(message_data.conversation_id, "conversationId")
        sender_id = parse_uuid(message_data.sender_id, "senderId")

        if sender_id != caller.id:
            raise ForbiddenError("You can only send messages as yourself")

        async with self.uow.transaction() as session:
            conversation = await ConversationRepository(session).get_by_id(conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation", str(conversation_id))
            if not conversation.has_participant(sender_id):
                logger.warning(
                    f"User {sender_id} tried to post to conversation {conversation_id} "
                    f"without being a participant"
                )
                raise NotParticipantError()

            message = await MessageRepository(session).create({
                "conversation_id": conversation_id,
                "sender_id": sender_id,
                "text": text,
            })
            await ConversationRepository(session).touch(conversation_id, message.created_at)
            await ConversationReadRepository(session).advance(conversation_id, sender_id, message.created_at)
            message_id = message.id
            created_at = message.created_at

        logger.debug(f"Message {message_id} stored in conversation {conversation_id}")
        return MessageOut(
            id=message_id,
            conversation_id=conversation_id,
            sender_id=sender_id,
            text=text,
            created_at=created_at,
            sender={"id": caller.id, "name": caller.name},
        )

    async def list_messages(
        self,
        caller: User,
        conversation_id: uuid.UUID,
        since: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[MessageOut]:
        """
        Messages of a conversation in ascending creation order.

        When ``since`` is given, messages newer than ``since`` minus the
        configured skew are returned, so the newest already-seen message may
        come back again and must be de-duplicated by ID.

        Raises:
            NotFoundError: If the conversation doesn't exist
            NotParticipantError: If the caller is not buyer or seller
        """
        cutoff = None
        if since is not None:
            cutoff = ensure_aware(since) - timedelta(seconds=settings.message_since_skew_seconds)

        async with self.uow.session() as session:
            conversation = await ConversationRepository(session).get_by_id(conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation", str(conversation_id))
            if not conversation.has_participant(caller.id):
                raise NotParticipantError()
            messages = await MessageRepository(session).list_for_conversation(
                conversation_id, since=cutoff, limit=clamp_limit(limit)
            )

        return [message_to_out(m) for m in messages]

    async def unread_count(self, caller: User, user_id: Optional[uuid.UUID] = None) -> int:
        """
        Total unread messages across the caller's conversations.

        Raises:
            ForbiddenError: If asking for another user's count
        """
        if user_id is not None and user_id != caller.id:
            raise ForbiddenError("You can only view your own unread count")
        async with self.uow.session() as session:
            counts = await MessageRepository(session).unread_by_conversation(caller.id)
        return sum(counts.values())

    async def mark_conversation_read(self, caller: User, conversation_id: uuid.UUID) -> None:
        """
        Advance the caller's read marker to now.

        Raises:
            NotFoundError: If the conversation doesn't exist
            NotParticipantError: If the caller is not buyer or seller
        """
        async with self.uow.transaction() as session:
            conversation = await ConversationRepository(session).get_by_id(conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation", str(conversation_id))
            if not conversation.has_participant(caller.id):
                raise NotParticipantError()
            await ConversationReadRepository(session).advance(conversation_id, caller.id, utcnow())

    async def mark_message_read(self, caller: User, message_id: uuid.UUID) -> None:
        """
        Advance the caller's read marker up to a specific message.

        Raises:
            NotFoundError: If the message doesn't exist
            NotParticipantError: If the caller is not buyer or seller
        """
        async with self.uow.transaction() as session:
            message = await MessageRepository(session).get_by_id(message_id)
            if message is None:
                raise NotFoundError("Message", str(message_id))
            conversation = await ConversationRepository(session).get_by_id(message.conversation_id)
            if conversation is None or not conversation.has_participant(caller.id):
                raise NotParticipantError()
            await ConversationReadRepository(session).advance(
                message.conversation_id, caller.id, message.created_at
            )

    async def delete_message(self, caller: User, message_id: uuid.UUID) -> None:
        """
        Delete one of the caller's own messages.

        Raises:
            NotFoundError: If the message doesn't exist
            ForbiddenError: If the caller didn't send it
        """
        async with self.uow.transaction() as session:
            message_repo = MessageRepository(session)
            message = await message_repo.get_by_id(message_id)
            if message is None:
                raise NotFoundError("Message", str(message_id))
            if message.sender_id != caller.id:
                raise ForbiddenError("You can only delete your own messages")
            await message_repo.delete(message_id)

        logger.info(f"Message {message_id} deleted by user {caller.id}")
