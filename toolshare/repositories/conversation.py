"""
Conversation, message and read-marker repositories.
Provides the lookups behind idempotent conversation creation, incremental
message fetch and persisted unread counts.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_, or_, case
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from toolshare.repositories.base import BaseRepository
from toolshare.models.conversation import Conversation, Message, ConversationRead
from toolshare.database import utcnow
from datetime import datetime
from typing import Optional, List, Dict, Iterable
import uuid
import logging

logger = logging.getLogger(__name__)

MARKER_UPSERT_DIALECTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for conversations."""

    def __init__(self, db: AsyncSession):
        super().__init__(Conversation, db)

    async def find_direct(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Optional[Conversation]:
        """Direct-message conversation between two users, in either role ordering."""
        query = select(Conversation).where(
            Conversation.listing_id.is_(None),
            or_(
                and_(Conversation.buyer_id == user_a, Conversation.seller_id == user_b),
                and_(Conversation.buyer_id == user_b, Conversation.seller_id == user_a),
            ),
        ).order_by(Conversation.created_at.asc())
        result = await self.db.execute(query)
        return result.scalars().first()

    async def find_for_listing(
        self,
        listing_id: uuid.UUID,
        buyer_id: uuid.UUID,
        seller_id: uuid.UUID
    ) -> Optional[Conversation]:
        """Conversation about a listing between a given buyer and seller."""
        query = select(Conversation).where(
            Conversation.listing_id == listing_id,
            Conversation.buyer_id == buyer_id,
            Conversation.seller_id == seller_id,
        ).order_by(Conversation.created_at.asc())
        result = await self.db.execute(query)
        return result.scalars().first()

    async def get_for_user(self, user_id: uuid.UUID) -> List[Conversation]:
        """Conversations where the user is buyer or seller, most recently active first."""
        query = (
            select(Conversation)
            .where(or_(Conversation.buyer_id == user_id, Conversation.seller_id == user_id))
            .order_by(Conversation.last_messaged_at.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def touch(self, conversation_id: uuid.UUID, messaged_at: datetime) -> bool:
        """Bump ``last_messaged_at``."""
        result = await self.db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(last_messaged_at=messaged_at)
        )
        return result.rowcount > 0


class MessageRepository(BaseRepository[Message]):
    """Repository for messages."""

    def __init__(self, db: AsyncSession):
        super().__init__(Message, db)

    async def list_for_conversation(
        self,
        conversation_id: uuid.UUID,
        since: Optional[datetime] = None,
        limit: int = 100
    ) -> List[Message]:
        """
        Messages of a conversation in ascending (created_at, id) order.

        Args:
            conversation_id: Conversation to read
            since: Only return messages created strictly after this instant
            limit: Maximum number of messages

        Returns:
            Ordered list of messages with their sender loaded
        """
        query = select(Message).where(Message.conversation_id == conversation_id)
        if since is not None:
            query = query.where(Message.created_at > since)
        query = query.order_by(Message.created_at.asc(), Message.id.asc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def latest_for_conversations(self, conversation_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Message]:
        """Most recent message of each conversation."""
        latest: Dict[uuid.UUID, Message] = {}
        for conversation_id in conversation_ids:
            query = (
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.desc(), Message.id.desc())
                .limit(1)
            )
            result = await self.db.execute(query)
            message = result.scalars().first()
            if message is not None:
                latest[conversation_id] = message
        return latest

    async def unread_by_conversation(self, user_id: uuid.UUID) -> Dict[uuid.UUID, int]:
        """
        Count messages from other participants newer than the user's read marker.

        Conversations without a marker count every message from the other side.
        """
        query = (
            select(Message.conversation_id, func.count(Message.id))
            .join(Conversation, Conversation.id == Message.conversation_id)
            .outerjoin(
                ConversationRead,
                and_(
                    ConversationRead.conversation_id == Message.conversation_id,
                    ConversationRead.user_id == user_id,
                ),
            )
            .where(
                or_(Conversation.buyer_id == user_id, Conversation.seller_id == user_id),
                Message.sender_id != user_id,
                or_(
                    ConversationRead.last_read_at.is_(None),
                    Message.created_at > ConversationRead.last_read_at,
                ),
            )
            .group_by(Message.conversation_id)
        )
        result = await self.db.execute(query)
        return {conversation_id: count for conversation_id, count in result.all()}


def upsert_marker_statement(dialect_name: str, conversation_id: uuid.UUID, user_id: uuid.UUID, read_at: datetime):
    """
    ``INSERT .. ON CONFLICT DO UPDATE`` for a read marker.
    The stored value only moves forward, so concurrent first writes by the
    same user cannot collide on the unique constraint.
    """
    insert = MARKER_UPSERT_DIALECTS.get(dialect_name)
    if insert is None:
        raise NotImplementedError(f"Read marker upsert is not available for {dialect_name}")

    stmt = insert(ConversationRead).values(
        conversation_id=conversation_id,
        user_id=user_id,
        last_read_at=read_at,
    )
    current = ConversationRead.__table__.c.last_read_at
    return stmt.on_conflict_do_update(
        index_elements=["conversation_id", "user_id"],
        set_={
            "last_read_at": case(
                (stmt.excluded.last_read_at > current, stmt.excluded.last_read_at),
                else_=current,
            ),
            "updated_at": utcnow(),
        },
    )


class ConversationReadRepository(BaseRepository[ConversationRead]):
    """Repository for per-user read markers."""

    def __init__(self, db: AsyncSession):
        super().__init__(ConversationRead, db)

    async def get_marker(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> Optional[ConversationRead]:
        result = await self.db.execute(
            select(ConversationRead)
            .where(
                ConversationRead.conversation_id == conversation_id,
                ConversationRead.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def advance(self, conversation_id: uuid.UUID, user_id: uuid.UUID, read_at: datetime) -> ConversationRead:
        """
        Move the user's read marker forward to ``read_at``, creating it if needed.
        Markers never move backwards.
        """
        dialect_name = self.db.get_bind().dialect.name
        await self.db.execute(upsert_marker_statement(dialect_name, conversation_id, user_id, read_at))
        return await self.get_marker(conversation_id, user_id)
