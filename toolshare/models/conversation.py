"""
Conversation, message and read-marker models.
A conversation with no listing is a direct message between two users.
"""

from sqlalchemy import String, ForeignKey, Index, UniqueConstraint, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from toolshare.database import Base, UTCDateTime, utcnow
from datetime import datetime
import uuid
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from toolshare.models.listing import Listing
    from toolshare.models.user import User


class Conversation(Base):
    """
    Two-party thread between a buyer and a seller.
    ``listing_id`` is NULL for direct messages.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        CheckConstraint("buyer_id <> seller_id", name="ck_conversations_distinct_participants"),
    )

    listing_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="Listing the conversation is about; NULL for direct messages"
    )

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    last_messaged_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        index=True,
        comment="Creation time of the newest message"
    )

    buyer: Mapped["User"] = relationship("User", foreign_keys=[buyer_id], lazy="selectin")
    seller: Mapped["User"] = relationship("User", foreign_keys=[seller_id], lazy="selectin")
    listing: Mapped[Optional["Listing"]] = relationship("Listing", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, buyer={self.buyer_id}, seller={self.seller_id})>"

    @property
    def is_direct_message(self) -> bool:
        return self.listing_id is None

    def has_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.buyer_id, self.seller_id)


class Message(Base):
    """
    Single message in a conversation.
    Messages are totally ordered by (created_at, id).
    """

    __tablename__ = "messages"

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    text: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
        comment="Message body, 1-1000 characters"
    )

    sender: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, conversation_id={self.conversation_id}, sender_id={self.sender_id})>"


class ConversationRead(Base):
    """Per-user read marker for a conversation."""

    __tablename__ = "conversation_reads"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_reads_conversation_user"),
    )

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    last_read_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow
    )


# Incremental fetch reads one conversation in creation order
conversation_created_index = Index(
    "idx_messages_conversation_created",
    Message.conversation_id,
    Message.created_at,
    Message.id
)
