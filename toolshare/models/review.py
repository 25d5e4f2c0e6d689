"""
Review models for listings and users.
Each insert is followed by a recompute of the subject's denormalized rating.
"""

from sqlalchemy import String, Float, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from toolshare.database import Base
import uuid
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from toolshare.models.user import User


class ListingReview(Base):
    """Review of a listing."""

    __tablename__ = "listing_reviews"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    rating: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="0.0 to 5.0 in half steps"
    )

    comment: Mapped[Optional[str]] = mapped_column(
        String(250),
        nullable=True
    )

    reviewer: Mapped["User"] = relationship("User", lazy="selectin")


class UserReview(Base):
    """Review of a user by another user."""

    __tablename__ = "user_reviews"

    reviewee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    rating: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="0.0 to 5.0 in half steps"
    )

    comment: Mapped[Optional[str]] = mapped_column(
        String(250),
        nullable=True
    )

    reviewer: Mapped["User"] = relationship("User", foreign_keys=[reviewer_id], lazy="selectin")
