"""
User model for marketplace accounts.
Users own listings, make reservations, take part in conversations and write reviews.
"""

from sqlalchemy import String, Text, Float
from sqlalchemy.orm import Mapped, mapped_column, relationship
from toolshare.database import Base
from email_validator import validate_email, EmailNotValidError
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from toolshare.models.listing import Listing


class User(Base):
    """
    Marketplace user.
    ``rating`` is the denormalized mean of the user's received reviews.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User email address - must be unique and valid"
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name"
    )

    bio: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Free-form profile text"
    )

    location: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="User's city or region"
    )

    profile_photo_url: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True,
        comment="Object store URL of the profile photo"
    )

    rating: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Average rating from user reviews (0-5)"
    )

    listings: Mapped[List["Listing"]] = relationship(
        "Listing",
        back_populates="owner",
        passive_deletes=True,
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"

    @classmethod
    def validate_email_format(cls, email: str) -> str:
        """Syntax check and normalisation; raises ValueError for a malformed address."""
        try:
            return validate_email(email, check_deliverability=False).normalized.lower()
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email format: {e}")
