"""
Listing model for rentable tools plus its images and tags.
Images and tags are owned by a listing and removed with it by the database.
"""

from sqlalchemy import String, Text, Numeric, Float, Boolean, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from toolshare.database import Base
from decimal import Decimal
import uuid
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from toolshare.models.user import User


class Listing(Base):
    """
    A tool offered for rent.
    Deleting a listing cascades to images, tags, reservations, conversations and reviews.
    """

    __tablename__ = "listings"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the user who owns this listing"
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Listing title"
    )

    category: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Tool category"
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Detailed listing description"
    )

    rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Daily rental rate"
    )

    rating: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Average rating from listing reviews (0-5)"
    )

    owner: Mapped["User"] = relationship(
        "User",
        back_populates="listings",
        lazy="selectin"
    )

    images: Mapped[List["ListingImage"]] = relationship(
        "ListingImage",
        back_populates="listing",
        passive_deletes=True,
        lazy="selectin",
        order_by="ListingImage.is_main_photo.desc(), ListingImage.created_at.asc()"
    )

    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        back_populates="listing",
        passive_deletes=True,
        lazy="selectin",
        order_by="Tag.created_at.asc()"
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, title={self.title[:30]}, rate={self.rate})>"


class ListingImage(Base):
    """Reference to an image blob held in the object store."""

    __tablename__ = "listing_images"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the listing this image belongs to"
    )

    url: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
        comment="Object store URL of the image"
    )

    is_main_photo: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Whether this image is the listing's main photo"
    )

    listing: Mapped["Listing"] = relationship(
        "Listing",
        back_populates="images",
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<ListingImage(id={self.id}, listing_id={self.listing_id}, main={self.is_main_photo})>"


class Tag(Base):
    """Free-text tag attached to a listing, stored lower-cased."""

    __tablename__ = "tags"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the tagged listing"
    )

    text: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Lower-cased tag text"
    )

    listing: Mapped["Listing"] = relationship(
        "Listing",
        back_populates="tags",
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, text={self.text})>"


# Owner dashboards list a user's listings newest first
owner_created_index = Index(
    "idx_listings_owner_created",
    Listing.owner_id,
    Listing.created_at.desc()
)
