"""
Reservation model for date-range rentals of a listing.
The stored status is only an input to the displayed status, see services.reservation.
"""

from sqlalchemy import Date, Numeric, ForeignKey, Index, Enum as SQLEnum, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from toolshare.database import Base
from datetime import date
from decimal import Decimal
import enum
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from toolshare.models.listing import Listing


class ReservationStatus(str, enum.Enum):
    """Stored reservation status."""
    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class Reservation(Base):
    """A user's reservation of a listing between two dates."""

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_reservations_date_order"),
    )

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Reserved listing"
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="User who made the reservation"
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="First day of the rental"
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Return day of the rental"
    )

    total_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
        comment="Rate multiplied by the number of rented days"
    )

    status: Mapped[ReservationStatus] = mapped_column(
        SQLEnum(ReservationStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ReservationStatus.PENDING,
        comment="Stored status; the displayed status is derived from dates"
    )

    listing: Mapped["Listing"] = relationship("Listing", lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, listing_id={self.listing_id}, "
            f"{self.start_date}..{self.end_date}, status={self.status})>"
        )


# Overlap checks scan a listing's reservations by date
listing_dates_index = Index(
    "idx_reservations_listing_dates",
    Reservation.listing_id,
    Reservation.start_date,
    Reservation.end_date
)
