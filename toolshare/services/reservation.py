"""
Reservation write coordinator and display-status derivation.
The status shown to users is derived from today's date and the reservation
dates; the stored column only matters once a reservation is cancelled.
"""

from typing import Callable, List, Optional
from datetime import date, datetime, timezone
from decimal import Decimal
from toolshare.database import UnitOfWork
from toolshare.models.reservation import Reservation, ReservationStatus
from toolshare.models.user import User
from toolshare.repositories.listing import ListingRepository
from toolshare.repositories.reservation import ReservationRepository
from toolshare.schemas.reservation import ReservationCreate, ReservationResponse
from toolshare.utils.exceptions import (
    APIException,
    BadRequestError,
    ForbiddenError,
    InternalServerError,
    ListingNotFoundError,
    NotFoundError,
    ReservationConflictError,
)
import math
import uuid
import logging

logger = logging.getLogger(__name__)

CANCELLED = "Cancelled"
UPCOMING = "Upcoming"
ACTIVE = "Active"
COMPLETED = "Completed"
PENDING = "Pending"


def _as_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def derive_status(
    now,
    start_date,
    end_date,
    stored_status: Optional[str] = None
) -> str:
    """
    Status displayed for a reservation.

    Comparison is date-only; time of day is ignored.

    Args:
        now: Current date or datetime
        start_date: First day of the rental
        end_date: Return day of the rental
        stored_status: Value of the status column

    Returns:
        One of Cancelled, Upcoming, Active, Completed, or the stored status
    """
    stored = stored_status.value if isinstance(stored_status, ReservationStatus) else stored_status
    if stored and stored.lower() == ReservationStatus.CANCELLED.value:
        return CANCELLED

    today, start, end = _as_date(now), _as_date(start_date), _as_date(end_date)
    if today is not None and start is not None and end is not None:
        if today < start:
            return UPCOMING
        if start <= today <= end:
            return ACTIVE
        if today > end:
            return COMPLETED

    return stored.capitalize() if stored else PENDING


def can_cancel(display_status: str) -> bool:
    return display_status not in (CANCELLED, COMPLETED)


def can_review(display_status: str) -> bool:
    return display_status == COMPLETED


def rental_days(start_date: date, end_date: date) -> int:
    """Whole days billed for a rental, rounded up."""
    seconds = (end_date - start_date).total_seconds()
    return math.ceil(seconds / 86400)


def compute_total_price(start_date: date, end_date: date, rate: Decimal) -> Decimal:
    return Decimal(rental_days(start_date, end_date)) * Decimal(rate)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class ReservationService:
    """
    Creates, cancels and reads reservations.

    Creation runs the overlap check and the insert in one transaction.
    """

    def __init__(self, uow: UnitOfWork, today: Callable[[], date] = utc_today):
        self.uow = uow
        self.today = today

    async def create_reservation(self, user: User, reservation_data: ReservationCreate) -> ReservationResponse:
        """
        Reserve a listing for a date range.

        Args:
            user: Authenticated user making the reservation
            reservation_data: Listing and dates

        Returns:
            The stored reservation with derived status

        Raises:
            BadRequestError: If the dates are invalid
            ListingNotFoundError: If the listing doesn't exist
            ReservationConflictError: If the dates overlap an active reservation
            InternalServerError: If the database write fails
        """
        start, end = reservation_data.start_date, reservation_data.end_date
        if start >= end:
            raise BadRequestError("Start date must be before end date")
        if start < self.today():
            raise BadRequestError("Start date cannot be in the past")

        try:
            async with self.uow.transaction() as session:
                listing = await ListingRepository(session).get_for_update(reservation_data.listing_id)
                if listing is None:
                    raise ListingNotFoundError(str(reservation_data.listing_id))

                reservation_repo = ReservationRepository(session)
                if await reservation_repo.has_overlap(listing.id, start, end):
                    raise ReservationConflictError(str(listing.id))

                reservation = await reservation_repo.create({
                    "listing_id": listing.id,
                    "user_id": user.id,
                    "start_date": start,
                    "end_date": end,
                    "total_price": compute_total_price(start, end, listing.rate),
                    "status": ReservationStatus.PENDING,
                })
                listing_title = listing.title
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create reservation for user {user.id}: {e}")
            raise InternalServerError("Error creating reservation")

        logger.info(
            f"Reservation {reservation.id} created by user {user.id} for listing "
            f"{reservation.listing_id} ({start}..{end}, total {reservation.total_price})"
        )
        return self.to_response(reservation, listing_title=listing_title)

    async def cancel_reservation(self, user: User, reservation_id: uuid.UUID) -> None:
        """
        Delete a reservation.

        Only the user who made the reservation or the listing owner may do so.

        Raises:
            NotFoundError: If the reservation doesn't exist
            ForbiddenError: If the caller is neither reserver nor listing owner
            InternalServerError: If the database write fails
        """
        try:
            async with self.uow.transaction() as session:
                reservation_repo = ReservationRepository(session)
                reservation = await reservation_repo.get_by_id(reservation_id)
                if reservation is None:
                    raise NotFoundError("Reservation", str(reservation_id))
                if user.id not in (reservation.user_id, reservation.listing.owner_id):
                    raise ForbiddenError("You cannot cancel this reservation")
                await reservation_repo.delete(reservation_id)
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete reservation {reservation_id}: {e}")
            raise InternalServerError("Error deleting reservation")

        logger.info(f"Reservation {reservation_id} deleted by user {user.id}")

    async def get_user_reservations(self, user: User) -> List[ReservationResponse]:
        async with self.uow.session() as session:
            reservations = await ReservationRepository(session).get_for_user(user.id)
        return [self.to_response(r) for r in reservations]

    async def get_reservation(self, user: User, reservation_id: uuid.UUID) -> ReservationResponse:
        """
        Get one reservation visible to the caller.

        Raises:
            NotFoundError: If the reservation doesn't exist
            ForbiddenError: If the caller is neither reserver nor listing owner
        """
        async with self.uow.session() as session:
            reservation = await ReservationRepository(session).get_by_id(reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation", str(reservation_id))
        if user.id not in (reservation.user_id, reservation.listing.owner_id):
            raise ForbiddenError("You cannot view this reservation")
        return self.to_response(reservation)

    def to_response(self, reservation: Reservation, listing_title: Optional[str] = None) -> ReservationResponse:
        display = derive_status(self.today(), reservation.start_date, reservation.end_date, reservation.status)
        if listing_title is None and reservation.listing is not None:
            listing_title = reservation.listing.title
        return ReservationResponse(
            id=reservation.id,
            listing_id=reservation.listing_id,
            listing_title=listing_title,
            user_id=reservation.user_id,
            start_date=reservation.start_date,
            end_date=reservation.end_date,
            total_price=reservation.total_price,
            status=ReservationStatus(reservation.status).value,
            display_status=display,
            can_cancel=can_cancel(display),
            can_review=can_review(display),
            created_at=reservation.created_at,
        )
