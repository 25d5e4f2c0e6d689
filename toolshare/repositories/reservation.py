"""
Reservation repository with overlap detection.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from toolshare.repositories.base import BaseRepository
from toolshare.models.reservation import Reservation, ReservationStatus
from datetime import date
from typing import List
import uuid


class ReservationRepository(BaseRepository[Reservation]):
    """Repository for reservations."""

    def __init__(self, db: AsyncSession):
        super().__init__(Reservation, db)

    async def has_overlap(self, listing_id: uuid.UUID, start_date: date, end_date: date) -> bool:
        """
        Whether a non-cancelled reservation intersects [start_date, end_date).

        The end date is the return day, so back-to-back bookings do not overlap.
        """
        query = (
            select(Reservation.id)
            .where(
                Reservation.listing_id == listing_id,
                Reservation.status != ReservationStatus.CANCELLED,
                Reservation.start_date < end_date,
                Reservation.end_date > start_date,
            )
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.first() is not None

    async def get_for_user(self, user_id: uuid.UUID) -> List[Reservation]:
        """Reservations made by the user, most recent start first."""
        query = (
            select(Reservation)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.start_date.desc(), Reservation.created_at.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
