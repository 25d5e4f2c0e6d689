"""
Tests for reservation creation, cancellation and display-status derivation.
"""

import pytest
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.dialects import postgresql

from toolshare.models.reservation import ReservationStatus
from toolshare.repositories.listing import ListingRepository, lock_listing_statement
from toolshare.repositories.reservation import ReservationRepository
from toolshare.schemas.reservation import ReservationCreate
from toolshare.services.reservation import (
    ReservationService,
    can_cancel,
    can_review,
    compute_total_price,
    derive_status,
    rental_days,
)
from toolshare.utils.exceptions import (
    BadRequestError,
    ForbiddenError,
    ListingNotFoundError,
    NotFoundError,
    ReservationConflictError,
)
from tests.conftest import ListingFactory, ReservationFactory


class TestDeriveStatus:
    """Display status is a pure function of today, the dates and the stored status."""

    START = date(2024, 6, 1)
    END = date(2024, 6, 5)

    def test_cancelled_wins_regardless_of_dates(self):
        assert derive_status(date(2024, 6, 3), self.START, self.END, "cancelled") == "Cancelled"
        assert derive_status(date(2024, 5, 1), self.START, self.END, ReservationStatus.CANCELLED) == "Cancelled"
        assert derive_status(date(2024, 7, 1), self.START, self.END, "CANCELLED") == "Cancelled"

    def test_upcoming_before_start(self):
        assert derive_status(date(2024, 5, 31), self.START, self.END, "pending") == "Upcoming"

    def test_active_on_boundaries(self):
        assert derive_status(self.START, self.START, self.END, "pending") == "Active"
        assert derive_status(date(2024, 6, 3), self.START, self.END, "pending") == "Active"
        assert derive_status(self.END, self.START, self.END, "pending") == "Active"

    def test_completed_after_end(self):
        assert derive_status(date(2024, 6, 6), self.START, self.END, "pending") == "Completed"

    def test_time_of_day_is_ignored(self):
        """Scenario: start Jun 1, end Jun 5, today Jun 3 late in the day."""
        now = datetime(2024, 6, 3, 23, 59, tzinfo=timezone.utc)
        start = datetime(2024, 6, 1, 15, 0, tzinfo=timezone.utc)
        end = datetime(2024, 6, 5, 8, 0, tzinfo=timezone.utc)

        status = derive_status(now, start, end, "pending")

        assert status == "Active"
        assert can_cancel(status) is True
        assert can_review(status) is False

    def test_missing_dates_fall_back_to_stored_status(self):
        assert derive_status(date(2024, 6, 3), None, self.END, "ongoing") == "Ongoing"
        assert derive_status(date(2024, 6, 3), None, None, None) == "Pending"

    def test_affordances(self):
        assert can_cancel("Upcoming") and can_cancel("Active")
        assert not can_cancel("Completed") and not can_cancel("Cancelled")
        assert can_review("Completed")
        assert not can_review("Active") and not can_review("Cancelled")


class TestPricing:
    def test_rental_days(self):
        assert rental_days(date(2024, 6, 1), date(2024, 6, 5)) == 4
        assert rental_days(date(2024, 6, 1), date(2024, 6, 2)) == 1

    def test_partial_days_round_up(self):
        start = datetime(2024, 6, 1, 9, 0)
        end = datetime(2024, 6, 2, 12, 0)
        assert rental_days(start, end) == 2

    def test_total_price(self):
        assert compute_total_price(date(2024, 6, 1), date(2024, 6, 4), Decimal("12.50")) == Decimal("37.50")


class TestReservationService:
    """Reservation creation and cancellation."""

    @pytest.mark.asyncio
    async def test_create_reservation(self, uow, renter, listing_id, tomorrow):
        service = ReservationService(uow)

        reservation = await service.create_reservation(
            renter,
            ReservationCreate(listing_id=listing_id, start_date=tomorrow, end_date=tomorrow + timedelta(days=3)),
        )

        assert reservation.user_id == renter.id
        assert reservation.listing_id == listing_id
        assert reservation.total_price == Decimal("45.00")
        assert reservation.status == "pending"
        assert reservation.display_status == "Upcoming"
        assert reservation.can_cancel is True
        assert reservation.listing_title == "Cordless drill"

    @pytest.mark.asyncio
    async def test_rejects_inverted_dates(self, uow, renter, listing_id, tomorrow):
        service = ReservationService(uow)

        with pytest.raises(BadRequestError, match="Start date must be before end date"):
            await service.create_reservation(
                renter, ReservationCreate(listing_id=listing_id, start_date=tomorrow, end_date=tomorrow)
            )

    @pytest.mark.asyncio
    async def test_rejects_past_start(self, uow, renter, listing_id):
        service = ReservationService(uow, today=lambda: date(2024, 6, 10))

        with pytest.raises(BadRequestError, match="past"):
            await service.create_reservation(
                renter,
                ReservationCreate(listing_id=listing_id, start_date=date(2024, 6, 9), end_date=date(2024, 6, 12)),
            )

    @pytest.mark.asyncio
    async def test_missing_listing(self, uow, renter, tomorrow):
        service = ReservationService(uow)

        with pytest.raises(ListingNotFoundError):
            await service.create_reservation(
                renter,
                ReservationCreate(listing_id=uuid.uuid4(), start_date=tomorrow, end_date=tomorrow + timedelta(days=1)),
            )

    @pytest.mark.asyncio
    async def test_overlapping_reservation_is_rejected(self, uow, renter, outsider, listing_id, tomorrow):
        service = ReservationService(uow)
        await service.create_reservation(
            renter,
            ReservationCreate(listing_id=listing_id, start_date=tomorrow, end_date=tomorrow + timedelta(days=4)),
        )

        with pytest.raises(ReservationConflictError) as exc_info:
            await service.create_reservation(
                outsider,
                ReservationCreate(
                    listing_id=listing_id,
                    start_date=tomorrow + timedelta(days=2),
                    end_date=tomorrow + timedelta(days=6),
                ),
            )
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_back_to_back_reservations_are_allowed(self, uow, renter, outsider, listing_id, tomorrow):
        """Ranges are half-open: a return day can be the next rental's start day."""
        service = ReservationService(uow)
        await service.create_reservation(
            renter,
            ReservationCreate(listing_id=listing_id, start_date=tomorrow, end_date=tomorrow + timedelta(days=2)),
        )

        second = await service.create_reservation(
            outsider,
            ReservationCreate(
                listing_id=listing_id,
                start_date=tomorrow + timedelta(days=2),
                end_date=tomorrow + timedelta(days=5),
            ),
        )
        assert second.start_date == tomorrow + timedelta(days=2)

    @pytest.mark.asyncio
    async def test_cancelled_reservations_free_their_dates(self, uow, renter, outsider, listing_id, tomorrow):
        await ReservationFactory.create_reservation(
            uow, listing_id, renter, tomorrow, tomorrow + timedelta(days=3), status=ReservationStatus.CANCELLED
        )
        service = ReservationService(uow)

        reservation = await service.create_reservation(
            outsider,
            ReservationCreate(listing_id=listing_id, start_date=tomorrow, end_date=tomorrow + timedelta(days=3)),
        )
        assert reservation.display_status == "Upcoming"

    @pytest.mark.asyncio
    async def test_cancel_by_reserver_and_owner(self, uow, owner, renter, listing_id, tomorrow):
        service = ReservationService(uow)
        first = await ReservationFactory.create_reservation(uow, listing_id, renter, tomorrow, tomorrow + timedelta(days=1))
        second = await ReservationFactory.create_reservation(
            uow, listing_id, renter, tomorrow + timedelta(days=2), tomorrow + timedelta(days=3)
        )

        await service.cancel_reservation(renter, first.id)
        await service.cancel_reservation(owner, second.id)

        assert await service.get_user_reservations(renter) == []

    @pytest.mark.asyncio
    async def test_cancel_by_outsider_is_forbidden(self, uow, renter, outsider, listing_id, tomorrow):
        service = ReservationService(uow)
        reservation = await ReservationFactory.create_reservation(
            uow, listing_id, renter, tomorrow, tomorrow + timedelta(days=1)
        )

        with pytest.raises(ForbiddenError):
            await service.cancel_reservation(outsider, reservation.id)

    @pytest.mark.asyncio
    async def test_cancel_missing_reservation(self, uow, renter):
        with pytest.raises(NotFoundError):
            await ReservationService(uow).cancel_reservation(renter, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_user_reservations_are_scoped_to_the_user(self, uow, owner, renter, outsider, tomorrow):
        first_listing = await ListingFactory.create_listing(uow, owner, title="Ladder")
        second_listing = await ListingFactory.create_listing(uow, owner, title="Wheelbarrow")
        await ReservationFactory.create_reservation(uow, first_listing, renter, tomorrow, tomorrow + timedelta(days=1))
        await ReservationFactory.create_reservation(uow, second_listing, outsider, tomorrow, tomorrow + timedelta(days=1))

        reservations = await ReservationService(uow).get_user_reservations(renter)

        assert len(reservations) == 1
        assert reservations[0].listing_title == "Ladder"
        assert reservations[0].display_status == "Upcoming"

    @pytest.mark.asyncio
    async def test_listing_row_is_locked_before_the_overlap_check(self, uow, renter, listing_id, tomorrow, monkeypatch):
        calls = []
        original_lock = ListingRepository.get_for_update
        original_overlap = ReservationRepository.has_overlap

        async def locking_get(repo, listing_id):
            calls.append("lock")
            return await original_lock(repo, listing_id)

        async def overlap(repo, *args):
            calls.append("overlap")
            return await original_overlap(repo, *args)

        monkeypatch.setattr(ListingRepository, "get_for_update", locking_get)
        monkeypatch.setattr(ReservationRepository, "has_overlap", overlap)

        await ReservationService(uow).create_reservation(
            renter,
            ReservationCreate(listing_id=listing_id, start_date=tomorrow, end_date=tomorrow + timedelta(days=1)),
        )

        assert calls == ["lock", "overlap"]

    def test_lock_renders_for_update_on_postgresql(self):
        compiled = str(lock_listing_statement(uuid.uuid4()).compile(dialect=postgresql.dialect()))

        assert "FOR UPDATE OF listings" in compiled
