"""
Reservation API endpoints.
"""

from fastapi import APIRouter, Depends, Path, status
from toolshare.models.user import User
from toolshare.schemas.common import MessageResponse
from toolshare.schemas.reservation import (
    ReservationCreate,
    ReservationCreatedResponse,
    ReservationListResponse,
    ReservationResponse,
)
from toolshare.services.reservation import ReservationService
from toolshare.utils.dependencies import get_current_user, get_reservation_service
from toolshare.utils.validators import parse_uuid


router = APIRouter(prefix="/reservation", tags=["Reservations"])


@router.post(
    "/create-reservation",
    response_model=ReservationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reserve a listing",
    description="Book a listing for a date range. Overlapping active reservations are rejected with 409."
)
async def create_reservation(
    reservation_data: ReservationCreate,
    current_user: User = Depends(get_current_user),
    reservation_service: ReservationService = Depends(get_reservation_service)
) -> ReservationCreatedResponse:
    """
    Create a reservation.

    Raises:
        BadRequestError: If the dates are invalid
        ListingNotFoundError: If the listing doesn't exist
        ReservationConflictError: If the dates are already booked
    """
    reservation = await reservation_service.create_reservation(current_user, reservation_data)
    return ReservationCreatedResponse(reservation=reservation)


@router.delete(
    "/delete/{reservation_id}",
    response_model=MessageResponse,
    summary="Cancel a reservation"
)
async def delete_reservation(
    reservation_id: str = Path(..., description="Reservation ID"),
    current_user: User = Depends(get_current_user),
    reservation_service: ReservationService = Depends(get_reservation_service)
) -> MessageResponse:
    await reservation_service.cancel_reservation(current_user, parse_uuid(reservation_id, "reservationId"))
    return MessageResponse(message="Reservation has been deleted")


@router.get(
    "/my-reservations",
    response_model=ReservationListResponse,
    summary="Current user's reservations"
)
async def my_reservations(
    current_user: User = Depends(get_current_user),
    reservation_service: ReservationService = Depends(get_reservation_service)
) -> ReservationListResponse:
    reservations = await reservation_service.get_user_reservations(current_user)
    return ReservationListResponse(reservations=reservations)


@router.get(
    "/get-reservation/{reservation_id}",
    response_model=ReservationResponse,
    summary="Get reservation"
)
async def get_reservation(
    reservation_id: str = Path(..., description="Reservation ID"),
    current_user: User = Depends(get_current_user),
    reservation_service: ReservationService = Depends(get_reservation_service)
) -> ReservationResponse:
    return await reservation_service.get_reservation(current_user, parse_uuid(reservation_id, "reservationId"))
