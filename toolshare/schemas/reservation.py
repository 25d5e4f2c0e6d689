"""
Pydantic schemas for reservation requests and responses.
"""

from pydantic import Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from toolshare.schemas.common import CamelModel
import uuid


class ReservationCreate(CamelModel):
    """Reservation request. ``end_date`` is the return day."""

    listing_id: uuid.UUID
    start_date: date
    end_date: date


class ReservationResponse(CamelModel):
    """Reservation with its derived display status and affordances."""

    id: uuid.UUID
    listing_id: uuid.UUID
    listing_title: Optional[str] = None
    user_id: uuid.UUID
    start_date: date
    end_date: date
    total_price: Decimal
    status: str = Field(..., description="Stored status")
    display_status: str = Field(..., description="Status derived from today's date", examples=["Upcoming"])
    can_cancel: bool
    can_review: bool
    created_at: datetime


class ReservationCreatedResponse(CamelModel):
    message: str = "Booked reservation successfully!"
    reservation: ReservationResponse


class ReservationListResponse(CamelModel):
    message: str = "Fetched reservations associated with the user"
    reservations: List[ReservationResponse]
