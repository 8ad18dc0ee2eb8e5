from datetime import date as date_type
from typing import List
from uuid import UUID

from pydantic import BaseModel

from services.booking.schemas.bookings import BookingResponse


class DashboardResponse(BaseModel):
    period_days: int
    total_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int
    total_event_types: int
    upcoming_bookings: int
    recent_bookings: List[BookingResponse]


class EventTypeStats(BaseModel):
    event_type_id: UUID
    name: str
    total_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int


class DailyBookingStats(BaseModel):
    date: date_type
    total: int
    confirmed: int
    cancelled: int


class ConversionResponse(BaseModel):
    period_days: int
    unique_guests: int
    total_bookings: int
    confirmed_bookings: int
    conversion_rate: float
