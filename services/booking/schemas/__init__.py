"""
Booking service request and response schemas.
"""

from services.booking.schemas.analytics import (
    ConversionResponse,
    DailyBookingStats,
    DashboardResponse,
    EventTypeStats,
)
from services.booking.schemas.bookings import (
    BookingFilters,
    BookingListResponse,
    BookingResponse,
    BookingResultResponse,
    CancelBookingRequest,
    CreateBookingRequest,
    GuestInfo,
    RescheduleBookingRequest,
    SideEffectReportResponse,
)
from services.booking.schemas.event_types import (
    AvailabilitySlotCreate,
    AvailabilitySlotResponse,
    BlockedTimeCreate,
    BlockedTimeResponse,
    EventTypeCreate,
    EventTypeResponse,
    EventTypeUpdate,
)

__all__ = [
    "AvailabilitySlotCreate",
    "AvailabilitySlotResponse",
    "BlockedTimeCreate",
    "BlockedTimeResponse",
    "BookingFilters",
    "BookingListResponse",
    "BookingResponse",
    "BookingResultResponse",
    "CancelBookingRequest",
    "ConversionResponse",
    "CreateBookingRequest",
    "DailyBookingStats",
    "DashboardResponse",
    "EventTypeCreate",
    "EventTypeResponse",
    "EventTypeStats",
    "EventTypeUpdate",
    "GuestInfo",
    "RescheduleBookingRequest",
    "SideEffectReportResponse",
]
