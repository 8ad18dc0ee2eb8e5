from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query

from services.booking.api.auth import get_owner_id
from services.booking.api.dependencies import get_analytics
from services.booking.schemas.analytics import (
    ConversionResponse,
    DailyBookingStats,
    DashboardResponse,
    EventTypeStats,
)
from services.booking.schemas.bookings import BookingResponse
from services.booking.services.analytics import AnalyticsAccumulator

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    days: int = Query(30, ge=1, le=365),
    owner_id: str = Depends(get_owner_id),
    analytics: AnalyticsAccumulator = Depends(get_analytics),
) -> DashboardResponse:
    stats = analytics.dashboard(owner_id, days=days)
    stats["recent_bookings"] = [
        BookingResponse.model_validate(b) for b in stats["recent_bookings"]
    ]
    return DashboardResponse(**stats)


@router.get("/bookings-range", response_model=List[DailyBookingStats])
def get_bookings_range(
    start_date: date,
    end_date: date,
    owner_id: str = Depends(get_owner_id),
    analytics: AnalyticsAccumulator = Depends(get_analytics),
) -> List[DailyBookingStats]:
    return [
        DailyBookingStats(**row)
        for row in analytics.bookings_range(owner_id, start_date, end_date)
    ]


@router.get("/by-event-type", response_model=List[EventTypeStats])
def get_by_event_type(
    owner_id: str = Depends(get_owner_id),
    analytics: AnalyticsAccumulator = Depends(get_analytics),
) -> List[EventTypeStats]:
    return [EventTypeStats(**row) for row in analytics.by_event_type(owner_id)]


@router.get("/conversion", response_model=ConversionResponse)
def get_conversion(
    days: int = Query(30, ge=1, le=365),
    owner_id: str = Depends(get_owner_id),
    analytics: AnalyticsAccumulator = Depends(get_analytics),
) -> ConversionResponse:
    return ConversionResponse(**analytics.conversion(owner_id, days=days))
