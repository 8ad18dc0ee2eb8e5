from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from services.booking.api.auth import get_owner_id
from services.booking.api.dependencies import get_booking_engine
from services.booking.models import BookingStatus
from services.booking.schemas.bookings import (
    BookingFilters,
    BookingListResponse,
    BookingResponse,
    BookingResultResponse,
    CancelBookingRequest,
    CreateBookingRequest,
    RescheduleBookingRequest,
    SideEffectReportResponse,
)
from services.booking.services.booking_engine import BookingEngine, BookingResult

router = APIRouter()


def _result_response(result: BookingResult) -> BookingResultResponse:
    return BookingResultResponse(
        booking=BookingResponse.model_validate(result.booking),
        side_effects=SideEffectReportResponse.model_validate(
            result.side_effects.as_dict()
        ),
    )


@router.post("", response_model=BookingResultResponse, status_code=201)
async def create_booking(
    data: CreateBookingRequest,
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingResultResponse:
    """Public endpoint: a guest books a time on an event type."""
    result = await engine.create_booking(
        data.event_type_id,
        data.guest(),
        data.scheduled_start,
        description=data.description,
        custom_fields=data.custom_fields,
    )
    return _result_response(result)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    status: Optional[BookingStatus] = None,
    event_type_id: Optional[UUID] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    owner_id: str = Depends(get_owner_id),
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingListResponse:
    filters = BookingFilters(
        status=status,
        event_type_id=event_type_id,
        start_date=start_date,
        end_date=end_date,
    )
    page = await engine.list_bookings(owner_id, filters, limit=limit, offset=offset)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in page.bookings],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        has_more=page.has_more,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    owner_id: str = Depends(get_owner_id),
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingResponse:
    booking = await engine.get_booking(booking_id, owner_id)
    return BookingResponse.model_validate(booking)


@router.put("/{booking_id}/cancel", response_model=BookingResultResponse)
async def cancel_booking(
    booking_id: UUID,
    data: Optional[CancelBookingRequest] = None,
    owner_id: str = Depends(get_owner_id),
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingResultResponse:
    reason = data.reason if data else None
    result = await engine.cancel_booking(booking_id, owner_id, reason=reason)
    return _result_response(result)


@router.put("/{booking_id}/reschedule", response_model=BookingResultResponse)
async def reschedule_booking(
    booking_id: UUID,
    data: RescheduleBookingRequest,
    owner_id: str = Depends(get_owner_id),
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingResultResponse:
    result = await engine.reschedule_booking(booking_id, owner_id, data.new_start)
    return _result_response(result)
