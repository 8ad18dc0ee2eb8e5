from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from services.booking.models.entities import BookingStatus


class GuestInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    timezone: Optional[str] = Field(None, max_length=50)


class CreateBookingRequest(BaseModel):
    event_type_id: UUID
    guest_name: str = Field(..., min_length=1, max_length=255)
    guest_email: EmailStr
    guest_phone: Optional[str] = Field(None, max_length=20)
    guest_timezone: Optional[str] = Field(None, max_length=50)
    scheduled_start: datetime = Field(
        ..., description="Requested start instant; naive values are taken as UTC"
    )
    description: Optional[str] = Field(None, max_length=2000)
    custom_fields: Optional[Dict[str, Any]] = None

    def guest(self) -> GuestInfo:
        return GuestInfo(
            name=self.guest_name,
            email=self.guest_email,
            phone=self.guest_phone,
            timezone=self.guest_timezone,
        )


class CancelBookingRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class RescheduleBookingRequest(BaseModel):
    new_start: datetime


class BookingFilters(BaseModel):
    status: Optional[BookingStatus] = None
    event_type_id: Optional[UUID] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type_id: UUID
    owner_id: str
    guest_name: str
    guest_email: str
    guest_phone: Optional[str] = None
    guest_timezone: Optional[str] = None
    description: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None
    scheduled_start: datetime
    scheduled_end: datetime
    duration_minutes: int
    status: BookingStatus
    meeting_link: Optional[str] = None
    external_meeting_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class SideEffectOutcomeResponse(BaseModel):
    name: str
    ok: bool
    error: Optional[str] = None


class SideEffectReportResponse(BaseModel):
    ok: bool
    effects: List[SideEffectOutcomeResponse]


class BookingResultResponse(BaseModel):
    booking: BookingResponse
    side_effects: SideEffectReportResponse


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]
    total: int
    limit: int
    offset: int
    has_more: bool
