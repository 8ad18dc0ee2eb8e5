from datetime import datetime, time
from typing import Annotated, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, model_validator

from services.booking.models.entities import DayOfWeek, LocationType


def _check_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {value}")
    return value


TimezoneName = Annotated[str, AfterValidator(_check_timezone)]


class EventTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    duration_minutes: int = Field(30, ge=15, le=480)
    buffer_before_minutes: int = Field(0, ge=0, le=240)
    buffer_after_minutes: int = Field(0, ge=0, le=240)
    min_advance_notice_minutes: int = Field(0, ge=0)
    max_advance_booking_days: int = Field(365, ge=1, le=730)
    timezone: TimezoneName = Field("UTC", max_length=64)
    location_type: LocationType = LocationType.google_meet
    owner_email: Optional[EmailStr] = None
    owner_name: Optional[str] = Field(None, max_length=255)


class EventTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    duration_minutes: Optional[int] = Field(None, ge=15, le=480)
    buffer_before_minutes: Optional[int] = Field(None, ge=0, le=240)
    buffer_after_minutes: Optional[int] = Field(None, ge=0, le=240)
    min_advance_notice_minutes: Optional[int] = Field(None, ge=0)
    max_advance_booking_days: Optional[int] = Field(None, ge=1, le=730)
    timezone: Optional[TimezoneName] = Field(None, max_length=64)
    location_type: Optional[LocationType] = None
    owner_email: Optional[EmailStr] = None
    owner_name: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None


class EventTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: str
    name: str
    description: Optional[str] = None
    slug: str
    duration_minutes: int
    buffer_before_minutes: int
    buffer_after_minutes: int
    min_advance_notice_minutes: int
    max_advance_booking_days: int
    timezone: str
    location_type: LocationType
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AvailabilitySlotCreate(BaseModel):
    day_of_week: DayOfWeek
    start_time: time = Field(..., description="Local time of day, HH:MM")
    end_time: time = Field(..., description="Local time of day, HH:MM")

    @model_validator(mode="after")
    def validate_time_range(self) -> "AvailabilitySlotCreate":
        if self.start_time >= self.end_time:
            raise ValueError("end_time must be after start_time")
        return self


class AvailabilitySlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type_id: UUID
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    is_active: bool


class BlockedTimeCreate(BaseModel):
    start_at: datetime
    end_at: datetime
    title: Optional[str] = Field(None, max_length=255)
    reason: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_range(self) -> "BlockedTimeCreate":
        if self.start_at >= self.end_at:
            raise ValueError("end_at must be after start_at")
        return self


class BlockedTimeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: str
    title: Optional[str] = None
    reason: Optional[str] = None
    start_at: datetime
    end_at: datetime
