from fastapi import Request

from services.booking.services.analytics import AnalyticsAccumulator
from services.booking.services.availability import AvailabilityModel
from services.booking.services.booking_engine import BookingEngine
from services.booking.services.event_types import EventTypeService


def get_booking_engine(request: Request) -> BookingEngine:
    return request.app.state.booking_engine


def get_event_type_service(request: Request) -> EventTypeService:
    return request.app.state.event_types


def get_availability(request: Request) -> AvailabilityModel:
    return request.app.state.availability


def get_analytics(request: Request) -> AnalyticsAccumulator:
    return request.app.state.analytics
