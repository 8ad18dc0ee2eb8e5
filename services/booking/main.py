from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.booking.api import (
    analytics_router,
    blocked_times_router,
    bookings_router,
    event_types_router,
)
from services.booking.models import close_db
from services.booking.services.analytics import AnalyticsAccumulator
from services.booking.services.availability import AvailabilityModel
from services.booking.services.booking_engine import BookingEngine
from services.booking.services.clock import Clock, SystemClock
from services.booking.services.event_types import EventTypeService
from services.booking.services.meeting_provisioner import (
    GoogleMeetProvisioner,
    MeetingProvisioner,
    NullMeetingProvisioner,
)
from services.booking.services.notifications import (
    EmailNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from services.booking.services.reminders import ReminderScheduler
from services.booking.settings import Settings, get_settings
from services.common.http_errors import register_bookwell_exception_handlers
from services.common.logging_config import (
    create_request_logging_middleware,
    get_logger,
    log_service_shutdown,
    log_service_startup,
    setup_service_logging,
)

# Set up centralized logging - will be initialized in lifespan
logger = get_logger(__name__)


@dataclass
class Components:
    engine: BookingEngine
    event_types: EventTypeService
    availability: AvailabilityModel
    analytics: AnalyticsAccumulator
    reminders: ReminderScheduler
    provisioner: MeetingProvisioner
    notifier: NotificationDispatcher


def build_components(
    settings: Settings,
    clock: Optional[Clock] = None,
    provisioner: Optional[MeetingProvisioner] = None,
    notifier: Optional[NotificationDispatcher] = None,
) -> Components:
    """Wire the booking engine and its collaborators from settings."""
    clock = clock or SystemClock()

    if provisioner is None:
        if settings.google_calendar_access_token:
            provisioner = GoogleMeetProvisioner(
                access_token=settings.google_calendar_access_token,
                calendar_id=settings.google_calendar_id,
                base_url=settings.google_calendar_api_url,
                timeout=settings.http_timeout_seconds,
            )
        else:
            logger.warning("No Google Calendar token configured; meetings disabled")
            provisioner = NullMeetingProvisioner()

    if notifier is None:
        if settings.email_service_url:
            notifier = EmailNotificationDispatcher(
                base_url=settings.email_service_url,
                sender=settings.email_from,
                api_key=settings.email_service_api_key,
                timeout=settings.http_timeout_seconds,
            )
        else:
            logger.warning("No email service configured; notifications are logged only")
            notifier = LoggingNotificationDispatcher()

    offsets = [timedelta(minutes=m) for m in settings.reminder_offsets_minutes]
    availability = AvailabilityModel()
    analytics = AnalyticsAccumulator(clock=clock)
    reminders = ReminderScheduler(notifier, clock=clock, offsets=offsets)
    engine = BookingEngine(
        provisioner=provisioner,
        notifier=notifier,
        reminders=reminders,
        clock=clock,
        availability=availability,
        analytics=analytics,
        reminder_offsets=offsets,
    )
    return Components(
        engine=engine,
        event_types=EventTypeService(),
        availability=availability,
        analytics=analytics,
        reminders=reminders,
        provisioner=provisioner,
        notifier=notifier,
    )


def install_components(app: FastAPI, components: Components) -> None:
    app.state.components = components
    app.state.booking_engine = components.engine
    app.state.event_types = components.event_types
    app.state.availability = components.availability
    app.state.analytics = components.analytics


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup event logic
    settings = get_settings()

    # Set up centralized logging
    setup_service_logging(
        service_name="booking",
        log_level=settings.log_level,
        log_format=settings.log_format,
    )

    # Components installed up front (tests) are left alone
    if getattr(app.state, "components", None) is None:
        install_components(app, build_components(settings))

    log_service_startup(
        "booking",
        version="0.1.0",
        environment="development",
    )
    yield

    # Shutdown event logic
    components: Components = app.state.components
    await components.reminders.shutdown()
    await components.provisioner.close()
    await components.notifier.close()
    close_db()
    log_service_shutdown("booking")


app = FastAPI(
    title="Bookwell Booking Service",
    version="0.1.0",
    description="Booking lifecycle and availability conflict engine.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware
app.middleware("http")(create_request_logging_middleware())

# Register standardized exception handlers
register_bookwell_exception_handlers(app)

app.include_router(bookings_router, prefix="/api/v1/bookings", tags=["bookings"])
app.include_router(
    event_types_router, prefix="/api/v1/event-types", tags=["event-types"]
)
app.include_router(
    blocked_times_router, prefix="/api/v1/blocked-times", tags=["blocked-times"]
)
app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["analytics"])


@app.get("/")
def root() -> dict:
    logger.info("Root endpoint accessed")
    return {"message": "Welcome to the Bookwell Booking Service"}


@app.get("/health")
def health() -> dict:
    logger.info("Health check endpoint accessed")
    return {"status": "ok"}
