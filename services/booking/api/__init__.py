from services.booking.api.analytics import router as analytics_router  # noqa: F401
from services.booking.api.blocked_times import (  # noqa: F401
    router as blocked_times_router,
)
from services.booking.api.bookings import router as bookings_router  # noqa: F401
from services.booking.api.event_types import router as event_types_router  # noqa: F401
