from contextlib import contextmanager
from threading import Lock
from typing import Generator, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from services.booking.models.base import Base as Base
from services.booking.models.entities import AnalyticsCounter as AnalyticsCounter
from services.booking.models.entities import AvailabilitySlot as AvailabilitySlot
from services.booking.models.entities import BlockedTime as BlockedTime
from services.booking.models.entities import Booking as Booking
from services.booking.models.entities import BookingStatus as BookingStatus
from services.booking.models.entities import DayOfWeek as DayOfWeek
from services.booking.models.entities import EventType as EventType
from services.booking.models.entities import LocationType as LocationType
from services.booking.settings import get_settings
from services.common.database_config import create_service_engine

# Global engine and session factory - created once and reused
_engine: Engine | None = None
_session_maker: sessionmaker | None = None

# Thread-safe initialization locks
_engine_lock = Lock()
_session_maker_lock = Lock()


def get_engine() -> Engine:
    """Get or create the shared database engine in a thread-safe manner."""
    global _engine
    if _engine is None:
        with _engine_lock:
            # Double-check pattern to prevent race conditions
            if _engine is None:
                _engine = create_service_engine(get_settings().db_url_booking)
    return _engine


def get_sessionmaker() -> sessionmaker:
    """Get or create the shared session maker in a thread-safe manner.

    Acquire locks in sessionmaker -> engine order to avoid races with reset/close.
    Sessions do not expire on commit: booking rows are handed back to async
    callers after the worker thread that loaded them has closed the session.
    """
    global _session_maker, _engine
    if _session_maker is None:
        with _session_maker_lock:
            if _session_maker is None:
                with _engine_lock:
                    if _engine is None:
                        _engine = create_service_engine(get_settings().db_url_booking)
                    current_engine = _engine
                _session_maker = sessionmaker(
                    bind=current_engine,
                    autoflush=False,
                    expire_on_commit=False,
                    future=True,
                )
    return _session_maker


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Transactional session scope: commit on success, roll back on error."""
    Session = get_sessionmaker()
    session = Session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables_for_testing() -> None:
    """Create all database tables for testing only."""
    Base.metadata.create_all(get_engine())


def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_maker
    engine_to_dispose: Optional[Engine] = None

    with _session_maker_lock:
        _session_maker = None
        with _engine_lock:
            if _engine is not None:
                engine_to_dispose = _engine
                _engine = None

    if engine_to_dispose is not None:
        engine_to_dispose.dispose()


def reset_db() -> None:
    """Reset database globals without disposing (useful for testing)."""
    global _engine, _session_maker
    with _session_maker_lock:
        with _engine_lock:
            _session_maker = None
            _engine = None
