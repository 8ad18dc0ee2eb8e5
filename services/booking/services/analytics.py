"""
Per-(owner, event type, day) booking counters and read-side aggregations.

Counters only ever grow: a cancellation adds to ``cancellation_count`` and
leaves ``booking_count`` alone. Aggregations are plain queries over
bookings and counters.
"""

import uuid
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from services.booking.models import (
    AnalyticsCounter,
    Booking,
    BookingStatus,
    EventType,
    get_session,
)
from services.booking.models.base import utc_now
from services.booking.services.availability import SessionScope
from services.booking.services.clock import Clock, SystemClock
from services.common.http_errors import StoreError, ValidationError
from services.common.logging_config import get_logger

logger = get_logger(__name__)

BOOKING_COUNT = "booking_count"
CANCELLATION_COUNT = "cancellation_count"
COUNTER_FIELDS = (BOOKING_COUNT, CANCELLATION_COUNT)


def _insert_for(dialect_name: str) -> Any:
    if dialect_name == "postgresql":
        return pg_insert
    if dialect_name == "sqlite":
        return sqlite_insert
    raise StoreError(
        "Analytics upsert is not supported on this database",
        details={"dialect": dialect_name},
    )


def _live_bookings(owner_id: str) -> tuple:
    return (Booking.owner_id == owner_id, Booking.deleted_at.is_(None))


def _status_count(status: BookingStatus) -> Any:
    return func.coalesce(func.sum(case((Booking.status == status, 1), else_=0)), 0)


def _round_rate(numerator: int, denominator: int) -> float:
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100, 2)


class AnalyticsAccumulator:
    def __init__(
        self,
        session_scope: SessionScope = get_session,
        clock: Optional[Clock] = None,
    ):
        self._session_scope = session_scope
        self._clock = clock or SystemClock()

    def increment(
        self,
        owner_id: str,
        event_type_id: uuid.UUID,
        day: date,
        field: str,
        delta: int = 1,
    ) -> None:
        """Add ``delta`` to one counter, creating the row for the key if missing."""
        if field not in COUNTER_FIELDS:
            raise ValidationError(
                "Unknown analytics counter", field="field", value=field
            )
        if delta < 0:
            raise ValidationError(
                "Analytics counters are increment-only", field="delta", value=delta
            )

        with self._session_scope() as session:
            insert = _insert_for(session.get_bind().dialect.name)
            now = utc_now()
            values = {
                "id": uuid.uuid4(),
                "owner_id": owner_id,
                "event_type_id": event_type_id,
                "date": day,
                BOOKING_COUNT: 0,
                CANCELLATION_COUNT: 0,
                "created_at": now,
                "updated_at": now,
            }
            values[field] = delta
            stmt = insert(AnalyticsCounter).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["owner_id", "event_type_id", "date"],
                set_={
                    field: getattr(AnalyticsCounter, field) + delta,
                    "updated_at": now,
                },
            )
            session.execute(stmt)

        logger.debug(
            "Incremented analytics counter",
            owner_id=owner_id,
            event_type_id=str(event_type_id),
            date=day.isoformat(),
            field=field,
            delta=delta,
        )

    def counters(
        self, owner_id: str, start_date: date, end_date: date
    ) -> List[AnalyticsCounter]:
        with self._session_scope() as session:
            return list(
                session.scalars(
                    select(AnalyticsCounter)
                    .where(
                        AnalyticsCounter.owner_id == owner_id,
                        AnalyticsCounter.date >= start_date,
                        AnalyticsCounter.date <= end_date,
                    )
                    .order_by(AnalyticsCounter.date, AnalyticsCounter.event_type_id)
                )
            )

    def dashboard(self, owner_id: str, days: int = 30) -> Dict[str, Any]:
        """
        Owner dashboard: booking totals created in the last ``days`` days,
        active event types, upcoming confirmed bookings and the ten most
        recent bookings.
        """
        now = self._clock.now()
        since = now - timedelta(days=days)
        live = _live_bookings(owner_id)

        with self._session_scope() as session:
            totals = session.execute(
                select(
                    func.count(Booking.id),
                    _status_count(BookingStatus.confirmed),
                    _status_count(BookingStatus.cancelled),
                ).where(*live, Booking.created_at >= since)
            ).one()

            event_types = session.scalar(
                select(func.count(EventType.id)).where(
                    EventType.owner_id == owner_id,
                    EventType.deleted_at.is_(None),
                    EventType.is_active.is_(True),
                )
            )

            upcoming = session.scalar(
                select(func.count(Booking.id)).where(
                    *live,
                    Booking.status == BookingStatus.confirmed,
                    Booking.scheduled_start > now,
                )
            )

            recent = list(
                session.scalars(
                    select(Booking)
                    .where(*live)
                    .order_by(Booking.created_at.desc(), Booking.id.desc())
                    .limit(10)
                )
            )

        return {
            "period_days": days,
            "total_bookings": int(totals[0] or 0),
            "confirmed_bookings": int(totals[1] or 0),
            "cancelled_bookings": int(totals[2] or 0),
            "total_event_types": int(event_types or 0),
            "upcoming_bookings": int(upcoming or 0),
            "recent_bookings": recent,
        }

    def by_event_type(self, owner_id: str) -> List[Dict[str, Any]]:
        """Booking counts per live event type, busiest first."""
        confirmed = _status_count(BookingStatus.confirmed)
        cancelled = _status_count(BookingStatus.cancelled)
        total = func.count(Booking.id)

        with self._session_scope() as session:
            rows = session.execute(
                select(EventType.id, EventType.name, total, confirmed, cancelled)
                .outerjoin(
                    Booking,
                    (Booking.event_type_id == EventType.id)
                    & Booking.deleted_at.is_(None),
                )
                .where(EventType.owner_id == owner_id, EventType.deleted_at.is_(None))
                .group_by(EventType.id, EventType.name)
                .order_by(total.desc(), EventType.name)
            ).all()

        return [
            {
                "event_type_id": row[0],
                "name": row[1],
                "total_bookings": int(row[2] or 0),
                "confirmed_bookings": int(row[3] or 0),
                "cancelled_bookings": int(row[4] or 0),
            }
            for row in rows
        ]

    def bookings_range(
        self, owner_id: str, start_date: date, end_date: date
    ) -> List[Dict[str, Any]]:
        """Bookings per scheduled day in [start_date, end_date], both inclusive."""
        if start_date > end_date:
            raise ValidationError(
                "start_date must not be after end_date",
                field="start_date",
                details={
                    "start_date": start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                },
            )

        range_start = datetime.combine(start_date, datetime.min.time())
        range_end = datetime.combine(end_date + timedelta(days=1), datetime.min.time())

        with self._session_scope() as session:
            bookings = session.scalars(
                select(Booking).where(
                    *_live_bookings(owner_id),
                    Booking.scheduled_start >= range_start,
                    Booking.scheduled_start < range_end,
                )
            ).all()

        # Grouping happens here since date() over timestamps differs per dialect
        series: Dict[date, Dict[str, int]] = {}
        for booking in bookings:
            bucket = series.setdefault(
                booking.scheduled_start.date(),
                {"total": 0, "confirmed": 0, "cancelled": 0},
            )
            bucket["total"] += 1
            bucket[booking.status.value] += 1

        return [
            {"date": day, **counts} for day, counts in sorted(series.items())
        ]

    def conversion(self, owner_id: str, days: int = 30) -> Dict[str, Any]:
        """Confirmed bookings per distinct guest over the window, as a percentage."""
        since = self._clock.now() - timedelta(days=days)
        with self._session_scope() as session:
            row = session.execute(
                select(
                    func.count(func.distinct(Booking.guest_email)),
                    func.count(Booking.id),
                    _status_count(BookingStatus.confirmed),
                ).where(*_live_bookings(owner_id), Booking.created_at >= since)
            ).one()

        unique_guests, total, confirmed = int(row[0] or 0), int(row[1] or 0), int(row[2] or 0)
        return {
            "period_days": days,
            "unique_guests": unique_guests,
            "total_bookings": total,
            "confirmed_bookings": confirmed,
            "conversion_rate": _round_rate(confirmed, unique_guests),
        }
