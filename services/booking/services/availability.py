"""
Availability model for event types.

Owns the recurring weekly slot template of each event type and its
activation state. Slots are local times of day in the owner's timezone;
bookings are absolute instants. The two only meet through
``project_to_local``.

Conflict detection looks at confirmed bookings only. Inactive slots and
blocked times are informational and never reject a booking.
"""

import uuid
from datetime import datetime, time, timezone
from typing import Callable, ContextManager, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from services.booking.models import (
    AvailabilitySlot,
    BlockedTime,
    Booking,
    BookingStatus,
    DayOfWeek,
    EventType,
    get_session,
)
from services.common.http_errors import NotFoundError, ValidationError
from services.common.logging_config import get_logger

logger = get_logger(__name__)

SessionScope = Callable[[], ContextManager[Session]]

END_OF_DAY = time.max


def get_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError("Unknown timezone", field="timezone", value=tz_name)


def project_to_local(instant: datetime, tz_name: str) -> Tuple[DayOfWeek, time]:
    """Project an absolute instant onto (day of week, local time of day)."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    local = instant.astimezone(get_zone(tz_name))
    return DayOfWeek.from_weekday(local.weekday()), local.time().replace(tzinfo=None)


def local_window(
    start: datetime, end: datetime, tz_name: str
) -> Tuple[DayOfWeek, time, time]:
    """
    Local (day, start time, end time) window of a booking.

    A booking that runs past local midnight is clipped to the end of its
    start day; the weekly template has no notion of a window wrapping days.
    """
    day, start_time = project_to_local(start, tz_name)
    end_day, end_time = project_to_local(end, tz_name)
    if end_day != day or end_time <= start_time:
        end_time = END_OF_DAY
    return day, start_time, end_time


def parse_day_of_week(value: str) -> DayOfWeek:
    try:
        return DayOfWeek(value)
    except ValueError:
        raise ValidationError(
            "day_of_week must be one of Monday..Sunday",
            field="day_of_week",
            value=value,
        )


class AvailabilityModel:
    """Weekly slot template, slot activation state and blocked times."""

    def __init__(self, session_scope: SessionScope = get_session):
        self._session_scope = session_scope

    # Conflict detection

    def has_conflict(
        self,
        session: Session,
        event_type_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """
        True if a confirmed booking of the event type overlaps [start, end).

        Runs inside the caller's transaction so the check and the following
        write see the same snapshot.
        """
        query = select(Booking.id).where(
            Booking.event_type_id == event_type_id,
            Booking.status == BookingStatus.confirmed,
            Booking.deleted_at.is_(None),
            Booking.scheduled_start < end,
            Booking.scheduled_end > start,
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)
        return session.execute(query.limit(1)).first() is not None

    # Slot activation

    def consume_slot(
        self,
        event_type_id: uuid.UUID,
        day_of_week: DayOfWeek,
        start_time: time,
        end_time: time,
    ) -> int:
        """Deactivate every slot on that day intersecting [start_time, end_time)."""
        with self._session_scope() as session:
            result = session.execute(
                update(AvailabilitySlot)
                .where(
                    AvailabilitySlot.event_type_id == event_type_id,
                    AvailabilitySlot.day_of_week == day_of_week,
                    AvailabilitySlot.start_time < end_time,
                    AvailabilitySlot.end_time > start_time,
                )
                .values(is_active=False)
            )
            consumed = result.rowcount or 0

        logger.info(
            "Consumed availability slots",
            event_type_id=str(event_type_id),
            day_of_week=day_of_week.value,
            start_time=start_time.isoformat(),
            end_time=end_time.isoformat(),
            slots=consumed,
        )
        return consumed

    def release_slot(
        self,
        event_type_id: uuid.UUID,
        day_of_week: DayOfWeek,
        original_start_time: time,
    ) -> int:
        """
        Reactivate slots whose start equals ``original_start_time`` exactly.

        This is narrower than ``consume_slot``: a slot that was deactivated
        because it partially overlapped a booking stays inactive unless its
        start matches.
        """
        with self._session_scope() as session:
            result = session.execute(
                update(AvailabilitySlot)
                .where(
                    AvailabilitySlot.event_type_id == event_type_id,
                    AvailabilitySlot.day_of_week == day_of_week,
                    AvailabilitySlot.start_time == original_start_time,
                )
                .values(is_active=True)
            )
            released = result.rowcount or 0

        logger.info(
            "Released availability slots",
            event_type_id=str(event_type_id),
            day_of_week=day_of_week.value,
            start_time=original_start_time.isoformat(),
            slots=released,
        )
        return released

    def get_active_slots(self, event_type_id: uuid.UUID) -> List[AvailabilitySlot]:
        """Active slots ordered Monday first, then by start time."""
        with self._session_scope() as session:
            slots = list(
                session.scalars(
                    select(AvailabilitySlot).where(
                        AvailabilitySlot.event_type_id == event_type_id,
                        AvailabilitySlot.is_active.is_(True),
                    )
                )
            )
        return sorted(slots, key=lambda s: (s.day_of_week.position, s.start_time))

    # Slot authoring

    def _owned_event_type(
        self, session: Session, owner_id: str, event_type_id: uuid.UUID
    ) -> EventType:
        event_type = session.scalar(
            select(EventType).where(
                EventType.id == event_type_id,
                EventType.owner_id == owner_id,
                EventType.deleted_at.is_(None),
            )
        )
        if event_type is None:
            raise NotFoundError("Event type", str(event_type_id))
        return event_type

    def add_slot(
        self,
        owner_id: str,
        event_type_id: uuid.UUID,
        day_of_week: DayOfWeek | str,
        start_time: time,
        end_time: time,
    ) -> AvailabilitySlot:
        if isinstance(day_of_week, str) and not isinstance(day_of_week, DayOfWeek):
            day_of_week = parse_day_of_week(day_of_week)
        if start_time >= end_time:
            raise ValidationError(
                "start_time must be before end_time",
                field="start_time",
                details={
                    "start_time": start_time.isoformat(),
                    "end_time": end_time.isoformat(),
                },
            )

        with self._session_scope() as session:
            self._owned_event_type(session, owner_id, event_type_id)
            slot = AvailabilitySlot(
                event_type_id=event_type_id,
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                is_active=True,
            )
            session.add(slot)
            session.flush()

        logger.info(
            "Added availability slot",
            event_type_id=str(event_type_id),
            day_of_week=day_of_week.value,
            start_time=start_time.isoformat(),
            end_time=end_time.isoformat(),
        )
        return slot

    def list_slots(
        self, owner_id: str, event_type_id: uuid.UUID
    ) -> List[AvailabilitySlot]:
        with self._session_scope() as session:
            self._owned_event_type(session, owner_id, event_type_id)
        return self.get_active_slots(event_type_id)

    def deactivate_slot(self, owner_id: str, slot_id: uuid.UUID) -> AvailabilitySlot:
        with self._session_scope() as session:
            slot = session.scalar(
                select(AvailabilitySlot)
                .join(EventType, EventType.id == AvailabilitySlot.event_type_id)
                .where(
                    AvailabilitySlot.id == slot_id,
                    EventType.owner_id == owner_id,
                    EventType.deleted_at.is_(None),
                )
            )
            if slot is None:
                raise NotFoundError("Availability slot", str(slot_id))
            slot.is_active = False
        return slot

    # Blocked times (display only)

    def add_blocked_time(
        self,
        owner_id: str,
        start_at: datetime,
        end_at: datetime,
        title: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> BlockedTime:
        if start_at >= end_at:
            raise ValidationError(
                "start_at must be before end_at",
                field="start_at",
            )
        with self._session_scope() as session:
            blocked = BlockedTime(
                owner_id=owner_id,
                start_at=start_at,
                end_at=end_at,
                title=title,
                reason=reason,
            )
            session.add(blocked)
            session.flush()
        return blocked

    def list_blocked_times(
        self,
        owner_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[BlockedTime]:
        """Blocked windows for an owner, optionally only those overlapping [start, end)."""
        query = select(BlockedTime).where(BlockedTime.owner_id == owner_id)
        if start is not None:
            query = query.where(BlockedTime.end_at > start)
        if end is not None:
            query = query.where(BlockedTime.start_at < end)
        with self._session_scope() as session:
            return list(session.scalars(query.order_by(BlockedTime.start_at)))
