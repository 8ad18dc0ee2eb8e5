"""
Booking lifecycle engine.

Each operation runs in two phases. The atomic phase is one database
transaction, executed in a worker thread, that validates, checks for
conflicts and writes the booking row; any failure there leaves the store
untouched and is raised to the caller. The best-effort phase runs after the
commit and covers meeting provisioning, slot toggling, analytics,
notifications and reminders. Its failures are collected into a
``SideEffectReport`` and never undo the booking.

Mutual exclusion between concurrent requests for the same event type comes
from the store: a row lock on the event type under PostgreSQL, and the
database write lock taken by ``BEGIN IMMEDIATE`` under SQLite.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.booking.models import Booking, BookingStatus, EventType, get_session
from services.booking.models.base import utc_now
from services.booking.schemas.bookings import BookingFilters, GuestInfo
from services.booking.services.analytics import (
    BOOKING_COUNT,
    CANCELLATION_COUNT,
    AnalyticsAccumulator,
)
from services.booking.services.availability import (
    AvailabilityModel,
    SessionScope,
    local_window,
    project_to_local,
)
from services.booking.services.clock import Clock, SystemClock
from services.booking.services.meeting_provisioner import (
    MeetingInfo,
    MeetingProvisioner,
    MeetingSpec,
)
from services.booking.services.notifications import (
    GUEST,
    OWNER,
    NotificationDispatcher,
    NotificationPayload,
)
from services.booking.services.reminders import ReminderScheduler
from services.booking.services.side_effects import (
    SideEffectReport,
    run_one,
    run_side_effects,
)
from services.common.http_errors import (
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from services.common.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

MAX_PAGE_SIZE = 100


@dataclass
class BookingResult:
    booking: Booking
    side_effects: SideEffectReport = field(default_factory=SideEffectReport)


@dataclass
class BookingPage:
    bookings: List[Booking]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.bookings) < self.total


def as_utc(value: datetime | str, field_name: str = "scheduled_start") -> datetime:
    """Parse an instant and normalise it to UTC; naive values are taken as UTC."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(
                "Invalid datetime format", field=field_name, value=value
            )
    if not isinstance(value, datetime):
        raise ValidationError("Invalid datetime", field=field_name, value=value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BookingEngine:
    """Creates, cancels, reschedules and lists bookings."""

    def __init__(
        self,
        *,
        provisioner: MeetingProvisioner,
        notifier: NotificationDispatcher,
        reminders: ReminderScheduler,
        clock: Optional[Clock] = None,
        session_scope: SessionScope = get_session,
        availability: Optional[AvailabilityModel] = None,
        analytics: Optional[AnalyticsAccumulator] = None,
        reminder_offsets: Optional[Sequence[timedelta]] = None,
    ):
        self._clock = clock or SystemClock()
        self._session_scope = session_scope
        self._availability = availability or AvailabilityModel(session_scope)
        self._analytics = analytics or AnalyticsAccumulator(
            session_scope, clock=self._clock
        )
        self._provisioner = provisioner
        self._notifier = notifier
        self._reminders = reminders
        self._reminder_offsets = reminder_offsets

    # Atomic phase helpers

    async def _atomic(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as e:
            logger.error(
                "Booking transaction failed", operation=operation, error=str(e)
            )
            raise StoreError(
                f"Failed to {operation.replace('_', ' ')}",
                details={"operation": operation},
            ) from e

    def _lock_event_type(
        self,
        session: Session,
        event_type_id: uuid.UUID,
        bookable_only: bool = True,
    ) -> EventType:
        # FOR UPDATE is dropped by the SQLite compiler; BEGIN IMMEDIATE covers it.
        event_type = session.scalar(
            select(EventType).where(EventType.id == event_type_id).with_for_update()
        )
        if event_type is None:
            raise NotFoundError("Event type", str(event_type_id))
        if bookable_only and (
            event_type.deleted_at is not None or not event_type.is_active
        ):
            raise NotFoundError("Event type", str(event_type_id))
        return event_type

    def _owned_booking(
        self,
        session: Session,
        booking_id: uuid.UUID,
        owner_id: str,
        for_update: bool = False,
    ) -> Booking:
        query = select(Booking).where(
            Booking.id == booking_id,
            Booking.owner_id == owner_id,
            Booking.deleted_at.is_(None),
        )
        if for_update:
            query = query.with_for_update()
        booking = session.scalar(query)
        if booking is None:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    def _check_window(self, event_type: EventType, start: datetime) -> None:
        now = self._clock.now()
        earliest = now + timedelta(minutes=event_type.min_advance_notice_minutes)
        latest = now + timedelta(days=event_type.max_advance_booking_days)
        if start < earliest:
            raise ValidationError(
                "Booking must be made at least "
                f"{event_type.min_advance_notice_minutes} minutes in advance",
                field="scheduled_start",
                value=start.isoformat(),
            )
        if start > latest:
            raise ValidationError(
                "Booking cannot be made more than "
                f"{event_type.max_advance_booking_days} days in advance",
                field="scheduled_start",
                value=start.isoformat(),
            )

    # Create

    def _insert_booking(
        self,
        event_type_id: uuid.UUID,
        guest: GuestInfo,
        start: datetime,
        description: Optional[str],
        custom_fields: Optional[dict],
    ) -> Tuple[Booking, EventType]:
        with self._session_scope() as session:
            event_type = self._lock_event_type(session, event_type_id)
            self._check_window(event_type, start)
            end = start + timedelta(minutes=event_type.duration_minutes)

            if self._availability.has_conflict(session, event_type_id, start, end):
                raise ConflictError(
                    "Time slot is not available",
                    details={
                        "event_type_id": str(event_type_id),
                        "scheduled_start": start.isoformat(),
                        "scheduled_end": end.isoformat(),
                    },
                )

            booking = Booking(
                event_type_id=event_type_id,
                owner_id=event_type.owner_id,
                guest_name=guest.name,
                guest_email=str(guest.email),
                guest_phone=guest.phone,
                guest_timezone=guest.timezone,
                description=description,
                custom_fields=custom_fields,
                scheduled_start=start,
                scheduled_end=end,
                duration_minutes=event_type.duration_minutes,
                status=BookingStatus.confirmed,
            )
            session.add(booking)
            session.flush()
        return booking, event_type

    async def create_booking(
        self,
        event_type_id: uuid.UUID,
        guest: GuestInfo,
        requested_start: datetime | str,
        *,
        description: Optional[str] = None,
        custom_fields: Optional[dict] = None,
    ) -> BookingResult:
        """
        Book ``requested_start`` on an event type for a guest.

        Raises ValidationError, NotFoundError, ConflictError or StoreError and
        writes nothing in those cases. Once the row is committed the call
        always returns, with side-effect failures listed in the report.
        """
        start = as_utc(requested_start)
        if not guest.name or not guest.name.strip():
            raise ValidationError("Guest name is required", field="guest_name")
        if not guest.email:
            raise ValidationError("Guest email is required", field="guest_email")

        try:
            booking, event_type = await self._atomic(
                "create_booking",
                self._insert_booking,
                event_type_id,
                guest,
                start,
                description,
                custom_fields,
            )
        except ConflictError:
            logger.info(
                "Booking conflict",
                event_type_id=str(event_type_id),
                scheduled_start=start.isoformat(),
            )
            raise

        booking_id = str(booking.id)
        logger.info(
            "Booking created",
            booking_id=booking_id,
            event_type_id=str(event_type_id),
            owner_id=booking.owner_id,
            scheduled_start=booking.scheduled_start.isoformat(),
        )

        # Provisioning first so the notices below can carry the link.
        report = SideEffectReport()
        report.record(
            await run_one(
                "meeting_provisioning",
                self._provision_meeting(booking, event_type),
                booking_id,
            )
        )

        day, start_time, end_time = local_window(
            booking.scheduled_start, booking.scheduled_end, event_type.timezone
        )
        report.extend(
            await run_side_effects(
                [
                    (
                        "consume_slot",
                        asyncio.to_thread(
                            self._availability.consume_slot,
                            event_type.id,
                            day,
                            start_time,
                            end_time,
                        ),
                    ),
                    (
                        "analytics",
                        self._count(booking, BOOKING_COUNT),
                    ),
                    (
                        "guest_confirmation",
                        self._notifier.send_confirmation(
                            self._payload(booking, event_type, GUEST)
                        ),
                    ),
                    (
                        "owner_confirmation",
                        self._notifier.send_confirmation(
                            self._payload(booking, event_type, OWNER)
                        ),
                    ),
                    ("reminders", self._arm_reminders(booking, event_type)),
                ],
                booking_id,
            )
        )
        return BookingResult(booking=booking, side_effects=report)

    # Cancel

    def _cancel_booking(
        self, booking_id: uuid.UUID, owner_id: str, reason: Optional[str]
    ) -> Tuple[Booking, EventType]:
        with self._session_scope() as session:
            booking = self._owned_booking(
                session, booking_id, owner_id, for_update=True
            )
            if booking.status == BookingStatus.cancelled:
                raise ConflictError(
                    "Booking is already cancelled",
                    details={"booking_id": str(booking_id)},
                )
            event_type = session.get(EventType, booking.event_type_id)
            if event_type is None:
                raise NotFoundError("Event type", str(booking.event_type_id))

            booking.status = BookingStatus.cancelled
            booking.cancelled_at = self._clock.now()
            booking.cancellation_reason = reason
            session.flush()
        return booking, event_type

    async def cancel_booking(
        self, booking_id: uuid.UUID, owner_id: str, reason: Optional[str] = None
    ) -> BookingResult:
        booking, event_type = await self._atomic(
            "cancel_booking", self._cancel_booking, booking_id, owner_id, reason
        )
        logger.info(
            "Booking cancelled",
            booking_id=str(booking.id),
            owner_id=owner_id,
            reason=reason,
        )

        day, original_start = project_to_local(
            booking.scheduled_start, event_type.timezone
        )
        effects: List[Tuple[str, Awaitable[Any]]] = [
            (
                "release_slot",
                asyncio.to_thread(
                    self._availability.release_slot,
                    event_type.id,
                    day,
                    original_start,
                ),
            ),
            ("analytics", self._count(booking, CANCELLATION_COUNT)),
            (
                "guest_cancellation",
                self._notifier.send_cancellation(
                    self._payload(booking, event_type, GUEST, reason=reason)
                ),
            ),
            (
                "owner_cancellation",
                self._notifier.send_cancellation(
                    self._payload(booking, event_type, OWNER, reason=reason)
                ),
            ),
            ("reminders", self._retract_reminders(booking)),
        ]
        if booking.external_meeting_id:
            effects.append(
                (
                    "meeting_deletion",
                    self._provisioner.delete(booking.external_meeting_id),
                )
            )

        report = await run_side_effects(effects, str(booking.id))
        return BookingResult(booking=booking, side_effects=report)

    # Reschedule

    def _move_booking(
        self,
        booking_id: uuid.UUID,
        owner_id: str,
        new_start: datetime,
    ) -> Tuple[Booking, EventType, datetime, datetime]:
        with self._session_scope() as session:
            booking = self._owned_booking(
                session, booking_id, owner_id, for_update=True
            )
            if booking.status != BookingStatus.confirmed:
                raise ConflictError(
                    "Only confirmed bookings can be rescheduled",
                    details={
                        "booking_id": str(booking_id),
                        "status": booking.status.value,
                    },
                )
            event_type = self._lock_event_type(
                session, booking.event_type_id, bookable_only=False
            )
            self._check_window(event_type, new_start)
            new_end = new_start + timedelta(minutes=event_type.duration_minutes)

            if self._availability.has_conflict(
                session,
                event_type.id,
                new_start,
                new_end,
                exclude_booking_id=booking.id,
            ):
                raise ConflictError(
                    "Time slot is not available",
                    details={
                        "event_type_id": str(event_type.id),
                        "scheduled_start": new_start.isoformat(),
                        "scheduled_end": new_end.isoformat(),
                    },
                )

            old_start, old_end = booking.scheduled_start, booking.scheduled_end
            booking.scheduled_start = new_start
            booking.scheduled_end = new_end
            booking.duration_minutes = event_type.duration_minutes
            session.flush()
        return booking, event_type, old_start, old_end

    async def reschedule_booking(
        self, booking_id: uuid.UUID, owner_id: str, new_start: datetime | str
    ) -> BookingResult:
        start = as_utc(new_start, field_name="new_start")
        booking, event_type, old_start, old_end = await self._atomic(
            "reschedule_booking", self._move_booking, booking_id, owner_id, start
        )
        booking_key = str(booking.id)
        logger.info(
            "Booking rescheduled",
            booking_id=booking_key,
            previous_start=old_start.isoformat(),
            scheduled_start=booking.scheduled_start.isoformat(),
        )

        # The old window is released before the new one is consumed so that
        # a move within the same slot leaves it consumed.
        old_day, old_local_start = project_to_local(old_start, event_type.timezone)
        report = SideEffectReport()
        report.record(
            await run_one(
                "release_slot",
                asyncio.to_thread(
                    self._availability.release_slot,
                    event_type.id,
                    old_day,
                    old_local_start,
                ),
                booking_key,
            )
        )

        day, start_time, end_time = local_window(
            booking.scheduled_start, booking.scheduled_end, event_type.timezone
        )
        effects: List[Tuple[str, Awaitable[Any]]] = [
            (
                "consume_slot",
                asyncio.to_thread(
                    self._availability.consume_slot,
                    event_type.id,
                    day,
                    start_time,
                    end_time,
                ),
            ),
            (
                "guest_reschedule",
                self._notifier.send_reschedule(
                    self._payload(
                        booking, event_type, GUEST, previous_start=old_start
                    )
                ),
            ),
            ("reminders", self._rearm_reminders(booking, event_type)),
        ]
        if booking.external_meeting_id:
            effects.append(
                (
                    "meeting_update",
                    self._provisioner.update(
                        booking.external_meeting_id,
                        self._meeting_spec(booking, event_type),
                    ),
                )
            )
        report.extend(await run_side_effects(effects, booking_key))
        return BookingResult(booking=booking, side_effects=report)

    # Queries

    def _query_bookings(
        self, owner_id: str, filters: BookingFilters, limit: int, offset: int
    ) -> Tuple[List[Booking], int]:
        query = select(Booking).where(
            Booking.owner_id == owner_id, Booking.deleted_at.is_(None)
        )
        if filters.status is not None:
            query = query.where(Booking.status == filters.status)
        if filters.event_type_id is not None:
            query = query.where(Booking.event_type_id == filters.event_type_id)
        if filters.start_date is not None:
            query = query.where(
                Booking.scheduled_start >= as_utc(filters.start_date, "start_date")
            )
        if filters.end_date is not None:
            query = query.where(
                Booking.scheduled_start <= as_utc(filters.end_date, "end_date")
            )

        with self._session_scope() as session:
            total = session.scalar(
                select(func.count()).select_from(query.subquery())
            )
            rows = list(
                session.scalars(
                    query.order_by(
                        Booking.scheduled_start.desc(), Booking.id.desc()
                    )
                    .limit(limit)
                    .offset(offset)
                )
            )
        return rows, total or 0

    async def list_bookings(
        self,
        owner_id: str,
        filters: Optional[BookingFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> BookingPage:
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}",
                field="limit",
                value=limit,
            )
        if offset < 0:
            raise ValidationError("offset must not be negative", field="offset")

        rows, total = await self._atomic(
            "list_bookings",
            self._query_bookings,
            owner_id,
            filters or BookingFilters(),
            limit,
            offset,
        )
        return BookingPage(bookings=rows, total=total, limit=limit, offset=offset)

    def _load_booking(self, booking_id: uuid.UUID, owner_id: str) -> Booking:
        with self._session_scope() as session:
            return self._owned_booking(session, booking_id, owner_id)

    async def get_booking(self, booking_id: uuid.UUID, owner_id: str) -> Booking:
        return await self._atomic(
            "get_booking", self._load_booking, booking_id, owner_id
        )

    # Best-effort phase helpers

    def _meeting_spec(self, booking: Booking, event_type: EventType) -> MeetingSpec:
        attendees = [booking.guest_email]
        if event_type.owner_email:
            attendees.append(event_type.owner_email)
        return MeetingSpec(
            title=f"{event_type.name} with {booking.guest_name}",
            start=booking.scheduled_start,
            end=booking.scheduled_end,
            request_id=str(booking.id),
            timezone=event_type.timezone,
            description=booking.description,
            attendees=attendees,
        )

    def _store_meeting(self, booking_id: uuid.UUID, info: MeetingInfo) -> None:
        with self._session_scope() as session:
            session.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(
                    meeting_link=info.link,
                    external_meeting_id=info.external_id,
                    updated_at=utc_now(),
                )
            )

    async def _provision_meeting(
        self, booking: Booking, event_type: EventType
    ) -> MeetingInfo:
        info = await self._provisioner.create(self._meeting_spec(booking, event_type))
        await asyncio.to_thread(self._store_meeting, booking.id, info)
        booking.meeting_link = info.link
        booking.external_meeting_id = info.external_id
        return info

    async def _count(self, booking: Booking, counter: str) -> None:
        await asyncio.to_thread(
            self._analytics.increment,
            booking.owner_id,
            booking.event_type_id,
            self._clock.now().astimezone(timezone.utc).date(),
            counter,
        )

    async def _arm_reminders(
        self, booking: Booking, event_type: EventType
    ) -> List[datetime]:
        return self._reminders.schedule(
            booking, offsets=self._reminder_offsets, event_name=event_type.name
        )

    async def _rearm_reminders(
        self, booking: Booking, event_type: EventType
    ) -> List[datetime]:
        return self._reminders.reschedule(
            booking, offsets=self._reminder_offsets, event_name=event_type.name
        )

    async def _retract_reminders(self, booking: Booking) -> int:
        return self._reminders.cancel(str(booking.id))

    def _payload(
        self,
        booking: Booking,
        event_type: EventType,
        audience: str,
        **kwargs: Any,
    ) -> NotificationPayload:
        if audience == OWNER:
            recipient_email = event_type.owner_email
            recipient_name = event_type.owner_name
        else:
            recipient_email = booking.guest_email
            recipient_name = booking.guest_name
        return NotificationPayload(
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            audience=audience,
            event_name=event_type.name,
            scheduled_start=booking.scheduled_start,
            duration_minutes=booking.duration_minutes,
            booking_id=str(booking.id),
            meeting_link=booking.meeting_link,
            guest_name=booking.guest_name,
            guest_email=booking.guest_email,
            guest_phone=booking.guest_phone,
            **kwargs,
        )
