"""
In-process booking reminders.

Reminders are one-shot event-loop timers keyed by booking id, so cancelling
or rescheduling a booking can retract or re-arm them. Timers are not
persisted: a restart drops whatever is pending.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Set

from services.booking.models import Booking
from services.booking.services.clock import Clock, SystemClock
from services.booking.services.notifications import (
    GUEST,
    NotificationDispatcher,
    NotificationPayload,
)
from services.common.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_OFFSETS = (timedelta(hours=24), timedelta(hours=1))


@dataclass
class ArmedReminder:
    fire_at: datetime
    offset: timedelta
    handle: asyncio.TimerHandle


class ReminderScheduler:
    def __init__(
        self,
        notifier: NotificationDispatcher,
        clock: Optional[Clock] = None,
        offsets: Sequence[timedelta] = DEFAULT_OFFSETS,
    ):
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._offsets = tuple(offsets)
        self._armed: Dict[str, List[ArmedReminder]] = {}
        self._in_flight: Set[asyncio.Task] = set()

    def schedule(
        self,
        booking: Booking,
        offsets: Optional[Sequence[timedelta]] = None,
        event_name: Optional[str] = None,
    ) -> List[datetime]:
        """
        Arm one timer per offset whose fire time is still in the future.

        Returns the fire times that were armed.
        """
        loop = asyncio.get_running_loop()
        booking_id = str(booking.id)
        now = self._clock.now()
        armed: List[datetime] = []

        for offset in offsets if offsets is not None else self._offsets:
            fire_at = booking.scheduled_start - offset
            delay = (fire_at - now).total_seconds()
            if delay <= 0:
                continue

            payload = self._payload(booking, offset, event_name)
            handle = loop.call_later(delay, self._fire, booking_id, fire_at, payload)
            self._armed.setdefault(booking_id, []).append(
                ArmedReminder(fire_at=fire_at, offset=offset, handle=handle)
            )
            armed.append(fire_at)

        logger.info(
            "Scheduled reminders",
            booking_id=booking_id,
            fire_at=[f.isoformat() for f in armed],
        )
        return armed

    def cancel(self, booking_id: str) -> int:
        """Retract every pending reminder for a booking; returns how many."""
        reminders = self._armed.pop(str(booking_id), [])
        for reminder in reminders:
            reminder.handle.cancel()
        if reminders:
            logger.info(
                "Cancelled reminders", booking_id=str(booking_id), count=len(reminders)
            )
        return len(reminders)

    def reschedule(
        self,
        booking: Booking,
        offsets: Optional[Sequence[timedelta]] = None,
        event_name: Optional[str] = None,
    ) -> List[datetime]:
        self.cancel(str(booking.id))
        return self.schedule(booking, offsets=offsets, event_name=event_name)

    def pending(self, booking_id: str) -> List[datetime]:
        return sorted(r.fire_at for r in self._armed.get(str(booking_id), []))

    async def shutdown(self) -> None:
        for booking_id in list(self._armed):
            self.cancel(booking_id)
        for task in list(self._in_flight):
            task.cancel()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    def _payload(
        self, booking: Booking, offset: timedelta, event_name: Optional[str]
    ) -> NotificationPayload:
        return NotificationPayload(
            recipient_email=booking.guest_email,
            recipient_name=booking.guest_name,
            audience=GUEST,
            event_name=event_name or "your booking",
            scheduled_start=booking.scheduled_start,
            duration_minutes=booking.duration_minutes,
            booking_id=str(booking.id),
            meeting_link=booking.meeting_link,
            hours_until=int(offset.total_seconds() // 3600),
        )

    def _fire(
        self, booking_id: str, fire_at: datetime, payload: NotificationPayload
    ) -> None:
        remaining = [r for r in self._armed.get(booking_id, []) if r.fire_at != fire_at]
        if remaining:
            self._armed[booking_id] = remaining
        else:
            self._armed.pop(booking_id, None)

        task = asyncio.get_running_loop().create_task(self._send(payload))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _send(self, payload: NotificationPayload) -> None:
        try:
            await self._notifier.send_reminder(payload)
        except Exception as e:
            logger.warning(
                "Reminder failed",
                booking_id=payload.booking_id,
                hours_until=payload.hours_until,
                error=str(e),
            )
