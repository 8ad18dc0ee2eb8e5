"""
Booking notifications.

``NotificationDispatcher`` is the contract the booking engine depends on.
Every send either returns or raises ``NotificationError``; one failed send
never affects another or the booking itself.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from services.common.http_errors import NotificationError
from services.common.logging_config import get_logger

logger = get_logger(__name__)

GUEST = "guest"
OWNER = "owner"


@dataclass
class NotificationPayload:
    recipient_email: Optional[str]
    recipient_name: Optional[str]
    audience: str
    event_name: str
    scheduled_start: datetime
    duration_minutes: int
    booking_id: str
    meeting_link: Optional[str] = None
    reason: Optional[str] = None
    hours_until: Optional[int] = None
    previous_start: Optional[datetime] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class NotificationDispatcher(ABC):
    """Sends booking lifecycle messages."""

    @abstractmethod
    async def send_confirmation(self, payload: NotificationPayload) -> None: ...

    @abstractmethod
    async def send_cancellation(self, payload: NotificationPayload) -> None: ...

    @abstractmethod
    async def send_reschedule(self, payload: NotificationPayload) -> None: ...

    @abstractmethod
    async def send_reminder(self, payload: NotificationPayload) -> None: ...

    async def close(self) -> None:
        return None


def _format_dt(dt: datetime) -> str:
    return dt.strftime("%A, %B %d, %Y at %I:%M %p %Z")


def _detail_lines(payload: NotificationPayload) -> List[str]:
    lines = [
        f"Event: {payload.event_name}",
        f"When: {_format_dt(payload.scheduled_start)}",
        f"Duration: {payload.duration_minutes} minutes",
    ]
    if payload.meeting_link:
        lines.append(f"Meeting link: {payload.meeting_link}")
    if payload.audience == OWNER:
        lines.append("")
        lines.append(f"Guest: {payload.guest_name} <{payload.guest_email}>")
        if payload.guest_phone:
            lines.append(f"Phone: {payload.guest_phone}")
    return lines


def render_message(kind: str, payload: NotificationPayload) -> Dict[str, str]:
    """Plain-text subject and body for one notification."""
    name = payload.recipient_name or "there"
    details = _detail_lines(payload)

    if kind == "confirmation":
        if payload.audience == OWNER:
            subject = f"New booking: {payload.event_name}"
            intro = f"{payload.guest_name} booked {payload.event_name}."
        else:
            subject = f"Booking confirmed: {payload.event_name}"
            intro = f"Hi {name}, your booking is confirmed."
    elif kind == "cancellation":
        subject = f"Booking cancelled: {payload.event_name}"
        intro = f"Hi {name}, this booking has been cancelled."
        if payload.reason:
            details.append(f"Reason: {payload.reason}")
    elif kind == "reschedule":
        subject = f"Booking rescheduled: {payload.event_name}"
        intro = f"Hi {name}, your booking has moved to a new time."
        if payload.previous_start:
            details.append(f"Previously: {_format_dt(payload.previous_start)}")
    elif kind == "reminder":
        hours = payload.hours_until
        subject = f"Reminder: {payload.event_name} in {hours} hour{'s' if hours != 1 else ''}"
        intro = f"Hi {name}, this is a reminder of your upcoming booking."
    else:
        raise NotificationError(f"Unknown notification kind: {kind}")

    return {"subject": subject, "body": "\n".join([intro, ""] + details)}


class EmailNotificationDispatcher(NotificationDispatcher):
    """Posts plain-text messages to a transactional email API."""

    def __init__(
        self,
        base_url: str,
        sender: str,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._sender = sender
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-API-Key"] = self._api_key
        return headers

    async def _send(self, kind: str, payload: NotificationPayload) -> None:
        if not payload.recipient_email:
            raise NotificationError(
                f"No recipient address for {payload.audience} {kind}",
                details={"booking_id": payload.booking_id, "audience": payload.audience},
            )

        message = render_message(kind, payload)
        data = {
            "from": self._sender,
            "to": [{"email": payload.recipient_email, "name": payload.recipient_name}],
            "subject": message["subject"],
            "body": message["body"],
            "tags": {"booking_id": payload.booking_id, "kind": kind},
        }

        try:
            resp = await self._client.post(
                f"{self._base_url}/v1/email/send", headers=self.headers, json=data
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationError(
                f"Email API returned {e.response.status_code}",
                details={"booking_id": payload.booking_id, "kind": kind},
                response_body=e.response.text,
            )
        except httpx.RequestError as e:
            raise NotificationError(
                f"Email API request failed: {e}",
                details={"booking_id": payload.booking_id, "kind": kind},
            )

        logger.info(
            "Sent booking notification",
            kind=kind,
            audience=payload.audience,
            booking_id=payload.booking_id,
        )

    async def send_confirmation(self, payload: NotificationPayload) -> None:
        await self._send("confirmation", payload)

    async def send_cancellation(self, payload: NotificationPayload) -> None:
        await self._send("cancellation", payload)

    async def send_reschedule(self, payload: NotificationPayload) -> None:
        await self._send("reschedule", payload)

    async def send_reminder(self, payload: NotificationPayload) -> None:
        await self._send("reminder", payload)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Logs notifications instead of sending them; used when no email API is configured."""

    async def _log(self, kind: str, payload: NotificationPayload) -> None:
        message = render_message(kind, payload)
        logger.info(
            "Notification not sent (no email service configured)",
            kind=kind,
            audience=payload.audience,
            booking_id=payload.booking_id,
            subject=message["subject"],
        )

    async def send_confirmation(self, payload: NotificationPayload) -> None:
        await self._log("confirmation", payload)

    async def send_cancellation(self, payload: NotificationPayload) -> None:
        await self._log("cancellation", payload)

    async def send_reschedule(self, payload: NotificationPayload) -> None:
        await self._log("reschedule", payload)

    async def send_reminder(self, payload: NotificationPayload) -> None:
        await self._log("reminder", payload)
