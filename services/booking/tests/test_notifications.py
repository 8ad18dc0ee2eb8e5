import json
from datetime import datetime, timezone

import httpx
import pytest

from services.booking.services.notifications import (
    GUEST,
    OWNER,
    EmailNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationPayload,
    render_message,
)
from services.common.http_errors import NotificationError
from services.common.test_utils import BaseSelectiveHTTPIntegrationTest

START = datetime(2025, 1, 8, 10, 0, tzinfo=timezone.utc)


def make_payload(**overrides) -> NotificationPayload:
    data = dict(
        recipient_email="grace@example.com",
        recipient_name="Grace",
        audience=GUEST,
        event_name="Intro Call",
        scheduled_start=START,
        duration_minutes=30,
        booking_id="b-1",
        meeting_link="https://meet.google.com/abc-defg-hij",
        guest_name="Grace",
        guest_email="grace@example.com",
    )
    data.update(overrides)
    return NotificationPayload(**data)


class TestRenderMessage:
    def test_guest_confirmation(self):
        message = render_message("confirmation", make_payload())

        assert message["subject"] == "Booking confirmed: Intro Call"
        assert "Hi Grace, your booking is confirmed." in message["body"]
        assert "Meeting link: https://meet.google.com/abc-defg-hij" in message["body"]

    def test_owner_confirmation_names_guest(self):
        message = render_message(
            "confirmation",
            make_payload(audience=OWNER, recipient_name="Olive", guest_phone="555"),
        )

        assert message["subject"] == "New booking: Intro Call"
        assert "Guest: Grace <grace@example.com>" in message["body"]
        assert "Phone: 555" in message["body"]

    def test_cancellation_reason(self):
        message = render_message("cancellation", make_payload(reason="Sick"))

        assert "Reason: Sick" in message["body"]

    def test_reminder_subject(self):
        assert render_message("reminder", make_payload(hours_until=1))["subject"] == (
            "Reminder: Intro Call in 1 hour"
        )
        assert render_message("reminder", make_payload(hours_until=24))["subject"] == (
            "Reminder: Intro Call in 24 hours"
        )

    def test_unknown_kind(self):
        with pytest.raises(NotificationError):
            render_message("invoice", make_payload())


class TestEmailNotificationDispatcher(BaseSelectiveHTTPIntegrationTest):
    def setup_method(self, method):
        super().setup_method(method)
        self.requests = []
        self.status_code = 202

    def _dispatcher(self) -> EmailNotificationDispatcher:
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(self.status_code, json={"id": "msg-1"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return EmailNotificationDispatcher(
            "https://mail.example.com/",
            sender="bookings@bookwell.app",
            api_key="secret",
            client=client,
        )

    async def test_posts_message(self):
        dispatcher = self._dispatcher()

        await dispatcher.send_confirmation(make_payload())

        request = self.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://mail.example.com/v1/email/send"
        assert request.headers["X-API-Key"] == "secret"
        body = json.loads(request.content)
        assert body["from"] == "bookings@bookwell.app"
        assert body["to"] == [{"email": "grace@example.com", "name": "Grace"}]
        assert body["subject"] == "Booking confirmed: Intro Call"
        assert body["tags"] == {"booking_id": "b-1", "kind": "confirmation"}

    async def test_error_status(self):
        self.status_code = 503
        dispatcher = self._dispatcher()

        with pytest.raises(NotificationError) as exc_info:
            await dispatcher.send_cancellation(make_payload())

        assert "503" in exc_info.value.message

    async def test_missing_recipient(self):
        dispatcher = self._dispatcher()

        with pytest.raises(NotificationError):
            await dispatcher.send_confirmation(
                make_payload(audience=OWNER, recipient_email=None)
            )
        assert self.requests == []

    async def test_close_keeps_injected_client(self):
        dispatcher = self._dispatcher()

        await dispatcher.close()
        await dispatcher.send_reminder(make_payload(hours_until=1))

        assert len(self.requests) == 1


class TestLoggingNotificationDispatcher:
    async def test_never_raises(self):
        dispatcher = LoggingNotificationDispatcher()

        await dispatcher.send_confirmation(make_payload(recipient_email=None))
        await dispatcher.send_reschedule(make_payload(previous_start=START))
        await dispatcher.close()
