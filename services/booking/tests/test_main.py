import os
from datetime import timedelta

from fastapi.testclient import TestClient

from services.booking.main import app, build_components
from services.booking.services.meeting_provisioner import (
    GoogleMeetProvisioner,
    NullMeetingProvisioner,
)
from services.booking.services.notifications import (
    EmailNotificationDispatcher,
    LoggingNotificationDispatcher,
)
from services.booking.settings import get_settings, reset_settings
from services.booking.tests.booking_test_base import BaseBookingTest

PROVIDER_ENV = {
    "GOOGLE_CALENDAR_ACCESS_TOKEN": "token-abc",
    "EMAIL_SERVICE_URL": "https://mail.example.com",
    "REMINDER_OFFSETS_MINUTES": "120,30",
}


class TestBuildComponents(BaseBookingTest):
    def teardown_method(self, method):
        for var in PROVIDER_ENV:
            os.environ.pop(var, None)
        super().teardown_method(method)

    def test_unconfigured_providers(self):
        components = build_components(get_settings())

        assert isinstance(components.provisioner, NullMeetingProvisioner)
        assert isinstance(components.notifier, LoggingNotificationDispatcher)

    async def test_configured_providers(self):
        os.environ.update(PROVIDER_ENV)
        reset_settings()

        components = build_components(get_settings())

        assert isinstance(components.provisioner, GoogleMeetProvisioner)
        assert isinstance(components.notifier, EmailNotificationDispatcher)
        assert components.engine._reminder_offsets == [
            timedelta(minutes=120),
            timedelta(minutes=30),
        ]
        await components.provisioner.close()
        await components.notifier.close()


class TestLifespan(BaseBookingTest):
    def teardown_method(self, method):
        app.state.components = None
        super().teardown_method(method)

    def test_lifespan_wires_components(self):
        app.state.components = None

        with TestClient(app) as client:
            response = client.post(
                "/api/v1/event-types",
                json={"name": "Intro Call"},
                headers=self.owner_headers,
            )
            assert response.status_code == 201
            assert isinstance(app.state.components.provisioner, NullMeetingProvisioner)
