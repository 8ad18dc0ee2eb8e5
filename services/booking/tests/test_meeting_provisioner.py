import json
from datetime import datetime, timezone

import httpx
import pytest

from services.booking.services.meeting_provisioner import (
    GoogleMeetProvisioner,
    MeetingSpec,
    NullMeetingProvisioner,
)
from services.common.http_errors import ProvisioningError
from services.common.test_utils import BaseSelectiveHTTPIntegrationTest

SPEC = MeetingSpec(
    title="Intro Call with Grace",
    start=datetime(2025, 1, 8, 10, 0, tzinfo=timezone.utc),
    end=datetime(2025, 1, 8, 10, 30, tzinfo=timezone.utc),
    request_id="booking-1",
    attendees=["grace@example.com"],
)

EVENT = {
    "id": "gcal-1",
    "hangoutLink": "https://meet.google.com/fallback",
    "conferenceData": {
        "entryPoints": [
            {"entryPointType": "phone", "uri": "tel:+1-555-0100"},
            {"entryPointType": "video", "uri": "https://meet.google.com/abc-defg-hij"},
        ]
    },
}


class TestGoogleMeetProvisioner(BaseSelectiveHTTPIntegrationTest):
    def setup_method(self, method):
        super().setup_method(method)
        self.requests = []
        self.status_code, self.body = 200, EVENT

    def _provisioner(self) -> GoogleMeetProvisioner:
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(self.status_code, json=self.body)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return GoogleMeetProvisioner(
            "token-abc",
            base_url="https://calendar.example.com/v3",
            client=client,
        )

    async def test_create(self):
        info = await self._provisioner().create(SPEC)

        assert info.link == "https://meet.google.com/abc-defg-hij"
        assert info.external_id == "gcal-1"
        request = self.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v3/calendars/primary/events"
        assert request.url.params["conferenceDataVersion"] == "1"
        assert request.headers["Authorization"] == "Bearer token-abc"
        body = json.loads(request.content)
        assert body["summary"] == "Intro Call with Grace"
        assert body["attendees"] == [{"email": "grace@example.com"}]
        assert body["conferenceData"]["createRequest"]["requestId"] == "booking-1"

    async def test_create_falls_back_to_hangout_link(self):
        self.body = {"id": "gcal-1", "hangoutLink": "https://meet.google.com/x"}

        info = await self._provisioner().create(SPEC)

        assert info.link == "https://meet.google.com/x"

    async def test_create_without_event_id(self):
        self.body = {}

        with pytest.raises(ProvisioningError):
            await self._provisioner().create(SPEC)

    async def test_error_status(self):
        self.status_code, self.body = 401, {"error": "invalid_token"}

        with pytest.raises(ProvisioningError) as exc_info:
            await self._provisioner().create(SPEC)

        assert exc_info.value.provider == "google"
        assert "401" in exc_info.value.message

    async def test_update_and_delete(self):
        provisioner = self._provisioner()

        await provisioner.update("gcal-1", SPEC)
        await provisioner.delete("gcal-1")

        assert [r.method for r in self.requests] == ["PATCH", "DELETE"]
        assert all(r.url.path.endswith("/events/gcal-1") for r in self.requests)


class TestNullMeetingProvisioner:
    async def test_every_call_fails(self):
        provisioner = NullMeetingProvisioner()

        with pytest.raises(ProvisioningError):
            await provisioner.create(SPEC)
        with pytest.raises(ProvisioningError):
            await provisioner.update("x", SPEC)
        with pytest.raises(ProvisioningError):
            await provisioner.delete("x")
