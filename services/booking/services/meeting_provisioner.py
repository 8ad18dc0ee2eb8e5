"""
External meeting provisioning.

The booking engine only knows ``MeetingProvisioner``. A failed create leaves
the booking without a meeting link; it never undoes the booking.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from services.common.http_errors import ProvisioningError
from services.common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class MeetingSpec:
    title: str
    start: datetime
    end: datetime
    request_id: str
    timezone: str = "UTC"
    description: Optional[str] = None
    attendees: List[str] = field(default_factory=list)


@dataclass
class MeetingInfo:
    link: Optional[str]
    external_id: str


class MeetingProvisioner(ABC):
    @abstractmethod
    async def create(self, spec: MeetingSpec) -> MeetingInfo: ...

    @abstractmethod
    async def update(self, external_id: str, spec: MeetingSpec) -> None: ...

    @abstractmethod
    async def delete(self, external_id: str) -> None: ...

    async def close(self) -> None:
        return None


class NullMeetingProvisioner(MeetingProvisioner):
    """Used when no meeting provider is configured; bookings get no link."""

    async def create(self, spec: MeetingSpec) -> MeetingInfo:
        raise ProvisioningError(
            "No meeting provider configured", provider="none"
        )

    async def update(self, external_id: str, spec: MeetingSpec) -> None:
        raise ProvisioningError(
            "No meeting provider configured", provider="none"
        )

    async def delete(self, external_id: str) -> None:
        raise ProvisioningError(
            "No meeting provider configured", provider="none"
        )


class GoogleMeetProvisioner(MeetingProvisioner):
    """Creates Google Calendar events with an attached Google Meet conference."""

    def __init__(
        self,
        access_token: str,
        calendar_id: str = "primary",
        base_url: str = "https://www.googleapis.com/calendar/v3",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self._access_token = access_token
        self._calendar_id = calendar_id
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None  # Flag to know if we need to close it

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    @property
    def events_url(self) -> str:
        return f"{self._base_url}/calendars/{self._calendar_id}/events"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        logger.debug("Calendar API request", method=method, url=url)
        try:
            response = await self._client.request(
                method, url, headers=self.headers, **kwargs
            )
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            raise ProvisioningError(
                f"Google Calendar API returned {e.response.status_code}",
                provider="google",
                details={"method": method},
                response_body=e.response.text,
            )
        except httpx.RequestError as e:
            raise ProvisioningError(
                f"Google Calendar API request failed: {e}",
                provider="google",
                details={"method": method},
            )

    def _event_body(self, spec: MeetingSpec) -> Dict[str, Any]:
        return {
            "summary": spec.title,
            "description": spec.description or "",
            "start": {"dateTime": spec.start.isoformat(), "timeZone": spec.timezone},
            "end": {"dateTime": spec.end.isoformat(), "timeZone": spec.timezone},
            "attendees": [{"email": email} for email in spec.attendees],
        }

    async def create(self, spec: MeetingSpec) -> MeetingInfo:
        body = self._event_body(spec)
        body["conferenceData"] = {
            "createRequest": {
                "requestId": spec.request_id,
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        }
        response = await self._request(
            "POST",
            self.events_url,
            params={"conferenceDataVersion": 1, "sendUpdates": "all"},
            json=body,
        )
        event = response.json()
        if not event.get("id"):
            raise ProvisioningError(
                "Google Calendar response has no event id", provider="google"
            )

        link = event.get("hangoutLink")
        for entry_point in event.get("conferenceData", {}).get("entryPoints", []):
            if entry_point.get("entryPointType") == "video":
                link = entry_point.get("uri")
                break

        logger.info(
            "Provisioned Google Meet", request_id=spec.request_id, event_id=event["id"]
        )
        return MeetingInfo(link=link, external_id=event["id"])

    async def update(self, external_id: str, spec: MeetingSpec) -> None:
        await self._request(
            "PATCH",
            f"{self.events_url}/{external_id}",
            params={"sendUpdates": "all"},
            json=self._event_body(spec),
        )

    async def delete(self, external_id: str) -> None:
        await self._request(
            "DELETE",
            f"{self.events_url}/{external_id}",
            params={"sendUpdates": "all"},
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
