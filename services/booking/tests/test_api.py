import uuid
from datetime import timedelta

from services.booking.tests.booking_test_base import (
    MEET_LINK,
    NOW,
    BaseBookingTest,
    wednesday,
)
from services.common.http_errors import ProvisioningError


class TestEventTypeEndpoints(BaseBookingTest):
    def _create(self, **overrides):
        data = {"name": "Intro Call", "owner_email": "owner@example.com"}
        data.update(overrides)
        return self.client.post(
            "/api/v1/event-types", json=data, headers=self.owner_headers
        )

    def test_create_and_get(self):
        response = self._create(duration_minutes=45, timezone="Europe/Paris")

        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "intro-call"
        assert body["duration_minutes"] == 45

        response = self.client.get(
            f"/api/v1/event-types/{body['id']}", headers=self.owner_headers
        )
        assert response.status_code == 200
        assert response.json()["timezone"] == "Europe/Paris"

    def test_missing_owner_header(self):
        response = self.client.post("/api/v1/event-types", json={"name": "X"})

        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"

    def test_invalid_body(self):
        response = self._create(duration_minutes=5)

        assert response.status_code == 400

    def test_update_list_delete(self):
        event_type_id = self._create().json()["id"]

        response = self.client.put(
            f"/api/v1/event-types/{event_type_id}",
            json={"name": "Renamed"},
            headers=self.owner_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"

        response = self.client.delete(
            f"/api/v1/event-types/{event_type_id}", headers=self.owner_headers
        )
        assert response.status_code == 204

        response = self.client.get("/api/v1/event-types", headers=self.owner_headers)
        assert response.json() == []

    def test_unknown_event_type(self):
        response = self.client.get(
            f"/api/v1/event-types/{uuid.uuid4()}", headers=self.owner_headers
        )

        assert response.status_code == 404
        assert response.json()["type"] == "not_found"

    def test_availability_slots(self):
        event_type_id = self._create().json()["id"]
        url = f"/api/v1/event-types/{event_type_id}/availability"

        for day, start, end in [
            ("Friday", "09:00", "12:00"),
            ("Monday", "13:00", "17:00"),
        ]:
            response = self.client.post(
                url,
                json={"day_of_week": day, "start_time": start, "end_time": end},
                headers=self.owner_headers,
            )
            assert response.status_code == 201

        slots = self.client.get(url, headers=self.owner_headers).json()
        assert [s["day_of_week"] for s in slots] == ["Monday", "Friday"]

        response = self.client.delete(
            f"/api/v1/event-types/availability/{slots[0]['id']}",
            headers=self.owner_headers,
        )
        assert response.status_code == 204
        assert len(self.client.get(url, headers=self.owner_headers).json()) == 1

    def test_invalid_slot(self):
        event_type_id = self._create().json()["id"]
        url = f"/api/v1/event-types/{event_type_id}/availability"

        bad_day = self.client.post(
            url,
            json={"day_of_week": "Funday", "start_time": "09:00", "end_time": "10:00"},
            headers=self.owner_headers,
        )
        reversed_times = self.client.post(
            url,
            json={"day_of_week": "Monday", "start_time": "10:00", "end_time": "09:00"},
            headers=self.owner_headers,
        )

        assert bad_day.status_code == 400
        assert reversed_times.status_code == 400


class TestBookingEndpoints(BaseBookingTest):
    def setup_method(self, method):
        super().setup_method(method)
        self.event_type = self.create_event_type()

    def _book(self, start=None, email="grace@example.com"):
        return self.client.post(
            "/api/v1/bookings",
            json={
                "event_type_id": str(self.event_type.id),
                "guest_name": "Grace Guest",
                "guest_email": email,
                "scheduled_start": (start or wednesday(10)).isoformat(),
            },
        )

    def test_create_booking(self):
        response = self._book()

        assert response.status_code == 201
        body = response.json()
        assert body["booking"]["status"] == "confirmed"
        assert body["booking"]["meeting_link"] == MEET_LINK
        assert body["side_effects"]["ok"] is True
        names = {e["name"] for e in body["side_effects"]["effects"]}
        assert "meeting_provisioning" in names
        assert "guest_confirmation" in names

    def test_create_reports_failed_side_effects(self):
        self.provisioner.create.side_effect = ProvisioningError("calendar down")

        response = self._book()

        assert response.status_code == 201
        body = response.json()
        assert body["booking"]["meeting_link"] is None
        assert body["side_effects"]["ok"] is False

    def test_conflict(self):
        assert self._book().status_code == 201

        response = self._book(wednesday(10, 15), "other@example.com")

        assert response.status_code == 409
        assert response.json()["type"] == "conflict"

    def test_invalid_requests(self):
        bad_email = self._book(email="not-an-email")
        too_soon = self._book(NOW - timedelta(hours=1))
        unknown = self.client.post(
            "/api/v1/bookings",
            json={
                "event_type_id": str(uuid.uuid4()),
                "guest_name": "Grace",
                "guest_email": "grace@example.com",
                "scheduled_start": wednesday(10).isoformat(),
            },
        )

        assert bad_email.status_code == 400
        assert too_soon.status_code == 400
        assert unknown.status_code == 404

    def test_list_and_get(self):
        first = self._book().json()["booking"]
        second = self._book(wednesday(12)).json()["booking"]

        response = self.client.get(
            "/api/v1/bookings", params={"limit": 1}, headers=self.owner_headers
        )
        assert response.status_code == 200
        body = response.json()
        assert [b["id"] for b in body["bookings"]] == [second["id"]]
        assert body["total"] == 2
        assert body["has_more"] is True

        response = self.client.get(
            f"/api/v1/bookings/{first['id']}", headers=self.owner_headers
        )
        assert response.json()["id"] == first["id"]

        response = self.client.get(
            f"/api/v1/bookings/{first['id']}", headers={"X-User-Id": "intruder"}
        )
        assert response.status_code == 404

    def test_cancel(self):
        booking = self._book().json()["booking"]
        url = f"/api/v1/bookings/{booking['id']}/cancel"

        response = self.client.put(
            url, json={"reason": "Conflict at work"}, headers=self.owner_headers
        )
        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "cancelled"
        assert response.json()["booking"]["cancellation_reason"] == "Conflict at work"

        again = self.client.put(url, json={}, headers=self.owner_headers)
        assert again.status_code == 409

    def test_reschedule(self):
        booking = self._book().json()["booking"]

        response = self.client.put(
            f"/api/v1/bookings/{booking['id']}/reschedule",
            json={"new_start": wednesday(15).isoformat()},
            headers=self.owner_headers,
        )

        assert response.status_code == 200
        moved = response.json()["booking"]
        assert moved["id"] == booking["id"]
        assert moved["scheduled_start"].startswith("2025-01-08T15:00:00")

    def test_owner_routes_need_header(self):
        response = self.client.get("/api/v1/bookings")

        assert response.status_code == 400


class TestBlockedTimeAndAnalyticsEndpoints(BaseBookingTest):
    def test_blocked_times(self):
        response = self.client.post(
            "/api/v1/blocked-times",
            json={
                "start_at": wednesday(12).isoformat(),
                "end_at": wednesday(13).isoformat(),
                "title": "Lunch",
            },
            headers=self.owner_headers,
        )
        assert response.status_code == 201

        listed = self.client.get("/api/v1/blocked-times", headers=self.owner_headers)
        assert [b["title"] for b in listed.json()] == ["Lunch"]

        invalid = self.client.post(
            "/api/v1/blocked-times",
            json={
                "start_at": wednesday(13).isoformat(),
                "end_at": wednesday(12).isoformat(),
            },
            headers=self.owner_headers,
        )
        assert invalid.status_code == 400

    def test_analytics(self):
        event_type = self.create_event_type()
        self.client.post(
            "/api/v1/bookings",
            json={
                "event_type_id": str(event_type.id),
                "guest_name": "Grace",
                "guest_email": "grace@example.com",
                "scheduled_start": wednesday(10).isoformat(),
            },
        )

        dashboard = self.client.get(
            "/api/v1/analytics/dashboard", headers=self.owner_headers
        ).json()
        assert dashboard["total_bookings"] == 1
        assert len(dashboard["recent_bookings"]) == 1

        by_type = self.client.get(
            "/api/v1/analytics/by-event-type", headers=self.owner_headers
        ).json()
        assert by_type[0]["event_type_id"] == str(event_type.id)

        series = self.client.get(
            "/api/v1/analytics/bookings-range",
            params={"start_date": "2025-01-06", "end_date": "2025-01-12"},
            headers=self.owner_headers,
        ).json()
        assert series == [
            {"date": "2025-01-08", "total": 1, "confirmed": 1, "cancelled": 0}
        ]

        conversion = self.client.get(
            "/api/v1/analytics/conversion", headers=self.owner_headers
        ).json()
        assert conversion["conversion_rate"] == 100.0

        backwards = self.client.get(
            "/api/v1/analytics/bookings-range",
            params={"start_date": "2025-01-12", "end_date": "2025-01-06"},
            headers=self.owner_headers,
        )
        assert backwards.status_code == 400
