import re

import pytest

from services.booking.schemas.event_types import EventTypeCreate, EventTypeUpdate
from services.booking.services.event_types import generate_slug
from services.booking.tests.booking_test_base import OWNER_ID, BaseBookingTest
from services.common.http_errors import NotFoundError, ValidationError


class TestGenerateSlug:
    def test_basic(self):
        assert generate_slug("Intro Call") == "intro-call"

    def test_punctuation_and_spacing(self):
        assert generate_slug("  30 min: Q&A / Demo!  ") == "30-min-qa-demo"

    def test_nothing_usable(self):
        assert generate_slug("!!!") == "event"


class TestEventTypeService(BaseBookingTest):
    def test_create(self):
        event_type = self.create_event_type(description="Let's talk")

        assert event_type.slug == "intro-call"
        assert event_type.owner_id == OWNER_ID
        assert event_type.is_active
        assert event_type.duration_minutes == 30
        assert event_type.max_advance_booking_days == 365

    def test_slug_collision_gets_suffix(self):
        self.create_event_type()

        second = self.create_event_type()

        assert re.fullmatch(r"intro-call-[0-9a-f]{8}", second.slug)

    def test_deleted_slug_is_still_taken(self):
        first = self.create_event_type()
        self.event_types.soft_delete_event_type(OWNER_ID, first.id)

        second = self.create_event_type()

        assert second.slug != "intro-call"

    def test_slugs_are_per_owner(self):
        self.create_event_type()

        other = self.create_event_type(owner_id="other-owner")

        assert other.slug == "intro-call"

    def test_list_newest_first_without_deleted(self):
        first = self.create_event_type(name="First")
        second = self.create_event_type(name="Second")
        third = self.create_event_type(name="Third")
        self.event_types.soft_delete_event_type(OWNER_ID, second.id)

        listed = self.event_types.list_event_types(OWNER_ID)

        assert [et.id for et in listed] == [third.id, first.id]

    def test_get_is_owner_scoped(self):
        event_type = self.create_event_type()

        assert self.event_types.get_event_type(OWNER_ID, event_type.id).id == event_type.id
        with pytest.raises(NotFoundError):
            self.event_types.get_event_type("intruder", event_type.id)

    def test_partial_update(self):
        event_type = self.create_event_type(description="Old")

        updated = self.event_types.update_event_type(
            OWNER_ID, event_type.id, EventTypeUpdate(duration_minutes=60)
        )

        assert updated.duration_minutes == 60
        assert updated.description == "Old"
        assert updated.name == "Intro Call"

    def test_update_rejects_null_required_field(self):
        event_type = self.create_event_type()

        with pytest.raises(ValidationError):
            self.event_types.update_event_type(
                OWNER_ID, event_type.id, EventTypeUpdate(name=None)
            )

    def test_delete_twice(self):
        event_type = self.create_event_type()
        self.event_types.soft_delete_event_type(OWNER_ID, event_type.id)

        with pytest.raises(NotFoundError):
            self.event_types.soft_delete_event_type(OWNER_ID, event_type.id)

    def test_schema_bounds(self):
        with pytest.raises(ValueError):
            EventTypeCreate(name="Tiny", duration_minutes=10)
        with pytest.raises(ValueError):
            EventTypeCreate(name="Far", timezone="Nowhere/Special")
