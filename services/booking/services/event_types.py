import re
import uuid
from typing import List

from sqlalchemy import select

from services.booking.models import EventType, get_session
from services.booking.models.base import utc_now
from services.booking.schemas.event_types import EventTypeCreate, EventTypeUpdate
from services.booking.services.availability import SessionScope
from services.common.http_errors import NotFoundError, ValidationError
from services.common.logging_config import get_logger

logger = get_logger(__name__)


def generate_slug(name: str) -> str:
    """URL-safe slug from an event type name."""
    slug = name.lower().strip()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug[:100] or "event"


class EventTypeService:
    """Owner-side authoring of event types."""

    def __init__(self, session_scope: SessionScope = get_session):
        self._session_scope = session_scope

    def create_event_type(self, owner_id: str, data: EventTypeCreate) -> EventType:
        """
        Create an event type with a slug unique to the owner.

        Soft-deleted event types keep their slug, so a clashing slug gets a
        short random suffix.
        """
        with self._session_scope() as session:
            slug = generate_slug(data.name)
            taken = session.scalar(
                select(EventType.id).where(
                    EventType.owner_id == owner_id, EventType.slug == slug
                )
            )
            if taken is not None:
                slug = f"{slug}-{uuid.uuid4().hex[:8]}"

            event_type = EventType(
                owner_id=owner_id,
                slug=slug,
                **data.model_dump(),
            )
            session.add(event_type)
            session.flush()

        logger.info(
            "Created event type",
            event_type_id=str(event_type.id),
            owner_id=owner_id,
            slug=slug,
        )
        return event_type

    def get_event_type(self, owner_id: str, event_type_id: uuid.UUID) -> EventType:
        with self._session_scope() as session:
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

    def list_event_types(self, owner_id: str) -> List[EventType]:
        with self._session_scope() as session:
            return list(
                session.scalars(
                    select(EventType)
                    .where(EventType.owner_id == owner_id, EventType.deleted_at.is_(None))
                    .order_by(EventType.created_at.desc(), EventType.id)
                )
            )

    def update_event_type(
        self, owner_id: str, event_type_id: uuid.UUID, data: EventTypeUpdate
    ) -> EventType:
        """
        Apply a partial update.

        Existing bookings keep the duration they were made with; a new
        duration only applies to bookings created or rescheduled afterwards.
        """
        changes = data.model_dump(exclude_unset=True)
        for key in ("name", "duration_minutes", "timezone", "is_active"):
            if key in changes and changes[key] is None:
                raise ValidationError(f"{key} cannot be null", field=key)

        with self._session_scope() as session:
            event_type = session.scalar(
                select(EventType).where(
                    EventType.id == event_type_id,
                    EventType.owner_id == owner_id,
                    EventType.deleted_at.is_(None),
                )
            )
            if event_type is None:
                raise NotFoundError("Event type", str(event_type_id))

            for key, value in changes.items():
                setattr(event_type, key, value)
            session.flush()

        logger.info(
            "Updated event type",
            event_type_id=str(event_type_id),
            fields=sorted(changes),
        )
        return event_type

    def soft_delete_event_type(self, owner_id: str, event_type_id: uuid.UUID) -> None:
        with self._session_scope() as session:
            event_type = session.scalar(
                select(EventType).where(
                    EventType.id == event_type_id,
                    EventType.owner_id == owner_id,
                    EventType.deleted_at.is_(None),
                )
            )
            if event_type is None:
                raise NotFoundError("Event type", str(event_type_id))
            event_type.deleted_at = utc_now()

        logger.info("Deleted event type", event_type_id=str(event_type_id))
