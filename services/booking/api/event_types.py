from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response

from services.booking.api.auth import get_owner_id
from services.booking.api.dependencies import get_availability, get_event_type_service
from services.booking.schemas.event_types import (
    AvailabilitySlotCreate,
    AvailabilitySlotResponse,
    EventTypeCreate,
    EventTypeResponse,
    EventTypeUpdate,
)
from services.booking.services.availability import AvailabilityModel
from services.booking.services.event_types import EventTypeService

router = APIRouter()


@router.post("", response_model=EventTypeResponse, status_code=201)
def create_event_type(
    data: EventTypeCreate,
    owner_id: str = Depends(get_owner_id),
    service: EventTypeService = Depends(get_event_type_service),
) -> EventTypeResponse:
    event_type = service.create_event_type(owner_id, data)
    return EventTypeResponse.model_validate(event_type)


@router.get("", response_model=List[EventTypeResponse])
def list_event_types(
    owner_id: str = Depends(get_owner_id),
    service: EventTypeService = Depends(get_event_type_service),
) -> List[EventTypeResponse]:
    return [
        EventTypeResponse.model_validate(et) for et in service.list_event_types(owner_id)
    ]


@router.get("/{event_type_id}", response_model=EventTypeResponse)
def get_event_type(
    event_type_id: UUID,
    owner_id: str = Depends(get_owner_id),
    service: EventTypeService = Depends(get_event_type_service),
) -> EventTypeResponse:
    return EventTypeResponse.model_validate(
        service.get_event_type(owner_id, event_type_id)
    )


@router.put("/{event_type_id}", response_model=EventTypeResponse)
def update_event_type(
    event_type_id: UUID,
    data: EventTypeUpdate,
    owner_id: str = Depends(get_owner_id),
    service: EventTypeService = Depends(get_event_type_service),
) -> EventTypeResponse:
    return EventTypeResponse.model_validate(
        service.update_event_type(owner_id, event_type_id, data)
    )


@router.delete("/{event_type_id}", status_code=204)
def delete_event_type(
    event_type_id: UUID,
    owner_id: str = Depends(get_owner_id),
    service: EventTypeService = Depends(get_event_type_service),
) -> Response:
    service.soft_delete_event_type(owner_id, event_type_id)
    return Response(status_code=204)


@router.post(
    "/{event_type_id}/availability",
    response_model=AvailabilitySlotResponse,
    status_code=201,
)
def add_availability_slot(
    event_type_id: UUID,
    data: AvailabilitySlotCreate,
    owner_id: str = Depends(get_owner_id),
    availability: AvailabilityModel = Depends(get_availability),
) -> AvailabilitySlotResponse:
    slot = availability.add_slot(
        owner_id, event_type_id, data.day_of_week, data.start_time, data.end_time
    )
    return AvailabilitySlotResponse.model_validate(slot)


@router.get(
    "/{event_type_id}/availability",
    response_model=List[AvailabilitySlotResponse],
)
def list_availability_slots(
    event_type_id: UUID,
    owner_id: str = Depends(get_owner_id),
    availability: AvailabilityModel = Depends(get_availability),
) -> List[AvailabilitySlotResponse]:
    """Active slots, Monday first."""
    return [
        AvailabilitySlotResponse.model_validate(slot)
        for slot in availability.list_slots(owner_id, event_type_id)
    ]


@router.delete("/availability/{slot_id}", status_code=204)
def deactivate_availability_slot(
    slot_id: UUID,
    owner_id: str = Depends(get_owner_id),
    availability: AvailabilityModel = Depends(get_availability),
) -> Response:
    availability.deactivate_slot(owner_id, slot_id)
    return Response(status_code=204)
