from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends

from services.booking.api.auth import get_owner_id
from services.booking.api.dependencies import get_availability
from services.booking.schemas.event_types import BlockedTimeCreate, BlockedTimeResponse
from services.booking.services.availability import AvailabilityModel

router = APIRouter()


@router.post("", response_model=BlockedTimeResponse, status_code=201)
def create_blocked_time(
    data: BlockedTimeCreate,
    owner_id: str = Depends(get_owner_id),
    availability: AvailabilityModel = Depends(get_availability),
) -> BlockedTimeResponse:
    blocked = availability.add_blocked_time(
        owner_id, data.start_at, data.end_at, title=data.title, reason=data.reason
    )
    return BlockedTimeResponse.model_validate(blocked)


@router.get("", response_model=List[BlockedTimeResponse])
def list_blocked_times(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    owner_id: str = Depends(get_owner_id),
    availability: AvailabilityModel = Depends(get_availability),
) -> List[BlockedTimeResponse]:
    return [
        BlockedTimeResponse.model_validate(b)
        for b in availability.list_blocked_times(owner_id, start=start, end=end)
    ]
