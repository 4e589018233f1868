from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from detailbook.api.deps import get_policy, get_session
from detailbook.api.schemas.booking import AvailabilityResponse, SlotInfo
from detailbook.core.errors import Rejection
from detailbook.services.calendar_policy import CalendarPolicy
from detailbook.services.slot_service import get_availability

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("", response_model=AvailabilityResponse)
async def available_slots(
    date_param: date = Query(..., alias="date"),
    service_id: str = Query(...),
    add_on_ids: list[str] = Query(default=[]),
    session: AsyncSession = Depends(get_session),
    policy: CalendarPolicy = Depends(get_policy),
) -> AvailabilityResponse:
    """Bookable windows for the service (+ add-ons) on a local date.

    The list is a snapshot, not a hold: the booking is re-checked on submit.
    """
    result = await get_availability(session, date_param, service_id, add_on_ids, policy)
    if isinstance(result, Rejection):
        raise HTTPException(status_code=result.http_status, detail=result.as_detail())
    return AvailabilityResponse(
        date=date_param.isoformat(),
        service_id=result.selection.service.id,
        add_on_ids=result.selection.add_on_ids,
        duration_minutes=result.selection.duration_minutes,
        time_zone=policy.time_zone,
        slots=[
            SlotInfo(
                start_local=s.start_local,
                end_local=s.end_local,
                start_utc=s.start_utc,
                end_utc=s.end_utc,
                label=s.label,
            )
            for s in result.slots
        ],
    )
