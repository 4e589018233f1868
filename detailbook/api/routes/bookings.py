import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from detailbook.api.deps import get_current_admin, get_policy, get_session
from detailbook.api.schemas.booking import BookingListResponse, BookingRequest, BookingResponse
from detailbook.core.clock import as_aware_utc
from detailbook.core.errors import Rejection
from detailbook.models.booking import (
    BookedAddOnPublic,
    BookedServicePublic,
    Booking,
    BookingCreate,
    BookingPublic,
)
from detailbook.models.catalog import PricePublic
from detailbook.services.calendar_policy import CalendarPolicy
from detailbook.services.catalog_service import Catalog, format_price, load_catalog
from detailbook.services.email_service import send_booking_confirmation_email
from detailbook.services.reservation_service import (
    cancel_booking,
    get_booking,
    list_bookings_for_date,
    reserve,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])


def _to_public(b: Booking, catalog: Catalog, policy: CalendarPolicy) -> BookingPublic:
    """Public shape with resolved names; prices shown are the frozen booking total."""
    start_utc = as_aware_utc(b.start_at_utc)
    end_utc = as_aware_utc(b.end_at_utc)
    service = catalog.services.get(b.service_id)
    add_ons = []
    for add_on_id in b.add_on_ids:
        item = catalog.add_ons.get(add_on_id)
        cents = b.add_on_prices.get(add_on_id, 0)
        add_ons.append(
            BookedAddOnPublic(
                id=add_on_id,
                name=item.name if item else add_on_id,
                price=PricePublic(cents=cents, formatted=format_price(cents)),
            )
        )
    return BookingPublic(
        id=b.id,
        status=b.status,
        service_id=b.service_id,
        add_on_ids=list(b.add_on_ids),
        start_at_utc=start_utc,
        end_at_utc=end_utc,
        start_local=policy.to_local(start_utc),
        end_local=policy.to_local(end_utc),
        duration_minutes=b.duration_minutes,
        price_cents=b.price_cents,
        price_formatted=format_price(b.price_cents),
        customer_name=b.customer_name,
        email=b.email,
        phone=b.phone,
        address=b.address,
        notes=b.notes,
        created_at=as_aware_utc(b.created_at),
        cancelled_at=as_aware_utc(b.cancelled_at) if b.cancelled_at else None,
        service=BookedServicePublic(
            id=b.service_id,
            name=service.name if service else b.service_id,
            duration_minutes=b.duration_minutes,
        ),
        add_ons=add_ons,
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    policy: CalendarPolicy = Depends(get_policy),
) -> BookingResponse:
    catalog = await load_catalog(session)
    data = BookingCreate(**body.model_dump())
    result = await reserve(session, data, policy, catalog=catalog)
    if isinstance(result, Rejection):
        raise HTTPException(status_code=result.http_status, detail=result.as_detail())
    public = _to_public(result, catalog, policy)
    # Fire-and-forget; a failed email never touches the committed booking
    background_tasks.add_task(
        send_booking_confirmation_email,
        to_email=public.email,
        recipient_name=public.customer_name,
        booking_id=public.id,
        service_name=public.service.name,
        add_on_names=[a.name for a in public.add_ons],
        start_local=public.start_local,
        end_local=public.end_local,
        price_formatted=public.price_formatted,
        address=public.address,
        notes=public.notes,
    )
    return BookingResponse(booking=public)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    date_param: date = Query(..., alias="date"),
    include_cancelled: bool = Query(False),
    session: AsyncSession = Depends(get_session),
    policy: CalendarPolicy = Depends(get_policy),
    _admin: str = Depends(get_current_admin),
) -> BookingListResponse:
    """Admin: bookings starting on a local date."""
    bookings = await list_bookings_for_date(session, date_param, policy, include_cancelled=include_cancelled)
    catalog = await load_catalog(session, include_inactive=True)
    return BookingListResponse(
        date=date_param.isoformat(),
        bookings=[_to_public(b, catalog, policy) for b in bookings],
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def read_booking(
    booking_id: str,
    session: AsyncSession = Depends(get_session),
    policy: CalendarPolicy = Depends(get_policy),
) -> BookingResponse:
    booking = await get_booking(session, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    catalog = await load_catalog(session, include_inactive=True)
    return BookingResponse(booking=_to_public(booking, catalog, policy))


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel(
    booking_id: str,
    session: AsyncSession = Depends(get_session),
    policy: CalendarPolicy = Depends(get_policy),
    admin: str = Depends(get_current_admin),
) -> BookingResponse:
    booking = await cancel_booking(session, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    logger.info("Booking %s cancelled by %s", booking.id, admin)
    catalog = await load_catalog(session, include_inactive=True)
    return BookingResponse(booking=_to_public(booking, catalog, policy))
