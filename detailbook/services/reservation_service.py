"""
Reservation manager: the only writer of bookings.

reserve() re-checks the calendar against the store while holding the lock for
every local date the buffered interval touches, then inserts and commits
before releasing it. Within one process the locks are asyncio locks; on
PostgreSQL a transaction-scoped advisory lock per date also serializes
workers that share the database.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import date, datetime, timedelta
from weakref import WeakValueDictionary

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from detailbook.core.clock import as_aware_utc, to_naive_utc, utc_now
from detailbook.core.errors import (
    SLOT_TAKEN_MESSAGE,
    STORE_UNAVAILABLE_MESSAGE,
    Rejection,
    RejectionKind,
    StoreUnavailableError,
)
from detailbook.models.booking import Booking, BookingCreate, BookingStatus
from detailbook.services.calendar_policy import CalendarPolicy
from detailbook.services.catalog_service import Catalog, load_catalog, resolve_selection
from detailbook.services.slot_service import (
    blocked_intervals,
    check_slot_shape,
    get_confirmed_bookings_between,
    overlaps_any,
)

logger = logging.getLogger(__name__)

# High bits of the advisory lock key, so our keys don't collide with other users of pg_advisory_*
_ADVISORY_LOCK_NAMESPACE = 0x44424B << 32


class CalendarLocks:
    """One asyncio.Lock per local calendar date, created on demand."""

    def __init__(self) -> None:
        self._locks: WeakValueDictionary[date, asyncio.Lock] = WeakValueDictionary()

    def for_day(self, day: date) -> asyncio.Lock:
        lock = self._locks.get(day)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[day] = lock
        return lock

    @asynccontextmanager
    async def hold(self, days: Iterable[date]) -> AsyncIterator[None]:
        # Sorted acquisition keeps two multi-day holders from deadlocking
        async with AsyncExitStack() as stack:
            for day in sorted(set(days)):
                await stack.enter_async_context(self.for_day(day))
            yield


calendar_locks = CalendarLocks()


def _days_touched(start_utc: datetime, end_utc: datetime, policy: CalendarPolicy) -> list[date]:
    first = policy.local_date(start_utc)
    last = policy.local_date(end_utc)
    return [first + timedelta(days=i) for i in range((last - first).days + 1)]


async def _lock_days_in_store(session: AsyncSession, days: list[date]) -> None:
    if session.get_bind().dialect.name != "postgresql":
        return
    for day in sorted(days):
        await session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": _ADVISORY_LOCK_NAMESPACE | day.toordinal()},
        )


async def reserve(
    session: AsyncSession,
    request: BookingCreate,
    policy: CalendarPolicy,
    catalog: Catalog | None = None,
    now: datetime | None = None,
    locks: CalendarLocks | None = None,
) -> Booking | Rejection:
    """Validate and commit a booking. Never raises for expected outcomes.

    The session is committed on success and rolled back on every rejection
    reached after the lock is taken.
    """
    now = as_aware_utc(now) if now else utc_now()
    locks = locks or calendar_locks

    if catalog is None:
        try:
            catalog = await load_catalog(session)
        except StoreUnavailableError as e:
            return e.to_rejection()
    selection = resolve_selection(catalog, request.service_id, request.add_on_ids)
    if isinstance(selection, Rejection):
        logger.info("Booking rejected (%s): %s", selection.kind.value, selection.message)
        return selection

    start = as_aware_utc(request.start_at_utc)
    end = start + timedelta(minutes=selection.duration_minutes)
    if request.end_at_utc is not None and as_aware_utc(request.end_at_utc) != end:
        logger.info("Booking rejected (invalid_slot): end %s != derived %s", request.end_at_utc, end)
        return Rejection(
            RejectionKind.INVALID_SLOT,
            "The selected time doesn't match the chosen services. Please pick a time again.",
        )
    reason = check_slot_shape(start, selection.duration_minutes, policy, now)
    if reason:
        logger.info("Booking rejected (invalid_slot) start=%s: %s", start.isoformat(), reason)
        return Rejection(RejectionKind.INVALID_SLOT, reason)

    check_start = start - policy.buffer
    check_end = end + policy.buffer
    days = _days_touched(check_start, check_end, policy)
    async with locks.hold(days):
        try:
            await _lock_days_in_store(session, days)
            existing = await get_confirmed_bookings_between(session, check_start, check_end)
            if overlaps_any(start, end, blocked_intervals(existing, policy.buffer)):
                await session.rollback()
                logger.info("Booking rejected (slot_no_longer_available) start=%s", start.isoformat())
                return Rejection(RejectionKind.SLOT_NO_LONGER_AVAILABLE, SLOT_TAKEN_MESSAGE)
            booking = Booking(
                service_id=selection.service.id,
                add_on_ids=selection.add_on_ids,
                add_on_prices=selection.add_on_prices,
                start_at_utc=to_naive_utc(start),
                end_at_utc=to_naive_utc(end),
                duration_minutes=selection.duration_minutes,
                price_cents=selection.price_cents,
                status=BookingStatus.CONFIRMED.value,
                customer_name=request.customer_name,
                email=request.email,
                phone=request.phone,
                address=request.address,
                notes=request.notes,
                created_at=to_naive_utc(now),
            )
            session.add(booking)
            await session.commit()
        except StoreUnavailableError as e:
            await session.rollback()
            return e.to_rejection()
        except SQLAlchemyError as e:
            logger.exception("Booking commit failed: %s", e)
            await session.rollback()
            return Rejection(RejectionKind.STORE_UNAVAILABLE, STORE_UNAVAILABLE_MESSAGE)

    logger.info(
        "Booking %s confirmed: service=%s add_ons=%s start=%s end=%s price_cents=%d",
        booking.id,
        booking.service_id,
        booking.add_on_ids,
        start.isoformat(),
        end.isoformat(),
        booking.price_cents,
    )
    return booking


async def get_booking(session: AsyncSession, booking_id: str) -> Booking | None:
    try:
        result = await session.execute(select(Booking).where(Booking.id == booking_id))
    except SQLAlchemyError as e:
        logger.exception("Booking lookup failed: %s", e)
        raise StoreUnavailableError() from e
    return result.scalar_one_or_none()


async def cancel_booking(
    session: AsyncSession, booking_id: str, now: datetime | None = None
) -> Booking | None:
    """Confirmed -> cancelled. Cancelled rows are kept for audit; repeat calls are no-ops."""
    booking = await get_booking(session, booking_id)
    if not booking:
        return None
    if booking.status == BookingStatus.CANCELLED.value:
        return booking
    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_at = to_naive_utc(now or utc_now())
    session.add(booking)
    try:
        await session.flush()
    except SQLAlchemyError as e:
        logger.exception("Booking cancel failed: %s", e)
        raise StoreUnavailableError() from e
    logger.info("Booking %s cancelled", booking.id)
    return booking


async def list_bookings_for_date(
    session: AsyncSession,
    day: date,
    policy: CalendarPolicy,
    include_cancelled: bool = False,
) -> list[Booking]:
    """Bookings starting on the local calendar day, in start order."""
    day_start, day_end = policy.day_bounds(day)
    q = (
        select(Booking)
        .where(
            Booking.start_at_utc >= to_naive_utc(day_start),
            Booking.start_at_utc < to_naive_utc(day_end),
        )
        .order_by(Booking.start_at_utc)
    )
    if not include_cancelled:
        q = q.where(Booking.status == BookingStatus.CONFIRMED.value)
    try:
        result = await session.execute(q)
    except SQLAlchemyError as e:
        logger.exception("Booking list failed: %s", e)
        raise StoreUnavailableError() from e
    return list(result.scalars().all())
