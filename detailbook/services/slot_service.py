"""
Availability engine.

compute_slots() is pure: given a local calendar day, a duration, the calendar
policy and the existing bookings, it returns every bookable window in
chronological order. Candidates step from the opening time at the policy's
granularity in absolute UTC; a candidate survives if it ends by closing time,
starts no earlier than now + lead time, and stays clear of every confirmed
booking widened by the buffer on both sides. Touching intervals are allowed.

The async helpers wrap it with the booking store. Results are a best-effort
view; reservation re-validates under a lock at commit time.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from detailbook.core.clock import as_aware_utc, to_naive_utc, utc_now
from detailbook.core.errors import Rejection, StoreUnavailableError
from detailbook.models.booking import Booking, BookingStatus
from detailbook.services.calendar_policy import CalendarPolicy
from detailbook.services.catalog_service import Catalog, Selection, load_catalog, resolve_selection

logger = logging.getLogger(__name__)

Interval = tuple[datetime, datetime]


@dataclass(frozen=True)
class TimeSlot:
    start_utc: datetime
    end_utc: datetime
    start_local: datetime
    end_local: datetime
    label: str


@dataclass(frozen=True)
class Availability:
    day: date
    selection: Selection
    slots: list[TimeSlot]


def format_clock(dt: datetime) -> str:
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def format_slot_label(start_local: datetime, end_local: datetime) -> str:
    return f"{format_clock(start_local)} - {format_clock(end_local)}"


def blocked_intervals(bookings: Iterable[Booking], buffer: timedelta) -> list[Interval]:
    """Confirmed bookings as aware-UTC intervals widened by the buffer on both sides."""
    out: list[Interval] = []
    for b in bookings:
        if not b.is_confirmed:
            continue
        out.append((as_aware_utc(b.start_at_utc) - buffer, as_aware_utc(b.end_at_utc) + buffer))
    out.sort()
    return out


def overlaps_any(start: datetime, end: datetime, blocked: Sequence[Interval]) -> bool:
    for blocked_start, blocked_end in blocked:
        if start < blocked_end and end > blocked_start:
            return True
    return False


def _first_candidate(open_utc: datetime, earliest: datetime, step: timedelta) -> datetime:
    if earliest <= open_utc:
        return open_utc
    # Round up to the next grid point counted from opening time
    steps = -((open_utc - earliest) // step)
    return open_utc + steps * step


def compute_slots(
    day: date,
    duration_minutes: int,
    policy: CalendarPolicy,
    bookings: Iterable[Booking] = (),
    now: datetime | None = None,
) -> list[TimeSlot]:
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be > 0, got {duration_minutes}")
    now = as_aware_utc(now) if now else utc_now()
    window = policy.operating_window(day, now)
    if window is None:
        return []
    open_utc, close_utc = window
    step = policy.granularity
    duration = timedelta(minutes=duration_minutes)
    blocked = blocked_intervals(bookings, policy.buffer)

    slots: list[TimeSlot] = []
    candidate = _first_candidate(open_utc, policy.earliest_start(now), step)
    while candidate + duration <= close_utc:
        candidate_end = candidate + duration
        if not overlaps_any(candidate, candidate_end, blocked):
            start_local = policy.to_local(candidate)
            end_local = policy.to_local(candidate_end)
            slots.append(
                TimeSlot(
                    start_utc=candidate,
                    end_utc=candidate_end,
                    start_local=start_local,
                    end_local=end_local,
                    label=format_slot_label(start_local, end_local),
                )
            )
        candidate += step
    return slots


def check_slot_shape(
    start_utc: datetime,
    duration_minutes: int,
    policy: CalendarPolicy,
    now: datetime | None = None,
) -> str | None:
    """Static checks a start time must pass before any overlap test.

    Returns a user-facing reason, or None when the slot is well formed:
    open day, inside operating hours, on the granularity grid, past lead time.
    """
    if duration_minutes <= 0:
        return "Booking duration must be greater than zero."
    now = as_aware_utc(now) if now else utc_now()
    start_utc = as_aware_utc(start_utc)
    end_utc = start_utc + timedelta(minutes=duration_minutes)
    day = policy.local_date(start_utc)
    window = policy.operating_window(day, now)
    if window is None:
        return "We are not taking bookings on that day."
    open_utc, close_utc = window
    if start_utc < open_utc or end_utc > close_utc:
        return "That time falls outside our operating hours."
    if (start_utc - open_utc) % policy.granularity:
        return "Bookings must start on a listed time slot."
    if start_utc < policy.earliest_start(now):
        return "That time is too soon to book. Please choose a later slot."
    return None


async def get_confirmed_bookings_between(
    session: AsyncSession, start_utc: datetime, end_utc: datetime
) -> list[Booking]:
    """Confirmed bookings whose [start, end) intersects [start_utc, end_utc)."""
    try:
        result = await session.execute(
            select(Booking)
            .where(
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.start_at_utc < to_naive_utc(end_utc),
                Booking.end_at_utc > to_naive_utc(start_utc),
            )
            .order_by(Booking.start_at_utc)
        )
    except SQLAlchemyError as e:
        logger.exception("Booking store read failed: %s", e)
        raise StoreUnavailableError() from e
    return list(result.scalars().all())


def affected_range(day: date, policy: CalendarPolicy) -> tuple[datetime, datetime]:
    """UTC range of bookings that can block any slot on the local day."""
    day_start, day_end = policy.day_bounds(day)
    return day_start - policy.buffer, day_end + policy.buffer


async def get_available_slots(
    session: AsyncSession,
    day: date,
    duration_minutes: int,
    policy: CalendarPolicy,
    now: datetime | None = None,
) -> list[TimeSlot]:
    now = as_aware_utc(now) if now else utc_now()
    if policy.operating_window(day, now) is None:
        return []
    range_start, range_end = affected_range(day, policy)
    bookings = await get_confirmed_bookings_between(session, range_start, range_end)
    return compute_slots(day, duration_minutes, policy, bookings, now)


async def get_availability(
    session: AsyncSession,
    day: date,
    service_id: str,
    add_on_ids: Sequence[str],
    policy: CalendarPolicy,
    catalog: Catalog | None = None,
    now: datetime | None = None,
) -> Availability | Rejection:
    """Resolve the selection, then list bookable windows for its total duration."""
    if catalog is None:
        catalog = await load_catalog(session)
    selection = resolve_selection(catalog, service_id, add_on_ids)
    if isinstance(selection, Rejection):
        return selection
    slots = await get_available_slots(session, day, selection.duration_minutes, policy, now)
    logger.debug(
        "Availability %s service=%s add_ons=%s duration=%d: %d slot(s)",
        day.isoformat(),
        service_id,
        selection.add_on_ids,
        selection.duration_minutes,
        len(slots),
    )
    return Availability(day=day, selection=selection, slots=slots)
