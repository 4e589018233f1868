"""Tests for the reservation manager, including concurrent booking attempts."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select, update

from detailbook.core.db import build_engine, build_session_maker
from detailbook.core.errors import Rejection, RejectionKind
from detailbook.models.booking import Booking, BookingStatus
from detailbook.models.catalog import Service
from detailbook.services.reservation_service import (
    CalendarLocks,
    cancel_booking,
    get_booking,
    list_bookings_for_date,
    reserve,
)
from detailbook.services.slot_service import get_available_slots

from conftest import MONDAY, NOW, local, make_policy, make_request


def assert_rejected(result, kind: RejectionKind) -> None:
    assert isinstance(result, Rejection), f"expected {kind}, got booking {result!r}"
    assert result.kind == kind


class TestReserve:
    @pytest.mark.asyncio
    async def test_creates_confirmed_booking_with_frozen_totals(self, session, policy):
        start = local(MONDAY, 10, 0)
        booking = await reserve(session, make_request(start, add_on_ids=["engine-bay", "pet-hair"]), policy, now=NOW)
        assert isinstance(booking, Booking)
        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.duration_minutes == 105
        assert booking.price_cents == 4900 + 3900 + 2900
        assert booking.add_on_ids == ["engine-bay", "pet-hair"]
        assert booking.start_at_utc == start.replace(tzinfo=None)
        assert booking.end_at_utc == (start + timedelta(minutes=105)).replace(tzinfo=None)
        assert len(booking.id) == 32

        stored = await get_booking(session, booking.id)
        assert stored is not None
        assert stored.customer_name == "Jordan Lee"
        assert stored.notes == "Gate code 1234"

    @pytest.mark.asyncio
    async def test_unknown_service(self, session, policy):
        result = await reserve(session, make_request(local(MONDAY, 10), service_id="nope"), policy, now=NOW)
        assert_rejected(result, RejectionKind.UNKNOWN_SERVICE)

    @pytest.mark.asyncio
    async def test_unknown_add_on(self, session, policy):
        result = await reserve(session, make_request(local(MONDAY, 10), add_on_ids=["nope"]), policy, now=NOW)
        assert_rejected(result, RejectionKind.UNKNOWN_ADD_ON)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "hh,mm",
        [
            (8, 30),   # before opening
            (16, 30),  # runs past closing
            (9, 10),   # off the slot grid
        ],
    )
    async def test_invalid_slot(self, session, policy, hh, mm):
        result = await reserve(session, make_request(local(MONDAY, hh, mm)), policy, now=NOW)
        assert_rejected(result, RejectionKind.INVALID_SLOT)

    @pytest.mark.asyncio
    async def test_invalid_slot_inside_lead_time(self, session):
        policy = make_policy(min_lead_time_minutes=180)
        result = await reserve(session, make_request(local(MONDAY, 10)), policy, now=local(MONDAY, 8))
        assert_rejected(result, RejectionKind.INVALID_SLOT)

    @pytest.mark.asyncio
    async def test_end_must_match_selected_services(self, session, policy):
        start = local(MONDAY, 10)
        result = await reserve(session, make_request(start, end=start + timedelta(minutes=30)), policy, now=NOW)
        assert_rejected(result, RejectionKind.INVALID_SLOT)
        ok = await reserve(session, make_request(start, end=start + timedelta(minutes=60)), policy, now=NOW)
        assert isinstance(ok, Booking)

    @pytest.mark.asyncio
    async def test_overlap_is_rejected_and_touching_is_allowed(self, session, policy):
        first = await reserve(session, make_request(local(MONDAY, 10)), policy, now=NOW)  # 10:00-11:00
        assert isinstance(first, Booking)
        # 11:00 start sits inside the 15 minute buffer
        assert_rejected(
            await reserve(session, make_request(local(MONDAY, 11)), policy, now=NOW),
            RejectionKind.SLOT_NO_LONGER_AVAILABLE,
        )
        assert isinstance(await reserve(session, make_request(local(MONDAY, 11, 30)), policy, now=NOW), Booking)

    @pytest.mark.asyncio
    async def test_conflict_message_asks_for_another_time(self, session, policy):
        await reserve(session, make_request(local(MONDAY, 10)), policy, now=NOW)
        result = await reserve(session, make_request(local(MONDAY, 10)), policy, now=NOW)
        assert_rejected(result, RejectionKind.SLOT_NO_LONGER_AVAILABLE)
        assert "another time" in result.message
        assert result.http_status == 409

    @pytest.mark.asyncio
    async def test_every_listed_slot_can_be_reserved(self, session, policy):
        # Keep taking the first offered slot until the day is full
        taken = 0
        while True:
            slots = await get_available_slots(session, MONDAY, 90, policy, now=NOW)
            if not slots:
                break
            result = await reserve(session, make_request(slots[0].start_utc, service_id="premium-detail"),
                                   policy, now=NOW)
            assert isinstance(result, Booking), result
            taken += 1
        assert taken == 4  # 09:00, 11:00, 13:00, 15:00 once the buffer pushes each off the grid

        bookings = await list_bookings_for_date(session, MONDAY, policy)
        for a, b in zip(bookings, bookings[1:]):
            assert b.start_at_utc >= a.end_at_utc + policy.buffer

    @pytest.mark.asyncio
    async def test_cancellation_frees_slot_and_is_kept(self, session, policy):
        booking = await reserve(session, make_request(local(MONDAY, 10)), policy, now=NOW)
        cancelled = await cancel_booking(session, booking.id)
        await session.commit()
        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None

        again = await reserve(session, make_request(local(MONDAY, 10)), policy, now=NOW)
        assert isinstance(again, Booking)
        assert again.id != booking.id

        all_rows = await list_bookings_for_date(session, MONDAY, policy, include_cancelled=True)
        assert {b.id for b in all_rows} == {booking.id, again.id}
        assert [b.id for b in await list_bookings_for_date(session, MONDAY, policy)] == [again.id]

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent_and_unknown_is_none(self, session, policy):
        booking = await reserve(session, make_request(local(MONDAY, 10)), policy, now=NOW)
        first = await cancel_booking(session, booking.id)
        second = await cancel_booking(session, booking.id)
        assert second.cancelled_at == first.cancelled_at
        assert await cancel_booking(session, "missing") is None

    @pytest.mark.asyncio
    async def test_price_change_does_not_touch_existing_booking(self, session, policy):
        booking = await reserve(session, make_request(local(MONDAY, 10)), policy, now=NOW)
        booking_id = booking.id
        await session.execute(update(Service).where(Service.id == "basic-wash").values(price_cents=9999))
        await session.commit()
        session.expire_all()
        stored = (await session.execute(select(Booking).where(Booking.id == booking_id))).scalar_one()
        assert stored.price_cents == 4900

    @pytest.mark.asyncio
    async def test_add_on_prices_are_frozen_per_item(self, session, policy):
        booking = await reserve(
            session, make_request(local(MONDAY, 10), add_on_ids=["engine-bay", "pet-hair"]), policy, now=NOW
        )
        assert booking.add_on_prices == {"engine-bay": 3900, "pet-hair": 2900}

    @pytest.mark.asyncio
    async def test_timestamps_round_trip_as_naive_utc(self, session_maker, policy):
        start = local(MONDAY, 10)
        async with session_maker() as s:
            booking = await reserve(s, make_request(start), policy, now=NOW)
            booking_id = booking.id
            await cancel_booking(s, booking_id)
            await s.commit()
        async with session_maker() as s:
            stored = await get_booking(s, booking_id)
        assert stored.start_at_utc == start.replace(tzinfo=None)
        assert stored.start_at_utc.tzinfo is None
        assert stored.created_at == NOW.replace(tzinfo=None)
        assert stored.cancelled_at is not None

    @pytest.mark.asyncio
    async def test_store_failure_is_a_typed_rejection(self, tmp_path, policy, catalog):
        # No tables: every read fails inside the store
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        try:
            async with build_session_maker(engine)() as s:
                result = await reserve(s, make_request(local(MONDAY, 10)), policy, catalog=catalog, now=NOW)
        finally:
            await engine.dispose()
        assert_rejected(result, RejectionKind.STORE_UNAVAILABLE)


class TestConcurrency:
    async def _attempt(self, session_maker, request, policy, catalog, locks):
        async with session_maker() as s:
            return await reserve(s, request, policy, catalog=catalog, now=NOW, locks=locks)

    @pytest.mark.asyncio
    async def test_same_slot_exactly_one_wins(self, session_maker, policy, catalog):
        locks = CalendarLocks()
        request = make_request(local(MONDAY, 10), service_id="premium-detail")  # 10:00-11:30
        results = await asyncio.gather(
            *(self._attempt(session_maker, request, policy, catalog, locks) for _ in range(8))
        )
        winners = [r for r in results if isinstance(r, Booking)]
        losers = [r for r in results if isinstance(r, Rejection)]
        assert len(winners) == 1
        assert len(losers) == 7
        assert all(r.kind == RejectionKind.SLOT_NO_LONGER_AVAILABLE for r in losers)

        async with session_maker() as s:
            assert len(await list_bookings_for_date(s, MONDAY, policy)) == 1

    @pytest.mark.asyncio
    async def test_overlapping_slots_never_both_commit(self, session_maker, policy, catalog):
        locks = CalendarLocks()
        requests = [
            make_request(local(MONDAY, 10, 0), service_id="premium-detail"),
            make_request(local(MONDAY, 10, 30)),
            make_request(local(MONDAY, 11, 30)),  # inside buffer of the 10:00-11:30 job
            make_request(local(MONDAY, 9, 30)),
        ]
        results = await asyncio.gather(
            *(self._attempt(session_maker, r, policy, catalog, locks) for r in requests)
        )
        assert any(isinstance(r, Booking) for r in results)

        async with session_maker() as s:
            bookings = await list_bookings_for_date(s, MONDAY, policy)
        for a in bookings:
            for b in bookings:
                if a.id == b.id:
                    continue
                assert not (
                    a.start_at_utc < b.end_at_utc + policy.buffer and a.end_at_utc + policy.buffer > b.start_at_utc
                )

    @pytest.mark.asyncio
    async def test_different_days_do_not_block_each_other(self, session_maker, policy, catalog):
        locks = CalendarLocks()
        tuesday = MONDAY + timedelta(days=1)
        results = await asyncio.gather(
            self._attempt(session_maker, make_request(local(MONDAY, 10)), policy, catalog, locks),
            self._attempt(session_maker, make_request(local(tuesday, 10)), policy, catalog, locks),
        )
        assert all(isinstance(r, Booking) for r in results)
