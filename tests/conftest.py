"""Shared test fixtures and helpers."""

import os
from datetime import UTC, date, datetime, timedelta

from passlib.context import CryptContext

ADMIN_EMAIL = "owner@example.com"
ADMIN_PASSWORD = "correct horse battery staple"

# Settings are read at import time, so the environment must be in place first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["ADMIN_EMAIL"] = ADMIN_EMAIL
os.environ["ADMIN_PASSWORD_HASH"] = CryptContext(schemes=["bcrypt"], bcrypt__rounds=4).hash(ADMIN_PASSWORD)
os.environ["SMTP_HOST"] = ""
os.environ["ENV"] = "test"

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from detailbook.api.deps import get_policy  # noqa: E402
from detailbook.core.db import build_engine, build_session_maker, get_session  # noqa: E402
from detailbook.main import app  # noqa: E402
from detailbook.models.booking import Booking, BookingCreate, BookingStatus  # noqa: E402
from detailbook.models.catalog import AddOn, Service  # noqa: E402
from detailbook.services.calendar_policy import CalendarPolicy, build_policy  # noqa: E402
from detailbook.services.catalog_service import Catalog, CatalogItem  # noqa: E402

TZ = "America/New_York"
MON_SAT_9_TO_5 = {
    "mon": "09:00-17:00",
    "tue": "09:00-17:00",
    "wed": "09:00-17:00",
    "thu": "09:00-17:00",
    "fri": "09:00-17:00",
    "sat": "09:00-17:00",
    "sun": None,
}

# Monday 2026-03-02 in New York is UTC-5 (EST)
MONDAY = date(2026, 3, 2)
NOW = datetime(2026, 2, 27, 12, 0, tzinfo=UTC)


def make_policy(**overrides) -> CalendarPolicy:
    kwargs = {
        "time_zone": TZ,
        "hours": MON_SAT_9_TO_5,
        "slot_granularity_minutes": 30,
        "buffer_minutes": 15,
        "min_lead_time_minutes": 0,
    }
    kwargs.update(overrides)
    return build_policy(**kwargs)


def local(day: date, hh: int, mm: int = 0, tz: str = TZ) -> datetime:
    """Local wall-clock time on `day` as an aware UTC datetime."""
    from zoneinfo import ZoneInfo

    return datetime(day.year, day.month, day.day, hh, mm, tzinfo=ZoneInfo(tz)).astimezone(UTC)


def make_booking(
    start: datetime,
    minutes: int,
    status: BookingStatus = BookingStatus.CONFIRMED,
    service_id: str = "basic-wash",
) -> Booking:
    return Booking(
        service_id=service_id,
        add_on_ids=[],
        start_at_utc=start.replace(tzinfo=None),
        end_at_utc=(start + timedelta(minutes=minutes)).replace(tzinfo=None),
        duration_minutes=minutes,
        price_cents=0,
        status=status.value,
        customer_name="Test Customer",
        email="customer@example.com",
        phone="555-010-0000",
        address="1 Main St",
    )


def make_request(
    start: datetime,
    service_id: str = "basic-wash",
    add_on_ids: list[str] | None = None,
    end: datetime | None = None,
) -> BookingCreate:
    return BookingCreate(
        service_id=service_id,
        add_on_ids=add_on_ids or [],
        start_at_utc=start,
        end_at_utc=end,
        customer_name="Jordan Lee",
        email="jordan@example.com",
        phone="555-010-1234",
        address="42 Oak Avenue",
        notes="Gate code 1234",
    )


SERVICES = [
    CatalogItem(id="basic-wash", name="Basic Wash", duration_minutes=60, price_cents=4900),
    CatalogItem(id="premium-detail", name="Premium Detail", duration_minutes=90, price_cents=14900),
]
ADD_ONS = [
    CatalogItem(id="engine-bay", name="Engine Bay Cleaning", duration_minutes=30, price_cents=3900),
    CatalogItem(id="pet-hair", name="Pet Hair Removal", duration_minutes=15, price_cents=2900),
    CatalogItem(id="air-freshener", name="Air Freshener", duration_minutes=0, price_cents=500),
]


@pytest.fixture
def policy() -> CalendarPolicy:
    return make_policy()


@pytest.fixture
def catalog() -> Catalog:
    return Catalog.from_items(SERVICES, ADD_ONS)


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    maker = build_session_maker(engine)
    async with maker() as session:
        for i, item in enumerate(SERVICES):
            session.add(Service(id=item.id, name=item.name, duration_minutes=item.duration_minutes,
                                price_cents=item.price_cents, sort_order=i))
        for i, item in enumerate(ADD_ONS):
            session.add(AddOn(id=item.id, name=item.name, duration_minutes=item.duration_minutes,
                              price_cents=item.price_cents, sort_order=i))
        session.add(Service(id="retired", name="Retired Service", duration_minutes=30, price_cents=100, active=False))
        await session.commit()
    return maker


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest_asyncio.fixture
async def client(session_maker, policy):
    async def _get_session():
        async with session_maker() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_policy] = lambda: policy
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def future_monday(weeks_ahead: int = 2) -> date:
    """A Monday comfortably in the future for tests that run against the real clock."""
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7) + timedelta(weeks=weeks_ahead)
