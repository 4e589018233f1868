import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from detailbook.core.errors import Rejection, RejectionKind, StoreUnavailableError
from detailbook.models.catalog import AddOn, AddOnPublic, PricePublic, Service, ServicePublic

logger = logging.getLogger(__name__)

DEFAULT_SERVICES = [
    {"id": "basic-wash", "name": "Basic Wash", "duration_minutes": 60, "price_cents": 4900, "sort_order": 1,
     "description": "Exterior hand wash, wheels, windows and a quick interior vacuum."},
    {"id": "premium-detail", "name": "Premium Detail", "duration_minutes": 180, "price_cents": 14900, "sort_order": 2,
     "description": "Clay bar, wax, interior deep clean and leather conditioning."},
    {"id": "luxury-package", "name": "Luxury Package", "duration_minutes": 300, "price_cents": 29900, "sort_order": 3,
     "description": "One-step paint correction, ceramic coating and headlight restoration."},
]

DEFAULT_ADD_ONS = [
    {"id": "engine-bay", "name": "Engine Bay Cleaning", "duration_minutes": 30, "price_cents": 3900, "sort_order": 1},
    {"id": "pet-hair", "name": "Pet Hair Removal", "duration_minutes": 30, "price_cents": 2900, "sort_order": 2},
    {"id": "headlights", "name": "Headlight Restoration", "duration_minutes": 45, "price_cents": 5900, "sort_order": 3},
    {"id": "odor", "name": "Odor Elimination", "duration_minutes": 30, "price_cents": 3500, "sort_order": 4},
]


def format_price(cents: int) -> str:
    return f"${cents // 100:,}.{cents % 100:02d}"


@dataclass(frozen=True)
class CatalogItem:
    id: str
    name: str
    duration_minutes: int
    price_cents: int
    description: str | None = None

    @property
    def price(self) -> PricePublic:
        return PricePublic(cents=self.price_cents, formatted=format_price(self.price_cents))


@dataclass(frozen=True)
class Catalog:
    """Read-only snapshot of bookable services and add-ons, keyed by id."""

    services: Mapping[str, CatalogItem] = field(default_factory=dict)
    add_ons: Mapping[str, CatalogItem] = field(default_factory=dict)

    @classmethod
    def from_items(cls, services: Sequence[CatalogItem], add_ons: Sequence[CatalogItem] = ()) -> "Catalog":
        return cls(services={s.id: s for s in services}, add_ons={a.id: a for a in add_ons})


@dataclass(frozen=True)
class Selection:
    """A service plus its ordered add-ons, with summed duration and price."""

    service: CatalogItem
    add_ons: tuple[CatalogItem, ...] = ()

    @property
    def add_on_ids(self) -> list[str]:
        return [a.id for a in self.add_ons]

    @property
    def add_on_prices(self) -> dict[str, int]:
        return {a.id: a.price_cents for a in self.add_ons}

    @property
    def duration_minutes(self) -> int:
        return self.service.duration_minutes + sum(a.duration_minutes for a in self.add_ons)

    @property
    def price_cents(self) -> int:
        return self.service.price_cents + sum(a.price_cents for a in self.add_ons)


def resolve_selection(
    catalog: Catalog, service_id: str, add_on_ids: Sequence[str] = ()
) -> Selection | Rejection:
    service = catalog.services.get(service_id)
    if service is None:
        return Rejection(RejectionKind.UNKNOWN_SERVICE, f"Unknown service: {service_id}")
    add_ons: list[CatalogItem] = []
    seen: set[str] = set()
    for add_on_id in add_on_ids:
        if add_on_id in seen:
            continue
        seen.add(add_on_id)
        add_on = catalog.add_ons.get(add_on_id)
        if add_on is None:
            return Rejection(RejectionKind.UNKNOWN_ADD_ON, f"Unknown add-on: {add_on_id}")
        add_ons.append(add_on)
    selection = Selection(service=service, add_ons=tuple(add_ons))
    if selection.duration_minutes <= 0:
        return Rejection(RejectionKind.INVALID_SLOT, "Selected services have no duration")
    return selection


def _to_item(row: Service | AddOn) -> CatalogItem:
    return CatalogItem(
        id=row.id,
        name=row.name,
        duration_minutes=row.duration_minutes,
        price_cents=row.price_cents,
        description=getattr(row, "description", None),
    )


async def load_catalog(session: AsyncSession, include_inactive: bool = False) -> Catalog:
    """Snapshot the catalog. Inactive entries are left out unless asked for."""
    services_q = select(Service).order_by(Service.sort_order, Service.name)
    add_ons_q = select(AddOn).order_by(AddOn.sort_order, AddOn.name)
    if not include_inactive:
        services_q = services_q.where(Service.active == True)  # noqa: E712
        add_ons_q = add_ons_q.where(AddOn.active == True)  # noqa: E712
    try:
        services = (await session.execute(services_q)).scalars().all()
        add_ons = (await session.execute(add_ons_q)).scalars().all()
    except SQLAlchemyError as e:
        logger.exception("Catalog load failed: %s", e)
        raise StoreUnavailableError() from e
    return Catalog.from_items([_to_item(s) for s in services], [_to_item(a) for a in add_ons])


def service_to_public(item: CatalogItem) -> ServicePublic:
    return ServicePublic(
        id=item.id,
        name=item.name,
        description=item.description,
        duration_minutes=item.duration_minutes,
        price=item.price,
    )


def add_on_to_public(item: CatalogItem) -> AddOnPublic:
    return AddOnPublic(
        id=item.id,
        name=item.name,
        duration_minutes=item.duration_minutes,
        price=item.price,
    )


async def seed_default_catalog(session: AsyncSession) -> int:
    """Insert the default detailing menu when the services table is empty. Returns rows added."""
    count = (await session.execute(select(func.count()).select_from(Service))).scalar_one()
    if count:
        return 0
    for data in DEFAULT_SERVICES:
        session.add(Service(**data))
    for data in DEFAULT_ADD_ONS:
        session.add(AddOn(**data))
    await session.flush()
    added = len(DEFAULT_SERVICES) + len(DEFAULT_ADD_ONS)
    logger.info("Seeded default catalog: %d item(s)", added)
    return added
