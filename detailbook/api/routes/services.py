from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from detailbook.api.deps import get_session
from detailbook.api.schemas.booking import CatalogResponse
from detailbook.services.catalog_service import add_on_to_public, load_catalog, service_to_public

router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=CatalogResponse)
async def list_services(session: AsyncSession = Depends(get_session)) -> CatalogResponse:
    """Bookable services and add-ons with duration (minutes) and price (cents + formatted)."""
    catalog = await load_catalog(session)
    return CatalogResponse(
        services=[service_to_public(s) for s in catalog.services.values()],
        add_ons=[add_on_to_public(a) for a in catalog.add_ons.values()],
    )
