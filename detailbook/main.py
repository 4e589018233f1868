import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from detailbook.api.routes import auth, availability, bookings, services
from detailbook.core.config import _ENV_FILE, settings
from detailbook.core.db import async_session_maker, init_db
from detailbook.core.errors import StoreUnavailableError
from detailbook.services.calendar_policy import policy_from_settings
from detailbook.services.catalog_service import seed_default_catalog

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


async def _prepare_database() -> None:
    """Development shortcuts: create tables and seed the default catalog."""
    if settings.create_tables_on_startup:
        await init_db()
        logger.info("Database tables ensured (create_all)")
    if settings.seed_catalog_on_startup:
        async with async_session_maker() as session:
            try:
                await seed_default_catalog(session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    # Fail fast on a bad calendar configuration
    policy = policy_from_settings(settings)
    logger.info(
        "Calendar: tz=%s granularity=%dm buffer=%dm lead=%dm horizon=%dd open days=%s",
        policy.time_zone,
        policy.slot_granularity_minutes,
        policy.buffer_minutes,
        policy.min_lead_time_minutes,
        policy.booking_horizon_days,
        sorted(policy.weekly_hours),
    )
    if not settings.admin_enabled:
        logger.warning("Admin login: NOT configured. Set ADMIN_EMAIL and ADMIN_PASSWORD_HASH in %s", _ENV_FILE)
    if not settings.email_enabled:
        logger.warning("Email: SMTP not configured, confirmation emails will be skipped")
    await _prepare_database()
    yield


app = FastAPI(
    title="Detailing Booking API",
    description="Backend for the detailing booking site: services, availability, bookings",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(services.router, prefix="/api/v1")
app.include_router(availability.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": exc.to_rejection().as_detail()},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return the error as JSON; include CORS so 500 responses are not blocked by browser."""
    headers = _cors_headers(request.headers.get("origin"))
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}" if settings.env != "production" else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
