"""
LeafTrack — Application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import select

from leaftrack.api.api import api_router
from leaftrack.core.config import settings
from leaftrack.core.exceptions import register_exception_handlers
from leaftrack.core.rate_limit import limiter
from leaftrack.core.security import get_password_hash
from leaftrack.db.base import Base
from leaftrack.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from leaftrack.models.assignment import Assignment, Sale  # noqa: F401
from leaftrack.models.location import Location  # noqa: F401
from leaftrack.models.product import Product  # noqa: F401
from leaftrack.models.user import Role, User
from leaftrack.services.geocoding import build_geocoder
from leaftrack.services.retention import LocationSweeper
from leaftrack.services.sale_events import SaleEventBroker

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def _seed_first_admin() -> None:
    async with async_session_factory() as session:
        result = await session.execute(
            select(User).where(User.email == settings.FIRST_ADMIN_EMAIL)
        )
        if result.scalar_one_or_none() is None:
            admin = User(
                name=settings.FIRST_ADMIN_NAME,
                email=settings.FIRST_ADMIN_EMAIL,
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                role=Role.ADMIN,
            )
            session.add(admin)
            await session.commit()
            logger.info(
                "Default admin created: %s (password: <redacted>)",
                settings.FIRST_ADMIN_EMAIL,
            )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await _seed_first_admin()

    sweeper = LocationSweeper(async_session_factory)
    if settings.LOCATION_SWEEP_ENABLED:
        sweeper.start()

    logger.info("🍃 LeafTrack v%s started", settings.VERSION)
    yield

    await sweeper.stop()
    await app.state.geocoder.aclose()
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Tea-leaf distribution inventory and field-sales tracking",
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # App-scoped services (one per process)
    application.state.sale_events = SaleEventBroker()
    application.state.geocoder = build_geocoder()
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    application.include_router(api_router, prefix=settings.API_PREFIX)

    return application


app = create_app()
