"""
Wayfarer — Application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `models/`, `db/` and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select

from app import models  # noqa: F401  (registers every table on Base.metadata)
from app.api.v1.api import api_router
from app.core.config import settings
from app.core.exceptions import register_exception_handlers
from app.core.limiter import limiter
from app.core.security import hash_password
from app.db.base import Base
from app.db.session import async_session_factory, engine
from app.models.user import Role, User

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Startup tasks ───────────────────────────────────────────────────
async def _seed_first_admin() -> None:
    """Create the configured admin account; signup never grants roles."""
    async with async_session_factory() as session:
        existing = await session.scalar(
            select(User.id).where(User.email == settings.FIRST_ADMIN_EMAIL)
        )
        if existing is not None:
            return
        session.add(
            User(
                name="System Administrator",
                email=settings.FIRST_ADMIN_EMAIL,
                password=await hash_password(settings.FIRST_ADMIN_PASSWORD),
                role=Role.ADMIN,
            )
        )
        await session.commit()
    logger.info("Default admin created: %s (password: <redacted>)", settings.FIRST_ADMIN_EMAIL)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await _seed_first_admin()

    logger.info("%s v%s started (%s)", settings.PROJECT_NAME, settings.VERSION, settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Tour booking REST API",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # slowapi looks the limiter up on app.state
    application.state.limiter = limiter

    # Uniform error envelope; stack traces only in development
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
