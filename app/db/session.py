"""
Async SQLAlchemy engine & session factory.

PostgreSQL (asyncpg) in every deployed environment; the test suite swaps in
its own in-memory SQLite engine.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {
        "echo": settings.LOG_LEVEL.upper() == "DEBUG",
        "pool_pre_ping": True,
    }
    if url.startswith("postgresql"):
        options.update(pool_size=20, max_overflow=10, pool_recycle=300)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Objects stay readable after commit; lazy loads are never relied upon.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
