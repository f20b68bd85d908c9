"""Database configuration and session management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from careflow.config.settings import settings

# Import models so they are attached to Base.metadata before table creation
from careflow.models import Base  # noqa: F401 - ensures metadata is registered

logger = logging.getLogger(__name__)


def _create_engine() -> AsyncEngine:
    """Create an async engine with environment-appropriate pooling."""

    url = settings.database.url
    engine_options: dict[str, Any] = {
        "echo": settings.debug,
        "future": True,
    }

    if url.startswith("sqlite"):
        engine_options["poolclass"] = NullPool
    else:
        engine_options["pool_pre_ping"] = True
        if settings.database.serverless or settings.debug:
            # Disable pooling when working with serverless databases (or in debug).
            engine_options["poolclass"] = NullPool

    return create_async_engine(url, **engine_options)


engine: AsyncEngine = _create_engine()

SessionFactory = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Async context manager that yields a configured SQLAlchemy session."""

    async with SessionFactory() as session:
        yield session


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency-compatible generator yielding a configured session."""

    async with session_scope() as session:
        yield session


async def init_models() -> None:
    """Create database tables if they do not exist."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Ensured database tables for %s.", engine.url.render_as_string(hide_password=True))


async def dispose_engine() -> None:
    """Dispose of the engine and release pooled connections."""

    await engine.dispose()
