"""Async database engine and session management."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from laudreader.config import settings
from laudreader.db.models import Base

logger = logging.getLogger(__name__)

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def create_session_factory(
    database_url: str, echo: bool = False
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an engine/session factory pair for an arbitrary database URL."""
    new_engine = create_async_engine(database_url, echo=echo)
    factory = async_sessionmaker(new_engine, class_=AsyncSession, expire_on_commit=False)
    return new_engine, factory


async def create_tables(target: Optional[AsyncEngine] = None) -> None:
    """Create all tables that don't exist yet."""
    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Create tables on startup."""
    if settings.DATABASE_URL.startswith("sqlite"):
        settings.ensure_directories()
    await create_tables()
    logger.info(f"Database ready: {engine.url.render_as_string(hide_password=True)}")


async def close_db() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
