"""
Database Connection Module
Handles the document mirror connection using SQLAlchemy async engine.

The engine is created lazily so that the in-memory deployment never needs a
database driver or a reachable server.
"""

import asyncio
import logging
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from snappy_serve.core.config import get_settings

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


@lru_cache()
def get_engine() -> AsyncEngine:
    """Create the async engine on first use."""
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
    )


@lru_cache()
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory - creates new database sessions."""
    return async_sessionmaker(
        bind=get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,  # Objects remain accessible after commit
    )


async def init_db(timeout: float) -> None:
    """
    Create all tables in database.

    Called once at application startup when the mirror is enabled.

    Raises:
        asyncio.TimeoutError: Database did not answer within ``timeout``
    """
    # Register the mirror table on Base.metadata
    from snappy_serve import models  # noqa: F401

    async def _create_all() -> None:
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    await asyncio.wait_for(_create_all(), timeout=timeout)
    logger.info("Mirror tables ready")


async def dispose_engine() -> None:
    """Close pooled connections, if an engine was ever created."""
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
    get_session_maker.cache_clear()
    get_engine.cache_clear()
