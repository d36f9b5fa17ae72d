"""
Database module for the Restaurant Image Gateway.

Provides async SQLAlchemy engine construction and session handling.
Nothing here is global: the application builds one engine and one
session factory at startup and hands them to the services that need them.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import Settings

from .models import Base

logger = logging.getLogger(__name__)


def build_engine(settings: Settings, database_url: str | None = None) -> AsyncEngine:
    """
    Create the async engine for the metadata store.

    Args:
        settings: Application settings (pool sizes, echo flag)
        database_url: Overrides ``settings.database_url`` when given

    Raises:
        RuntimeError: If no database URL is configured
    """
    url = database_url or settings.database_url
    if not url:
        raise RuntimeError("DATABASE_URL not configured")

    logger.info("Initializing database connection...")

    kwargs = {
        "pool_pre_ping": True,
        "echo": settings.debug and settings.db_echo,
    }
    # SQLite (used in tests and local runs) has no connection pool sizing
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow

    return create_async_engine(url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to ``engine``."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session that commits on success and rolls back on error.

    Usage:
        async with session_scope(factory) as session:
            repo = ImageRepository(session)
            ...
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables directly (local development and tests; production uses Alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_database(session_factory: async_sessionmaker[AsyncSession]) -> bool:
    """Run a trivial query to confirm the metadata store is reachable."""
    from sqlalchemy import text

    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False


# Export commonly used items
__all__ = [
    "build_engine",
    "build_session_factory",
    "session_scope",
    "create_tables",
    "check_database",
]
