"""
Storage context: every long-lived service object, built once at startup.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from core.config import Settings
from database import build_engine, build_session_factory
from services.image_cache import ImageCacheManager
from services.image_router import ImageRouter
from services.image_storage import ImageStorageService
from services.quota_manager import QuotaManager
from services.storage import build_adapters
from services.storage.base import StorageAdapter
from services.storage.types import BackendName

logger = logging.getLogger(__name__)


@dataclass
class StorageContext:
    """Wired service graph. Owned by the application lifespan."""

    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    adapters: dict[BackendName, StorageAdapter]
    quota_manager: QuotaManager
    cache: ImageCacheManager
    router: ImageRouter
    storage: ImageStorageService
    engine: AsyncEngine | None = None

    async def close(self) -> None:
        """Drain background work and release HTTP clients and DB connections."""
        await self.cache.close()
        for adapter in self.adapters.values():
            await adapter.close()
        if self.engine is not None:
            logger.info("Closing database connection...")
            await self.engine.dispose()
            logger.info("Database connection closed")


def create_storage_context(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    adapters: dict[BackendName, StorageAdapter] | None = None,
) -> StorageContext:
    """
    Build the service graph.

    Args:
        settings: Application settings
        session_factory: Use an existing session factory instead of
            creating an engine from ``settings.database_url``
        adapters: Use these adapters instead of building them from settings

    Raises:
        RuntimeError: If no session factory is given and no database URL is configured
    """
    engine = None
    if session_factory is None:
        engine = build_engine(settings)
        session_factory = build_session_factory(engine)

    if adapters is None:
        adapters = build_adapters(settings)

    quota_manager = QuotaManager(
        session_factory,
        cache_ttl_seconds=settings.quota_cache_ttl_seconds,
    )
    cache = ImageCacheManager(
        session_factory,
        max_items=settings.cache_max_items,
        ttl_seconds=settings.cache_ttl_seconds,
        browser_cache_max_age=settings.browser_cache_max_age,
        cdn_cache_max_age=settings.cdn_cache_max_age,
    )
    router = ImageRouter(
        adapters,
        quota_manager,
        small_file_threshold=settings.small_file_threshold_bytes,
    )
    storage = ImageStorageService(
        adapters=adapters,
        router=router,
        cache=cache,
        quota_manager=quota_manager,
        session_factory=session_factory,
        adapter_timeout_seconds=settings.adapter_timeout_seconds,
    )

    configured = [name.value for name, adapter in adapters.items() if adapter.is_configured]
    logger.info(f"Storage context ready (configured backends: {configured or 'none'})")

    return StorageContext(
        settings=settings,
        session_factory=session_factory,
        adapters=adapters,
        quota_manager=quota_manager,
        cache=cache,
        router=router,
        storage=storage,
        engine=engine,
    )
