"""
Image metadata cache.

Two layers: a bounded in-process LRU with TTL, in front of the
``image_metadata`` table. This is the only read/write path for image
metadata, so the memory layer never drifts from the store.
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import MetadataStoreError, NotFoundError
from database import session_scope
from database.repositories import ImageRepository
from services.storage.types import ImageMetadata, ImageMetadataUpdate

logger = logging.getLogger(__name__)


class LRUCache:
    """
    Thread-safe LRU cache with per-entry TTL.

    Expired entries are dropped lazily on ``get``. At capacity, ``set``
    evicts exactly one least-recently-used entry.
    """

    def __init__(self, max_items: int = 100, ttl_seconds: float = 3600):
        self.max_items = max_items
        self.ttl_seconds = ttl_seconds
        self._data: OrderedDict[Any, tuple[Any, float]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Any) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None

            value, stored_at = entry
            if time.monotonic() - stored_at > self.ttl_seconds:
                del self._data[key]
                return None

            self._data.move_to_end(key)
            return value

    def set(self, key: Any, value: Any) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
            elif len(self._data) >= self.max_items:
                self._data.popitem(last=False)
            self._data[key] = (value, time.monotonic())

    def delete(self, key: Any) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: Any) -> bool:
        with self._lock:
            return key in self._data


class ImageCacheManager:
    """
    Read-through metadata cache with access tracking.

    Reads fail soft (``None`` on store errors); writes raise
    ``MetadataStoreError``. Each successful ``get`` schedules a background
    task that bumps the access counter; those tasks are tracked so
    shutdown (and tests) can wait for them.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_items: int = 100,
        ttl_seconds: float = 3600,
        browser_cache_max_age: int = 2592000,
        cdn_cache_max_age: int = 86400,
    ):
        self._session_factory = session_factory
        self._memory = LRUCache(max_items=max_items, ttl_seconds=ttl_seconds)
        self.browser_cache_max_age = browser_cache_max_age
        self.cdn_cache_max_age = cdn_cache_max_age
        self._background_tasks: set[asyncio.Task] = set()

    # ============ Reads ============

    async def get(self, image_id: UUID) -> ImageMetadata | None:
        """Memory, then store, then miss."""
        cached = self._memory.get(image_id)
        if cached is not None:
            self._track_access(image_id)
            return cached

        try:
            async with session_scope(self._session_factory) as session:
                row = await ImageRepository(session).get_by_id(image_id)
                metadata = row.to_domain() if row else None
        except Exception as e:
            logger.error(f"Failed to load image metadata {image_id}: {e}")
            return None

        if metadata is None:
            return None

        self._memory.set(image_id, metadata)
        self._track_access(image_id)
        return metadata

    async def get_by_url(self, url: str) -> ImageMetadata | None:
        """Find a live image by its original or CDN URL."""
        try:
            async with session_scope(self._session_factory) as session:
                row = await ImageRepository(session).get_by_url(url)
                metadata = row.to_domain() if row else None
        except Exception as e:
            logger.error(f"Failed to look up image by URL: {e}")
            return None

        if metadata is not None:
            self._memory.set(metadata.id, metadata)
        return metadata

    # ============ Writes ============

    async def store(self, metadata: ImageMetadata) -> ImageMetadata:
        """Insert new metadata and cache it."""
        try:
            async with session_scope(self._session_factory) as session:
                row = await ImageRepository(session).create(metadata)
                stored = row.to_domain()
        except Exception as e:
            logger.error(f"Failed to store image metadata: {e}")
            raise MetadataStoreError(f"Failed to store image metadata: {e}") from e

        self._memory.set(stored.id, stored)
        return stored

    async def update(self, image_id: UUID, update: ImageMetadataUpdate) -> ImageMetadata:
        """Apply a partial update and refresh the memory entry."""
        try:
            async with session_scope(self._session_factory) as session:
                row = await ImageRepository(session).update_fields(
                    image_id, update.changed_fields()
                )
                updated = row.to_domain() if row else None
        except Exception as e:
            logger.error(f"Failed to update image metadata {image_id}: {e}")
            raise MetadataStoreError(f"Failed to update image metadata: {e}") from e

        if updated is None:
            self._memory.delete(image_id)
            raise NotFoundError(f"Image {image_id} not found")

        self._memory.set(image_id, updated)
        return updated

    async def delete(self, image_id: UUID) -> bool:
        """Soft-delete and evict. False if the row is missing or the store fails."""
        self._memory.delete(image_id)
        try:
            async with session_scope(self._session_factory) as session:
                return await ImageRepository(session).soft_delete(image_id)
        except Exception as e:
            logger.error(f"Failed to delete image metadata {image_id}: {e}")
            return False

    # ============ Access tracking ============

    def _track_access(self, image_id: UUID) -> None:
        task = asyncio.create_task(self._record_access(image_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _record_access(self, image_id: UUID) -> None:
        try:
            async with session_scope(self._session_factory) as session:
                await ImageRepository(session).record_access(image_id)
        except Exception as e:
            logger.debug(f"Access tracking failed for {image_id}: {e}")

    async def wait_for_background_tasks(self) -> None:
        """Wait until every scheduled access-tracking task has finished."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.wait_for_background_tasks()
        self._memory.clear()

    # ============ HTTP caching / admin ============

    def cache_headers(self) -> dict[str, str]:
        return {
            "Cache-Control": f"public, max-age={self.browser_cache_max_age}, immutable",
            "Vary": "Accept",
        }

    def clear(self) -> None:
        self._memory.clear()

    def stats(self) -> dict[str, int | float]:
        return {
            "in_memory_size": len(self._memory),
            "max_items": self._memory.max_items,
            "ttl_seconds": self._memory.ttl_seconds,
            "browser_cache_max_age": self.browser_cache_max_age,
            "cdn_cache_max_age": self.cdn_cache_max_age,
        }
