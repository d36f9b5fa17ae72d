"""
Unit tests for the LRU memory layer and the metadata cache manager.
"""

from dataclasses import fields
from unittest.mock import patch
from uuid import uuid4

import pytest

from core.exceptions import MetadataStoreError, NotFoundError
from database import session_scope
from database.models import StoredImage
from services.image_cache import ImageCacheManager, LRUCache
from services.storage.types import (
    BackendName,
    ImageCategory,
    ImageMetadata,
    ImageMetadataUpdate,
    UploadStatus,
)


def _metadata(tenant_id: str = "resto-1", url: str = "https://cdn.example.com/a.jpg") -> ImageMetadata:
    return ImageMetadata(
        tenant_id=tenant_id,
        backend=BackendName.CLOUDINARY,
        image_category=ImageCategory.PRODUCT,
        original_url=url,
        cdn_url=url,
        file_name="a.jpg",
        file_size_bytes=2048,
        mime_type="image/jpeg",
        variants={"thumbnail": f"{url}?w=150", "bogus": "x"},
        status=UploadStatus.COMPLETED,
    )


class TestLRUCache:
    def test_get_missing_returns_none(self):
        cache = LRUCache(max_items=2)
        assert cache.get("nope") is None

    def test_set_and_get(self):
        cache = LRUCache(max_items=2)
        cache.set("a", 1)
        assert cache.get("a") == 1
        assert "a" in cache
        assert len(cache) == 1

    def test_evicts_least_recently_used(self):
        cache = LRUCache(max_items=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")  # a is now most recent
        cache.set("c", 3)

        assert "b" not in cache
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert len(cache) == 2

    def test_overwrite_does_not_evict(self):
        cache = LRUCache(max_items=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert len(cache) == 2
        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_expired_entry_is_dropped(self):
        cache = LRUCache(max_items=2, ttl_seconds=10)
        with patch("services.image_cache.time.monotonic", return_value=1000.0):
            cache.set("a", 1)
        with patch("services.image_cache.time.monotonic", return_value=1011.0):
            assert cache.get("a") is None
        assert len(cache) == 0

    def test_delete_and_clear(self):
        cache = LRUCache(max_items=3)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.clear()
        assert len(cache) == 0


class TestImageCacheManager:
    @pytest.fixture
    def cache(self, session_factory):
        return ImageCacheManager(session_factory, max_items=10, ttl_seconds=60)

    async def test_store_assigns_id_and_cleans_variants(self, cache):
        stored = await cache.store(_metadata())

        assert stored.id is not None
        assert stored.created_at is not None
        assert stored.variants == {"thumbnail": "https://cdn.example.com/a.jpg?w=150"}
        assert cache.stats()["in_memory_size"] == 1

    async def test_round_trip_preserves_fields(self, cache, image_selects):
        original = _metadata()
        original.variants = {"thumbnail": "https://cdn.example.com/a.jpg?w=150"}
        original.alt_text = "Spring rolls"
        stored = await cache.store(original)
        image_selects.clear()

        fetched = await cache.get(stored.id)

        generated = ("id", "created_at", "updated_at")
        for field in fields(ImageMetadata):
            if field.name not in generated:
                assert getattr(fetched, field.name) == getattr(original, field.name), field.name
        assert image_selects == []

    async def test_memory_hit_skips_store(self, cache, image_selects):
        stored = await cache.store(_metadata())
        image_selects.clear()

        first = await cache.get(stored.id)
        second = await cache.get(stored.id)

        assert first.id == stored.id
        assert second.id == stored.id
        assert image_selects == []

    async def test_store_hit_populates_memory(self, cache, image_selects):
        stored = await cache.store(_metadata())
        cache.clear()
        image_selects.clear()

        first = await cache.get(stored.id)
        second = await cache.get(stored.id)

        assert first.original_url == stored.original_url
        assert second.original_url == stored.original_url
        assert len(image_selects) == 1

    async def test_miss_returns_none(self, cache):
        assert await cache.get(uuid4()) is None
        assert cache.stats()["in_memory_size"] == 0

    async def test_get_tracks_access(self, cache):
        stored = await cache.store(_metadata())

        await cache.get(stored.id)
        await cache.get(stored.id)
        await cache.wait_for_background_tasks()

        cache.clear()
        reloaded = await cache.get(stored.id)
        await cache.wait_for_background_tasks()

        assert reloaded.access_count == 2
        assert reloaded.last_accessed_at is not None

    async def test_access_tracking_failure_is_isolated(self, cache):
        stored = await cache.store(_metadata())

        with patch(
            "services.image_cache.ImageRepository.record_access",
            side_effect=RuntimeError("db down"),
        ):
            result = await cache.get(stored.id)
            await cache.wait_for_background_tasks()

        assert result.id == stored.id

    async def test_get_fails_soft_on_store_error(self, cache):
        with patch(
            "services.image_cache.ImageRepository.get_by_id",
            side_effect=RuntimeError("connection refused"),
        ):
            assert await cache.get(uuid4()) is None

    async def test_get_by_url_matches_original_and_cdn(self, cache):
        stored = await cache.store(_metadata(url="https://cdn.example.com/logo.png"))
        cache.clear()

        found = await cache.get_by_url("https://cdn.example.com/logo.png")

        assert found.id == stored.id
        assert cache.stats()["in_memory_size"] == 1
        assert await cache.get_by_url("https://cdn.example.com/other.png") is None

    async def test_store_failure_raises(self, cache):
        with patch(
            "services.image_cache.ImageRepository.create",
            side_effect=RuntimeError("disk full"),
        ):
            with pytest.raises(MetadataStoreError):
                await cache.store(_metadata())

    async def test_update_refreshes_memory(self, cache, image_selects):
        stored = await cache.store(_metadata())

        updated = await cache.update(stored.id, ImageMetadataUpdate(alt_text="Margherita pizza"))
        image_selects.clear()
        cached = await cache.get(stored.id)

        assert updated.alt_text == "Margherita pizza"
        assert cached.alt_text == "Margherita pizza"
        assert image_selects == []

    async def test_update_missing_raises_not_found(self, cache):
        with pytest.raises(NotFoundError):
            await cache.update(uuid4(), ImageMetadataUpdate(caption="x"))

    async def test_delete_soft_deletes_and_evicts(self, cache):
        stored = await cache.store(_metadata())

        assert await cache.delete(stored.id) is True
        assert await cache.get(stored.id) is None
        assert await cache.get_by_url(stored.original_url) is None
        assert await cache.delete(stored.id) is False

        async with session_scope(cache._session_factory) as session:
            row = await session.get(StoredImage, stored.id)
            assert row is not None
            assert row.deleted_at is not None

    async def test_update_after_delete_raises_not_found(self, cache):
        stored = await cache.store(_metadata())
        await cache.delete(stored.id)

        with pytest.raises(NotFoundError):
            await cache.update(stored.id, ImageMetadataUpdate(caption="late"))

    async def test_cache_headers(self, session_factory):
        cache = ImageCacheManager(session_factory, browser_cache_max_age=600)

        headers = cache.cache_headers()

        assert headers["Cache-Control"] == "public, max-age=600, immutable"
        assert headers["Vary"] == "Accept"

    async def test_stats(self, cache):
        stats = cache.stats()

        assert stats["max_items"] == 10
        assert stats["ttl_seconds"] == 60
        assert stats["browser_cache_max_age"] == 2592000
        assert stats["cdn_cache_max_age"] == 86400

    async def test_close_drains_and_clears(self, cache):
        stored = await cache.store(_metadata())
        await cache.get(stored.id)

        await cache.close()

        assert cache.stats()["in_memory_size"] == 0
