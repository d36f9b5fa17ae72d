"""
Image storage service.

Orchestrates an upload across backends: ask the router for an attempt
order, try each adapter in turn, record metadata through the cache
manager, then charge the tenant's quota. Also serves metadata reads,
optimized URLs, deletes and tenant listings.
"""

import asyncio
import logging
import time
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import MetadataStoreError
from database import session_scope
from database.repositories import ImageRepository
from services.image_cache import ImageCacheManager
from services.image_router import ImageRouter
from services.quota_manager import QuotaManager
from services.storage.base import StorageAdapter
from services.storage.types import (
    VARIANT_WIDTHS,
    BackendName,
    ImageCategory,
    ImageMetadata,
    TransformOptions,
    UploadedBlob,
    UploadOptions,
    UploadRequest,
    UploadResult,
    UploadStatus,
    UsageSummary,
    VariantTier,
)

logger = logging.getLogger(__name__)


class ImageStorageService:
    """
    Entry point for image operations.

    Only the final outcome of an upload is reported to the caller;
    individual backend failures are logged and the next backend is tried.
    """

    def __init__(
        self,
        adapters: dict[BackendName, StorageAdapter],
        router: ImageRouter,
        cache: ImageCacheManager,
        quota_manager: QuotaManager,
        session_factory: async_sessionmaker[AsyncSession],
        adapter_timeout_seconds: float = 30.0,
    ):
        self._adapters = adapters
        self._router = router
        self._cache = cache
        self._quota = quota_manager
        self._session_factory = session_factory
        self._adapter_timeout = adapter_timeout_seconds

    # ============ Upload ============

    async def upload(self, request: UploadRequest) -> UploadResult:
        """
        Upload an image to the best available backend.

        Args:
            request: Tenant, category, bytes and optional descriptive fields

        Returns:
            UploadResult; ``success`` is False when every backend failed or
            the metadata could not be recorded.
        """
        start_time = time.monotonic()
        file_size = len(request.data)

        decision = await self._router.decide(request.image_category, file_size, request.tenant_id)
        logger.info(
            f"Uploading {request.file_name} ({file_size} bytes) for {request.tenant_id}: "
            f"{decision.backend} ({decision.reason})"
        )

        options = UploadOptions(
            folder=f"{request.tenant_id}/{request.image_category.value}s",
            optimize=request.optimize,
            generate_variants=request.generate_variants,
            content_type=request.content_type,
        )

        last_error = None
        for backend in decision.attempt_order:
            adapter = self._adapters.get(backend)
            if adapter is None:
                last_error = f"No adapter registered for {backend}"
                continue

            try:
                blob = await asyncio.wait_for(
                    adapter.upload(request.data, request.file_name, options),
                    timeout=self._adapter_timeout,
                )
            except asyncio.TimeoutError:
                last_error = f"{backend} upload timed out after {self._adapter_timeout}s"
                logger.warning(last_error)
                continue
            except Exception as e:
                last_error = str(e)
                logger.warning(f"Upload to {backend} failed: {e}")
                continue

            return await self._record_upload(request, backend, adapter, blob, start_time)

        logger.error(f"All backends failed for {request.tenant_id}: {last_error}")
        return UploadResult(
            success=False,
            error=last_error or "No storage backend available",
            original_size_bytes=file_size,
            duration_ms=self._elapsed_ms(start_time),
        )

    async def _record_upload(
        self,
        request: UploadRequest,
        backend: BackendName,
        adapter: StorageAdapter,
        blob: UploadedBlob,
        start_time: float,
    ) -> UploadResult:
        file_size = len(request.data)
        metadata = ImageMetadata(
            tenant_id=request.tenant_id,
            backend=backend,
            image_category=request.image_category,
            original_url=blob.url,
            cdn_url=blob.url,
            thumbnail_url=blob.variants.get(VariantTier.THUMBNAIL.value),
            backend_object_id=blob.backend_object_id,
            file_name=request.file_name,
            file_size_bytes=file_size,
            mime_type=request.content_type,
            width=blob.width,
            height=blob.height,
            variants=blob.variants,
            alt_text=request.alt_text,
            caption=request.caption,
            cache_control=f"public, max-age={self._cache.browser_cache_max_age}",
            status=UploadStatus.COMPLETED,
        )

        try:
            stored = await self._cache.store(metadata)
        except MetadataStoreError as e:
            # The blob landed but nothing points at it; remove it
            logger.error(f"Metadata write failed after upload to {backend}, removing blob")
            await self._delete_blob(adapter, blob.backend_object_id)
            return UploadResult(
                success=False,
                error=e.message,
                backend=backend,
                original_size_bytes=file_size,
                duration_ms=self._elapsed_ms(start_time),
            )

        try:
            await self._quota.increment_usage(request.tenant_id, backend, file_size)
        except Exception as e:
            logger.error(f"Failed to record quota usage for {request.tenant_id}/{backend}: {e}")

        logger.info(f"Stored image {stored.id} on {backend}")
        return UploadResult(
            success=True,
            image=stored,
            backend=backend,
            original_size_bytes=file_size,
            duration_ms=self._elapsed_ms(start_time),
        )

    # ============ Reads ============

    async def get_image(self, image_id: UUID) -> ImageMetadata | None:
        return await self._cache.get(image_id)

    async def get_image_by_url(self, url: str) -> ImageMetadata | None:
        return await self._cache.get_by_url(url)

    def get_optimized_url(
        self,
        metadata: ImageMetadata,
        options: TransformOptions | None = None,
    ) -> str:
        """
        Best URL for the requested rendering.

        A stored variant whose tier covers the requested width wins;
        otherwise the owning backend builds a transform URL; with no
        options at all the CDN (or original) URL is returned.
        """
        options = options or TransformOptions()

        if options.width:
            for tier, bound in VARIANT_WIDTHS.items():
                if options.width <= bound and metadata.variants.get(tier.value):
                    return metadata.variants[tier.value]

        if not options.is_empty:
            adapter = self._adapters.get(metadata.backend)
            if adapter is not None:
                return adapter.get_optimized_url(metadata.original_url, options)

        return metadata.cdn_url or metadata.original_url

    async def list_for_tenant(
        self,
        tenant_id: str,
        image_category: ImageCategory | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ImageMetadata]:
        """A tenant's live images, newest first."""
        async with session_scope(self._session_factory) as session:
            rows = await ImageRepository(session).list_by_tenant(
                tenant_id, image_category=image_category, limit=limit, offset=offset
            )
            return [row.to_domain() for row in rows]

    async def count_for_tenant(
        self,
        tenant_id: str,
        image_category: ImageCategory | None = None,
    ) -> int:
        async with session_scope(self._session_factory) as session:
            return await ImageRepository(session).count_by_tenant(
                tenant_id, image_category=image_category
            )

    async def usage_summary(self, tenant_id: str) -> UsageSummary:
        return await self._quota.usage_summary(tenant_id)

    def cache_headers(self) -> dict[str, str]:
        return self._cache.cache_headers()

    # ============ Delete ============

    async def delete_image(self, image_id: UUID) -> bool:
        """
        Remove the blob (best effort) and soft-delete the metadata.

        Returns False when the image does not exist.
        """
        metadata = await self._cache.get(image_id)
        if metadata is None:
            return False

        adapter = self._adapters.get(metadata.backend)
        if adapter is not None and metadata.backend_object_id:
            await self._delete_blob(adapter, metadata.backend_object_id)

        return await self._cache.delete(image_id)

    async def _delete_blob(self, adapter: StorageAdapter, backend_object_id: str) -> None:
        try:
            deleted = await adapter.delete(backend_object_id)
            if not deleted:
                logger.warning(f"{adapter.name} did not confirm deletion of {backend_object_id}")
        except Exception as e:
            logger.error(f"Failed to delete {backend_object_id} from {adapter.name}: {e}")

    # ============ Health ============

    async def backend_health(self) -> dict[BackendName, bool]:
        """Availability of every registered backend."""
        names = list(self._adapters)
        results = await asyncio.gather(*(self._adapters[name].is_available() for name in names))
        return dict(zip(names, results))

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)
