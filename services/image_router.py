"""
Backend router for image uploads.

Picks the storage backend for an upload from the image category and size,
then checks the candidate's health and the tenant's quota, walking a
static fallback chain when the candidate is rejected.
"""

import logging

from services.quota_manager import QuotaManager
from services.storage.base import StorageAdapter
from services.storage.types import BackendName, ImageCategory, RoutingDecision

logger = logging.getLogger(__name__)


# Category -> default backend
DEFAULT_ROUTING: dict[ImageCategory, BackendName] = {
    ImageCategory.PRODUCT: BackendName.CLOUDINARY,
    ImageCategory.PROFILE: BackendName.FIREBASE,
    ImageCategory.LOGO: BackendName.SUPABASE,
    ImageCategory.ICON: BackendName.SUPABASE,
    ImageCategory.USER_PHOTO: BackendName.GOOGLE_PHOTOS,
    ImageCategory.MENU_SCAN: BackendName.CLOUDINARY,
}

# Backend -> ordered fallbacks
FALLBACK_CHAIN: dict[BackendName, list[BackendName]] = {
    BackendName.CLOUDINARY: [BackendName.FIREBASE, BackendName.SUPABASE],
    BackendName.FIREBASE: [BackendName.SUPABASE, BackendName.CLOUDINARY],
    BackendName.SUPABASE: [BackendName.FIREBASE, BackendName.CLOUDINARY],
    BackendName.GOOGLE_PHOTOS: [BackendName.FIREBASE, BackendName.SUPABASE],
}

# Files smaller than this go to the first-party store
SMALL_FILE_THRESHOLD = 100 * 1024

LAST_RESORT = BackendName.SUPABASE


class ImageRouter:
    """
    Deterministic backend selection.

    Example:
        router = ImageRouter(adapters, quota_manager)
        decision = await router.decide(ImageCategory.PRODUCT, 250_000, "tenant-1")
        for backend in decision.attempt_order:
            ...
    """

    def __init__(
        self,
        adapters: dict[BackendName, StorageAdapter],
        quota_manager: QuotaManager,
        small_file_threshold: int = SMALL_FILE_THRESHOLD,
    ):
        self._adapters = adapters
        self._quota = quota_manager
        self._small_file_threshold = small_file_threshold

    async def _check(self, backend: BackendName, tenant_id: str, file_size_bytes: int) -> str | None:
        """
        Return ``None`` when the backend can take the upload, otherwise
        a short description of why not.
        """
        adapter = self._adapters.get(backend)
        if adapter is None:
            return "not configured"

        try:
            available = await adapter.is_available()
        except Exception as e:
            logger.warning(f"[Router] Health probe for {backend} raised: {e}")
            available = False
        if not available:
            return "unavailable"

        admission = await self._quota.can_upload(tenant_id, backend, file_size_bytes)
        if not admission.allowed:
            return f"at quota ({admission.reason})" if admission.reason else "at quota"

        return None

    async def decide(
        self,
        image_category: ImageCategory,
        file_size_bytes: int,
        tenant_id: str,
    ) -> RoutingDecision:
        """
        Choose a backend and its fallback order for one upload.

        Always returns a decision; when every candidate is rejected the
        first-party store is returned with no fallbacks.
        """
        candidate = DEFAULT_ROUTING[image_category]
        reason = f"Default backend for {image_category.value}"

        if file_size_bytes < self._small_file_threshold:
            candidate = BackendName.SUPABASE
            reason = "Small file routed to supabase"

        rejection = await self._check(candidate, tenant_id, file_size_bytes)
        if rejection is None:
            return RoutingDecision(
                backend=candidate,
                fallback_backends=list(FALLBACK_CHAIN[candidate]),
                reason=reason,
            )

        logger.info(f"[Router] {candidate} rejected for {tenant_id}: {rejection}")

        for fallback in FALLBACK_CHAIN[candidate]:
            fallback_rejection = await self._check(fallback, tenant_id, file_size_bytes)
            if fallback_rejection is None:
                return RoutingDecision(
                    backend=fallback,
                    fallback_backends=[b for b in FALLBACK_CHAIN[fallback] if b != candidate],
                    reason=f"Fallback: {candidate} {rejection}",
                )
            logger.info(f"[Router] {fallback} rejected for {tenant_id}: {fallback_rejection}")

        logger.warning(f"[Router] No backend passed checks for {tenant_id}, using {LAST_RESORT}")
        return RoutingDecision(
            backend=LAST_RESORT,
            fallback_backends=[],
            reason="Last resort fallback",
        )
