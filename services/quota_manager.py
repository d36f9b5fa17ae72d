"""
Per-tenant, per-backend quota management.

Quotas are soft operational limits stored in the ``provider_quotas`` table.
Admission checks read through a short-lived in-process snapshot cache;
usage increments are single atomic UPDATE statements so concurrent uploads
never lose counts. The check-then-increment window is not locked: two
concurrent uploads may both be admitted near a limit.
"""

import logging
import math
import threading
import time

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import session_scope
from database.repositories import QuotaRepository
from services.storage.types import (
    AdmissionResult,
    BackendName,
    BackendUsage,
    ProviderQuota,
    QuotaDefaults,
    QuotaLimitsUpdate,
    UsageSummary,
)

logger = logging.getLogger(__name__)

GB = 1024 * 1024 * 1024
MB = 1024 * 1024

# Limits applied when a tenant is provisioned
DEFAULT_QUOTAS: dict[BackendName, QuotaDefaults] = {
    BackendName.CLOUDINARY: QuotaDefaults(
        monthly_upload_limit_bytes=10 * GB,
        monthly_request_limit=50000,
        max_file_size_bytes=10 * MB,
        priority=1,
    ),
    BackendName.FIREBASE: QuotaDefaults(
        monthly_upload_limit_bytes=5 * GB,
        monthly_request_limit=25000,
        max_file_size_bytes=10 * MB,
        priority=2,
    ),
    BackendName.SUPABASE: QuotaDefaults(
        monthly_upload_limit_bytes=1 * GB,
        monthly_request_limit=10000,
        max_file_size_bytes=5 * MB,
        priority=3,
    ),
    BackendName.GOOGLE_PHOTOS: QuotaDefaults(
        monthly_upload_limit_bytes=15 * GB,
        monthly_request_limit=10000,
        max_file_size_bytes=75 * MB,
        priority=4,
    ),
}

_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def format_bytes(num_bytes: int) -> str:
    """Human-readable size with binary units, e.g. ``1.5 MB``."""
    if num_bytes <= 0:
        return "0 Bytes"
    exponent = min(int(math.floor(math.log(num_bytes, 1024))), len(_UNITS) - 1)
    value = round(num_bytes / (1024**exponent), 2)
    return f"{value:g} {_UNITS[exponent]}"


class QuotaManager:
    """
    Admission control and usage accounting for storage backends.

    Args:
        session_factory: Async session factory for the metadata store
        cache_ttl_seconds: Lifetime of cached quota snapshots
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache_ttl_seconds: float = 60,
    ):
        self._session_factory = session_factory
        self._cache_ttl = cache_ttl_seconds
        self._cache: dict[tuple[str, BackendName], tuple[ProviderQuota, float]] = {}
        self._lock = threading.Lock()

    # ============ Snapshot cache ============

    def _cache_get(self, tenant_id: str, backend: BackendName) -> ProviderQuota | None:
        with self._lock:
            entry = self._cache.get((tenant_id, backend))
            if entry is None:
                return None
            quota, stored_at = entry
            if time.monotonic() - stored_at > self._cache_ttl:
                del self._cache[(tenant_id, backend)]
                return None
            return quota

    def _cache_set(self, quota: ProviderQuota) -> None:
        with self._lock:
            self._cache[(quota.tenant_id, quota.backend)] = (quota, time.monotonic())

    def _invalidate(self, tenant_id: str | None = None, backend: BackendName | None = None) -> None:
        with self._lock:
            if tenant_id is None:
                self._cache.clear()
            elif backend is not None:
                self._cache.pop((tenant_id, backend), None)
            else:
                for key in [k for k in self._cache if k[0] == tenant_id]:
                    del self._cache[key]

    # ============ Reads ============

    async def get_quota(
        self,
        tenant_id: str,
        backend: BackendName,
        use_cache: bool = True,
    ) -> ProviderQuota | None:
        """Get the quota row for (tenant, backend); ``None`` when not provisioned."""
        if use_cache:
            cached = self._cache_get(tenant_id, backend)
            if cached is not None:
                return cached

        async with session_scope(self._session_factory) as session:
            row = await QuotaRepository(session).get(tenant_id, backend)
            quota = row.to_domain() if row else None

        if quota is not None:
            self._cache_set(quota)
        return quota

    async def get_all_quotas(self, tenant_id: str) -> list[ProviderQuota]:
        """All of a tenant's quota rows ordered by priority."""
        async with session_scope(self._session_factory) as session:
            rows = await QuotaRepository(session).list_for_tenant(tenant_id)
            return [row.to_domain() for row in rows]

    async def can_upload(
        self,
        tenant_id: str,
        backend: BackendName,
        file_size_bytes: int,
    ) -> AdmissionResult:
        """
        Decide whether an upload of ``file_size_bytes`` may go to ``backend``.

        Checks run in order: enabled flag, per-file limit, monthly bytes,
        monthly requests. Tenants without a quota row are admitted, and so
        is everything when the metadata store cannot be read.
        """
        try:
            quota = await self.get_quota(tenant_id, backend)
        except Exception as e:
            logger.error(f"Quota lookup failed for {tenant_id}/{backend}, allowing upload: {e}")
            return AdmissionResult(allowed=True)

        if quota is None:
            return AdmissionResult(allowed=True)

        if not quota.is_enabled:
            return AdmissionResult(allowed=False, reason="Backend is disabled")

        if file_size_bytes > quota.max_file_size_bytes:
            return AdmissionResult(
                allowed=False,
                reason=(
                    f"File size {format_bytes(file_size_bytes)} exceeds limit of "
                    f"{format_bytes(quota.max_file_size_bytes)}"
                ),
            )

        if quota.current_month_bytes + file_size_bytes > quota.monthly_upload_limit_bytes:
            return AdmissionResult(
                allowed=False,
                reason=(
                    f"Monthly upload limit of "
                    f"{format_bytes(quota.monthly_upload_limit_bytes)} would be exceeded"
                ),
            )

        if quota.current_month_requests >= quota.monthly_request_limit:
            return AdmissionResult(
                allowed=False,
                reason=f"Monthly request limit of {quota.monthly_request_limit} requests reached",
            )

        return AdmissionResult(allowed=True)

    async def usage_summary(self, tenant_id: str) -> UsageSummary:
        """Current-month usage per backend plus totals."""
        summary = UsageSummary()
        for quota in await self.get_all_quotas(tenant_id):
            limit = quota.monthly_upload_limit_bytes
            percent = round(quota.current_month_bytes / limit * 100) if limit > 0 else 0
            summary.by_backend[quota.backend.value] = BackendUsage(
                bytes=quota.current_month_bytes,
                requests=quota.current_month_requests,
                percent_used=percent,
            )
            summary.total_bytes += quota.current_month_bytes
            summary.total_requests += quota.current_month_requests
        return summary

    # ============ Writes ============

    async def increment_usage(self, tenant_id: str, backend: BackendName, file_size_bytes: int) -> None:
        """Record one upload against the tenant's quota for ``backend``."""
        async with session_scope(self._session_factory) as session:
            touched = await QuotaRepository(session).increment_usage(
                tenant_id, backend, file_size_bytes
            )
        self._invalidate(tenant_id, backend)

        if touched == 0:
            logger.debug(f"No quota row for {tenant_id}/{backend}; usage not recorded")

    async def reset_monthly_quotas(self) -> int:
        """Zero monthly counters for every tenant. Returns rows reset."""
        async with session_scope(self._session_factory) as session:
            count = await QuotaRepository(session).reset_monthly()
        self._invalidate()
        logger.info(f"Monthly quotas reset for {count} rows")
        return count

    async def provision_tenant(self, tenant_id: str) -> list[ProviderQuota]:
        """Create default quota rows for every backend the tenant is missing."""
        async with session_scope(self._session_factory) as session:
            rows = await QuotaRepository(session).provision(tenant_id, DEFAULT_QUOTAS)
            quotas = [row.to_domain() for row in rows]
        self._invalidate(tenant_id)
        logger.info(f"Provisioned quotas for tenant {tenant_id}")
        return quotas

    async def update_limits(
        self,
        tenant_id: str,
        backend: BackendName,
        update: QuotaLimitsUpdate,
    ) -> ProviderQuota | None:
        """Partially update limits for one backend; ``None`` if the row does not exist."""
        fields = update.changed_fields()
        async with session_scope(self._session_factory) as session:
            row = await QuotaRepository(session).update_limits(tenant_id, backend, fields)
            quota = row.to_domain() if row else None
        self._invalidate(tenant_id, backend)
        return quota
