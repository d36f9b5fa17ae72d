"""
Quota repository for per-backend usage tracking.
"""

from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import BackendQuota
from services.storage.types import BackendName, QuotaDefaults


class QuotaRepository:
    """Repository for BackendQuota model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, tenant_id: str, backend: BackendName) -> BackendQuota | None:
        """Get the quota row for one (tenant, backend) pair."""
        result = await self.session.execute(
            select(BackendQuota).where(
                BackendQuota.tenant_id == tenant_id,
                BackendQuota.backend == backend.value,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_tenant(self, tenant_id: str) -> list[BackendQuota]:
        """All quota rows for a tenant, highest priority (lowest number) first."""
        result = await self.session.execute(
            select(BackendQuota)
            .where(BackendQuota.tenant_id == tenant_id)
            .order_by(BackendQuota.priority, BackendQuota.backend)
        )
        return list(result.scalars().all())

    async def provision(
        self,
        tenant_id: str,
        defaults: dict[BackendName, QuotaDefaults],
    ) -> list[BackendQuota]:
        """
        Ensure one row per backend exists for ``tenant_id``.

        Existing rows (and any customized limits on them) are left untouched,
        so calling this repeatedly is safe.
        """
        existing = {row.backend for row in await self.list_for_tenant(tenant_id)}

        for backend, limits in defaults.items():
            if backend.value in existing:
                continue
            self.session.add(
                BackendQuota(
                    tenant_id=tenant_id,
                    backend=backend.value,
                    monthly_upload_limit_bytes=limits.monthly_upload_limit_bytes,
                    monthly_request_limit=limits.monthly_request_limit,
                    max_file_size_bytes=limits.max_file_size_bytes,
                    priority=limits.priority,
                )
            )

        await self.session.flush()
        return await self.list_for_tenant(tenant_id)

    async def increment_usage(self, tenant_id: str, backend: BackendName, bytes_used: int) -> int:
        """
        Add one upload of ``bytes_used`` to the counters in a single UPDATE.

        The arithmetic happens in SQL so concurrent increments never lose
        updates. Returns the number of rows touched (0 when the tenant has
        no quota row for this backend).
        """
        result = await self.session.execute(
            update(BackendQuota)
            .where(
                BackendQuota.tenant_id == tenant_id,
                BackendQuota.backend == backend.value,
            )
            .values(
                current_month_bytes=BackendQuota.current_month_bytes + bytes_used,
                current_month_requests=BackendQuota.current_month_requests + 1,
                total_bytes_uploaded=BackendQuota.total_bytes_uploaded + bytes_used,
                total_uploads=BackendQuota.total_uploads + 1,
                total_requests=BackendQuota.total_requests + 1,
            )
        )
        return result.rowcount

    async def reset_monthly(self) -> int:
        """Zero the monthly counters on every row. Returns rows touched."""
        result = await self.session.execute(
            update(BackendQuota).values(
                current_month_bytes=0,
                current_month_requests=0,
                last_reset_at=datetime.now(UTC),
            )
        )
        return result.rowcount

    async def monthly_totals(self) -> tuple[int, int, int]:
        """(rows, current-month bytes, current-month requests) across all tenants."""
        result = await self.session.execute(
            select(
                func.count(),
                func.coalesce(func.sum(BackendQuota.current_month_bytes), 0),
                func.coalesce(func.sum(BackendQuota.current_month_requests), 0),
            ).select_from(BackendQuota)
        )
        rows, total_bytes, total_requests = result.one()
        return int(rows), int(total_bytes), int(total_requests)

    async def update_limits(
        self,
        tenant_id: str,
        backend: BackendName,
        fields: dict,
    ) -> BackendQuota | None:
        """Partially update limits, enabled flag or priority."""
        quota = await self.get(tenant_id, backend)
        if not quota:
            return None

        for key, value in fields.items():
            setattr(quota, key, value)

        await self.session.flush()
        return quota
