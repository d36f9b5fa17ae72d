"""
BackendQuota model: monthly limits and usage per (tenant, backend).
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from services.storage.types import BackendName, ProviderQuota

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class BackendQuota(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    Per-tenant quota row for one storage backend.

    Monthly counters are zeroed by the reset job; lifetime totals only grow.
    """

    __tablename__ = "provider_quotas"
    __table_args__ = (
        UniqueConstraint("tenant_id", "backend", name="uq_provider_quotas_tenant_backend"),
    )

    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    backend: Mapped[str] = mapped_column(String(50), nullable=False)

    # Limits
    monthly_upload_limit_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    monthly_request_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    max_file_size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Current month
    current_month_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    current_month_requests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reset_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Lifetime
    total_bytes_uploaded: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_uploads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_requests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Routing
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=100, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<BackendQuota(tenant={self.tenant_id}, backend={self.backend}, "
            f"bytes={self.current_month_bytes}/{self.monthly_upload_limit_bytes})>"
        )

    def to_domain(self) -> ProviderQuota:
        return ProviderQuota(
            id=self.id,
            tenant_id=self.tenant_id,
            backend=BackendName(self.backend),
            monthly_upload_limit_bytes=self.monthly_upload_limit_bytes,
            monthly_request_limit=self.monthly_request_limit,
            max_file_size_bytes=self.max_file_size_bytes,
            current_month_bytes=self.current_month_bytes or 0,
            current_month_requests=self.current_month_requests or 0,
            last_reset_at=self.last_reset_at,
            total_bytes_uploaded=self.total_bytes_uploaded or 0,
            total_uploads=self.total_uploads or 0,
            total_requests=self.total_requests or 0,
            is_enabled=self.is_enabled,
            priority=self.priority,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


Index("idx_provider_quotas_tenant", BackendQuota.tenant_id)
Index("idx_provider_quotas_backend", BackendQuota.backend)
