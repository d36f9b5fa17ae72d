"""
Quota-related schemas.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from services.storage.types import BackendName, ProviderQuota, QuotaLimitsUpdate


class BackendUsageResponse(BaseModel):
    """Current-month usage for one backend."""

    bytes: int
    requests: int
    percent_used: int = Field(..., description="Share of the monthly byte limit, rounded")


class UsageSummaryResponse(BaseModel):
    """Tenant usage across all backends."""

    restaurant_id: str
    total_bytes: int
    total_requests: int
    by_backend: Dict[str, BackendUsageResponse] = Field(default_factory=dict)


class QuotaResponse(BaseModel):
    """One provider quota row."""

    backend: BackendName
    monthly_upload_limit_bytes: int
    monthly_request_limit: int
    max_file_size_bytes: int
    current_month_bytes: int
    current_month_requests: int
    last_reset_at: Optional[datetime] = None
    total_bytes_uploaded: int
    total_uploads: int
    total_requests: int
    is_enabled: bool
    priority: int

    @classmethod
    def from_quota(cls, quota: ProviderQuota) -> "QuotaResponse":
        return cls(
            backend=quota.backend,
            monthly_upload_limit_bytes=quota.monthly_upload_limit_bytes,
            monthly_request_limit=quota.monthly_request_limit,
            max_file_size_bytes=quota.max_file_size_bytes,
            current_month_bytes=quota.current_month_bytes,
            current_month_requests=quota.current_month_requests,
            last_reset_at=quota.last_reset_at,
            total_bytes_uploaded=quota.total_bytes_uploaded,
            total_uploads=quota.total_uploads,
            total_requests=quota.total_requests,
            is_enabled=quota.is_enabled,
            priority=quota.priority,
        )


class QuotaListResponse(BaseModel):
    restaurant_id: str
    quotas: list[QuotaResponse]


class QuotaLimitsRequest(BaseModel):
    """Partial limit update; omitted fields are left unchanged."""

    monthly_upload_limit_bytes: Optional[int] = Field(default=None, ge=0)
    monthly_request_limit: Optional[int] = Field(default=None, ge=0)
    max_file_size_bytes: Optional[int] = Field(default=None, ge=0)
    is_enabled: Optional[bool] = None
    priority: Optional[int] = Field(default=None, ge=0)

    def to_update(self) -> QuotaLimitsUpdate:
        return QuotaLimitsUpdate(**self.model_dump())


class QuotaResetResponse(BaseModel):
    success: bool = True
    rows_reset: int
