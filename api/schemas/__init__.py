"""
Pydantic schemas for API request/response models.
"""

from .common import (
    ErrorDetail,
    ErrorResponse,
    PaginatedResponse,
    HealthStatus,
    HealthCheckResponse,
    DetailedHealthCheckResponse,
    ComponentHealth,
    MessageResponse,
)

from .images import (
    ImageResponse,
    ImageDetailResponse,
    UploadResponse,
)

from .quota import (
    BackendUsageResponse,
    UsageSummaryResponse,
    QuotaResponse,
    QuotaListResponse,
    QuotaLimitsRequest,
    QuotaResetResponse,
)

__all__ = [
    # Common
    "ErrorDetail",
    "ErrorResponse",
    "PaginatedResponse",
    "HealthStatus",
    "HealthCheckResponse",
    "DetailedHealthCheckResponse",
    "ComponentHealth",
    "MessageResponse",
    # Images
    "ImageResponse",
    "ImageDetailResponse",
    "UploadResponse",
    # Quota
    "BackendUsageResponse",
    "UsageSummaryResponse",
    "QuotaResponse",
    "QuotaListResponse",
    "QuotaLimitsRequest",
    "QuotaResetResponse",
]
