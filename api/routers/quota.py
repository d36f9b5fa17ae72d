"""
Quota management router.

Endpoints:
- GET   /api/quota/{restaurant_id}            - Usage summary
- GET   /api/quota/{restaurant_id}/backends   - All quota rows
- POST  /api/quota/{restaurant_id}/provision  - Create default quotas
- PATCH /api/quota/{restaurant_id}/{backend}  - Update limits
- POST  /api/quota/reset                      - Monthly reset
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_quota_manager
from api.schemas.quota import (
    BackendUsageResponse,
    QuotaLimitsRequest,
    QuotaListResponse,
    QuotaResetResponse,
    QuotaResponse,
    UsageSummaryResponse,
)
from core.exceptions import NotFoundError
from services.quota_manager import QuotaManager
from services.storage.types import BackendName

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quota", tags=["quota"])


@router.post("/reset", response_model=QuotaResetResponse)
async def reset_monthly_quotas(
    quota_manager: QuotaManager = Depends(get_quota_manager),
):
    """Zero current-month counters for every restaurant."""
    count = await quota_manager.reset_monthly_quotas()
    return QuotaResetResponse(rows_reset=count)


@router.get("/{restaurant_id}", response_model=UsageSummaryResponse)
async def get_usage_summary(
    restaurant_id: str,
    quota_manager: QuotaManager = Depends(get_quota_manager),
):
    """Current-month storage usage across backends."""
    summary = await quota_manager.usage_summary(restaurant_id)
    return UsageSummaryResponse(
        restaurant_id=restaurant_id,
        total_bytes=summary.total_bytes,
        total_requests=summary.total_requests,
        by_backend={
            backend: BackendUsageResponse(
                bytes=usage.bytes,
                requests=usage.requests,
                percent_used=usage.percent_used,
            )
            for backend, usage in summary.by_backend.items()
        },
    )


@router.get("/{restaurant_id}/backends", response_model=QuotaListResponse)
async def list_quotas(
    restaurant_id: str,
    quota_manager: QuotaManager = Depends(get_quota_manager),
):
    """Every backend quota row for the restaurant, by priority."""
    quotas = await quota_manager.get_all_quotas(restaurant_id)
    return QuotaListResponse(
        restaurant_id=restaurant_id,
        quotas=[QuotaResponse.from_quota(q) for q in quotas],
    )


@router.post("/{restaurant_id}/provision", response_model=QuotaListResponse)
async def provision_quotas(
    restaurant_id: str,
    quota_manager: QuotaManager = Depends(get_quota_manager),
):
    """Create default quota rows for any backend the restaurant is missing."""
    quotas = await quota_manager.provision_tenant(restaurant_id)
    return QuotaListResponse(
        restaurant_id=restaurant_id,
        quotas=[QuotaResponse.from_quota(q) for q in quotas],
    )


@router.patch("/{restaurant_id}/{backend}", response_model=QuotaResponse)
async def update_quota_limits(
    restaurant_id: str,
    backend: BackendName,
    request: QuotaLimitsRequest,
    quota_manager: QuotaManager = Depends(get_quota_manager),
):
    """Change limits, enabled flag or priority for one backend."""
    quota = await quota_manager.update_limits(restaurant_id, backend, request.to_update())
    if quota is None:
        raise NotFoundError(f"No {backend.value} quota for restaurant {restaurant_id}")
    logger.info(f"Updated {backend} limits for {restaurant_id}")
    return QuotaResponse.from_quota(quota)
