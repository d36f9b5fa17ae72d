"""
Health check endpoints.

Provides basic and detailed health check functionality.
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from api.schemas.common import (
    ComponentHealth,
    DetailedHealthCheckResponse,
    HealthCheckResponse,
    HealthStatus,
)
from core.config import Settings, get_settings
from database import check_database

router = APIRouter(prefix="/health", tags=["health"])

# Track application start time for uptime calculation
_start_time = time.time()


@router.get(
    "",
    response_model=HealthCheckResponse,
    summary="Basic health check",
    description="Quick health check endpoint for load balancers and container orchestration.",
)
async def health_check() -> HealthCheckResponse:
    """
    Basic health check.

    Returns a simple healthy status if the API is running.
    """
    return HealthCheckResponse(
        status=HealthStatus.HEALTHY,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/detailed",
    response_model=DetailedHealthCheckResponse,
    summary="Detailed health check",
    description="Metadata store and per-backend availability.",
)
async def detailed_health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> DetailedHealthCheckResponse:
    """
    Detailed health check with component status.

    Checks:
    - Metadata store (database) reachability
    - Each storage backend's availability probe
    - In-memory metadata cache occupancy

    The service is unhealthy without a metadata store and degraded while
    any storage backend is unavailable.
    """
    components = {}
    overall_status = HealthStatus.HEALTHY
    context = getattr(request.app.state, "storage", None)

    # Metadata store
    if context is None:
        components["database"] = ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            error="Storage context not initialized",
        )
        overall_status = HealthStatus.UNHEALTHY
    else:
        start = time.time()
        db_ok = await check_database(context.session_factory)
        components["database"] = ComponentHealth(
            status=HealthStatus.HEALTHY if db_ok else HealthStatus.UNHEALTHY,
            latency_ms=round((time.time() - start) * 1000, 2),
            error=None if db_ok else "Database unreachable",
        )
        if not db_ok:
            overall_status = HealthStatus.UNHEALTHY

        # Storage backends
        backend_health = await context.storage.backend_health()
        for backend, available in backend_health.items():
            adapter = context.adapters[backend]
            if available:
                components[backend.value] = ComponentHealth(status=HealthStatus.HEALTHY)
                continue

            components[backend.value] = ComponentHealth(
                status=HealthStatus.DEGRADED,
                error="Not configured" if not adapter.is_configured else "Unavailable",
            )
            if overall_status == HealthStatus.HEALTHY:
                overall_status = HealthStatus.DEGRADED

        # Metadata cache
        components["metadata_cache"] = ComponentHealth(
            status=HealthStatus.HEALTHY,
            details=context.cache.stats(),
        )

    # Calculate uptime
    uptime_seconds = time.time() - _start_time

    return DetailedHealthCheckResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
        environment=settings.environment,
        uptime_seconds=round(uptime_seconds, 2),
        components=components,
    )


@router.get(
    "/ready",
    response_model=HealthCheckResponse,
    summary="Readiness check",
    description="Check if the application is ready to accept traffic.",
)
async def readiness_check(request: Request) -> HealthCheckResponse:
    """
    Readiness check for Kubernetes.

    Ready once the storage context exists and the metadata store answers.
    """
    context = getattr(request.app.state, "storage", None)
    ready = context is not None and await check_database(context.session_factory)

    return HealthCheckResponse(
        status=HealthStatus.HEALTHY if ready else HealthStatus.UNHEALTHY,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/live",
    response_model=HealthCheckResponse,
    summary="Liveness check",
    description="Check if the application is alive.",
)
async def liveness_check() -> HealthCheckResponse:
    """Simple check that the application process is running."""
    return HealthCheckResponse(
        status=HealthStatus.HEALTHY,
        timestamp=datetime.now(timezone.utc),
    )
