"""
FastAPI dependency injection for the storage services.

The service graph lives on ``app.state.storage`` (built in the lifespan);
handlers receive pieces of it through these dependencies, and tests swap
them with ``app.dependency_overrides``.
"""

import logging

from fastapi import Depends, Request

from core.exceptions import ExternalServiceError
from services.context import StorageContext
from services.image_storage import ImageStorageService
from services.quota_manager import QuotaManager

logger = logging.getLogger(__name__)


def get_storage_context(request: Request) -> StorageContext:
    """Get the application's StorageContext."""
    context = getattr(request.app.state, "storage", None)
    if context is None:
        raise ExternalServiceError("Image storage is not initialized (check DATABASE_URL)")
    return context


def get_storage_service(
    context: StorageContext = Depends(get_storage_context),
) -> ImageStorageService:
    """Get ImageStorageService dependency."""
    return context.storage


def get_quota_manager(
    context: StorageContext = Depends(get_storage_context),
) -> QuotaManager:
    """Get QuotaManager dependency."""
    return context.quota_manager
