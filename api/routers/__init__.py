"""
API routers for different endpoints.
"""

from .health import router as health_router
from .images import router as images_router
from .quota import router as quota_router

__all__ = [
    "health_router",
    "images_router",
    "quota_router",
]
