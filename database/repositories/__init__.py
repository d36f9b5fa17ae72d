"""
Repository layer for database access.

Provides async CRUD operations for all models.
"""

from .image_repo import ImageRepository
from .quota_repo import QuotaRepository

__all__ = [
    "ImageRepository",
    "QuotaRepository",
]
