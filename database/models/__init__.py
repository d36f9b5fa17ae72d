"""
SQLAlchemy models for the Restaurant Image Gateway.
"""

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from .image_metadata import StoredImage
from .provider_quota import BackendQuota

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # Models
    "StoredImage",
    "BackendQuota",
]
