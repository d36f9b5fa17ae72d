"""
Core modules for the Restaurant Image Gateway.

This package contains fundamental utilities used across the application:
- config: Application settings and configuration
- exceptions: Custom exception classes
"""

from .config import Settings, get_settings
from .exceptions import (
    AdapterError,
    AppException,
    ExternalServiceError,
    ImageNotFoundError,
    MetadataStoreError,
    NotFoundError,
    UploadFailedError,
    ValidationError,
)

__all__ = [
    # Config
    "get_settings",
    "Settings",
    # Exceptions
    "AppException",
    "NotFoundError",
    "ImageNotFoundError",
    "ValidationError",
    "ExternalServiceError",
    "AdapterError",
    "UploadFailedError",
    "MetadataStoreError",
]
