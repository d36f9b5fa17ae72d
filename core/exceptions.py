"""
Custom exception classes for the application.

All exceptions inherit from AppException and include:
- error_code: Machine-readable error code
- message: Human-readable error message
- status_code: HTTP status code to return
"""

from typing import Any


class AppException(Exception):
    """Base exception for all application errors."""

    error_code: str = "internal_error"
    message: str = "An unexpected error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(AppException):
    """Raised when a resource is not found."""

    error_code = "not_found"
    message = "Resource not found"
    status_code = 404


class ImageNotFoundError(NotFoundError):
    """Raised when an image is missing or soft-deleted."""

    error_code = "image_not_found"
    message = "Image not found"


class ValidationError(AppException):
    """Raised when input validation fails."""

    error_code = "validation_error"
    message = "Invalid input"
    status_code = 422


class ExternalServiceError(AppException):
    """Raised when an external service fails."""

    error_code = "external_service_error"
    message = "External service unavailable"
    status_code = 503


class AdapterError(ExternalServiceError):
    """Raised when a storage backend call fails."""

    error_code = "backend_error"
    message = "Storage backend request failed"
    status_code = 502

    def __init__(
        self,
        message: str | None = None,
        backend: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, error_code=error_code, details=details)
        self.backend = backend
        if backend:
            self.details.setdefault("backend", backend)


class UploadFailedError(ExternalServiceError):
    """Raised when every candidate backend rejected an upload."""

    error_code = "upload_failed"
    message = "Upload failed on all storage backends"
    status_code = 502


class MetadataStoreError(AppException):
    """Raised when a write to the metadata store fails."""

    error_code = "metadata_store_error"
    message = "Metadata store operation failed"
    status_code = 500
