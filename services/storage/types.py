"""
Domain types for multi-backend image storage.

These dataclasses are what the router, cache and storage service pass
around. ORM rows are converted into them in exactly one place
(``to_domain()`` on each model) so no untyped row dicts leak upward.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID


# ============ Enums ============


class BackendName(StrEnum):
    """The four blob-storage backends an image can live in."""

    CLOUDINARY = "cloudinary"  # High-capacity CDN with URL transforms
    FIREBASE = "firebase"  # High-capacity object storage, no resizing
    SUPABASE = "supabase"  # First-party store, smallest limits
    GOOGLE_PHOTOS = "google_photos"  # Backup photo library


class ImageCategory(StrEnum):
    """What the image is used for; drives the default backend."""

    PRODUCT = "product"
    PROFILE = "profile"
    LOGO = "logo"
    ICON = "icon"
    USER_PHOTO = "user_photo"
    MENU_SCAN = "menu_scan"


class UploadStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class VariantTier(StrEnum):
    """Standard derived sizes. Values are the dict keys stored in ``variants``."""

    THUMBNAIL = "thumbnail"  # 150x150
    SMALL = "small"  # 300x300
    MEDIUM = "medium"  # 600x600
    LARGE = "large"  # 1200x1200
    ORIGINAL = "original"


# Upper width bound served by each resized tier, smallest first
VARIANT_WIDTHS: dict[VariantTier, int] = {
    VariantTier.THUMBNAIL: 150,
    VariantTier.SMALL: 300,
    VariantTier.MEDIUM: 600,
    VariantTier.LARGE: 1200,
}


def clean_variants(variants: dict[str, str] | None) -> dict[str, str]:
    """Drop unknown tier keys and empty URLs."""
    if not variants:
        return {}
    allowed = {tier.value for tier in VariantTier}
    return {str(k): v for k, v in variants.items() if str(k) in allowed and v}


# ============ Adapter I/O ============


@dataclass
class UploadOptions:
    """Options passed to a backend adapter upload."""

    folder: str | None = None
    optimize: bool = True
    generate_variants: bool = True
    content_type: str = "image/jpeg"


@dataclass
class TransformOptions:
    """On-the-fly transform request for an image URL."""

    width: int | None = None
    height: int | None = None
    quality: int | None = None
    format: str | None = None  # webp, avif, jpg, png

    @property
    def is_empty(self) -> bool:
        return not any([self.width, self.height, self.quality, self.format])


@dataclass
class UploadedBlob:
    """Result of a successful adapter upload."""

    url: str
    backend_object_id: str
    variants: dict[str, str] = field(default_factory=dict)
    width: int | None = None
    height: int | None = None


# ============ Metadata ============


@dataclass
class ImageMetadata:
    """One stored image. ``id``/timestamps are filled in by the metadata store."""

    tenant_id: str
    backend: BackendName
    image_category: ImageCategory
    original_url: str
    file_name: str
    file_size_bytes: int
    mime_type: str
    cdn_url: str | None = None
    thumbnail_url: str | None = None
    backend_object_id: str | None = None
    width: int | None = None
    height: int | None = None
    variants: dict[str, str] = field(default_factory=dict)
    alt_text: str | None = None
    caption: str | None = None
    cache_control: str = "public, max-age=2592000"
    etag: str | None = None
    access_count: int = 0
    last_accessed_at: datetime | None = None
    status: UploadStatus = UploadStatus.PENDING
    error_message: str | None = None
    id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


@dataclass
class ImageMetadataUpdate:
    """Partial update; ``None`` means leave the field alone."""

    cdn_url: str | None = None
    thumbnail_url: str | None = None
    variants: dict[str, str] | None = None
    alt_text: str | None = None
    caption: str | None = None
    status: UploadStatus | None = None
    error_message: str | None = None
    width: int | None = None
    height: int | None = None

    def changed_fields(self) -> dict:
        values = {
            "cdn_url": self.cdn_url,
            "thumbnail_url": self.thumbnail_url,
            "variants": clean_variants(self.variants) if self.variants is not None else None,
            "alt_text": self.alt_text,
            "caption": self.caption,
            "status": self.status.value if self.status else None,
            "error_message": self.error_message,
            "width": self.width,
            "height": self.height,
        }
        return {k: v for k, v in values.items() if v is not None}


# ============ Quotas ============


@dataclass
class ProviderQuota:
    """Monthly limits and usage for one (tenant, backend) pair."""

    tenant_id: str
    backend: BackendName
    monthly_upload_limit_bytes: int
    monthly_request_limit: int
    max_file_size_bytes: int
    current_month_bytes: int = 0
    current_month_requests: int = 0
    last_reset_at: datetime | None = None
    total_bytes_uploaded: int = 0
    total_uploads: int = 0
    total_requests: int = 0
    is_enabled: bool = True
    priority: int = 100
    id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class QuotaDefaults:
    monthly_upload_limit_bytes: int
    monthly_request_limit: int
    max_file_size_bytes: int
    priority: int


@dataclass
class QuotaLimitsUpdate:
    monthly_upload_limit_bytes: int | None = None
    monthly_request_limit: int | None = None
    max_file_size_bytes: int | None = None
    is_enabled: bool | None = None
    priority: int | None = None

    def changed_fields(self) -> dict:
        values = {
            "monthly_upload_limit_bytes": self.monthly_upload_limit_bytes,
            "monthly_request_limit": self.monthly_request_limit,
            "max_file_size_bytes": self.max_file_size_bytes,
            "is_enabled": self.is_enabled,
            "priority": self.priority,
        }
        return {k: v for k, v in values.items() if v is not None}


@dataclass
class AdmissionResult:
    allowed: bool
    reason: str | None = None


@dataclass
class BackendUsage:
    bytes: int
    requests: int
    percent_used: int


@dataclass
class UsageSummary:
    total_bytes: int = 0
    total_requests: int = 0
    by_backend: dict[str, BackendUsage] = field(default_factory=dict)


# ============ Routing ============


@dataclass
class RoutingDecision:
    """Result of routing decision."""

    backend: BackendName
    fallback_backends: list[BackendName] = field(default_factory=list)
    reason: str = ""

    @property
    def attempt_order(self) -> list[BackendName]:
        return [self.backend, *self.fallback_backends]


# ============ Upload request/response ============


@dataclass
class UploadRequest:
    tenant_id: str
    image_category: ImageCategory
    data: bytes
    file_name: str = "upload.jpg"
    content_type: str = "image/jpeg"
    alt_text: str | None = None
    caption: str | None = None
    optimize: bool = True
    generate_variants: bool = True


@dataclass
class UploadResult:
    success: bool
    duration_ms: int = 0
    image: ImageMetadata | None = None
    error: str | None = None
    backend: BackendName | None = None
    original_size_bytes: int | None = None
