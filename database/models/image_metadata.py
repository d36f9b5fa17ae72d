"""
StoredImage model: one row per uploaded image, whichever backend holds it.
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from services.storage.types import (
    BackendName,
    ImageCategory,
    ImageMetadata,
    UploadStatus,
    clean_variants,
)

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class StoredImage(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    Metadata for an image held in one of the storage backends.

    Rows are never hard-deleted; ``deleted_at`` marks a soft delete and
    every read path filters on it.
    """

    __tablename__ = "image_metadata"

    # Ownership
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Where it lives
    backend: Mapped[str] = mapped_column(String(50), nullable=False)
    image_category: Mapped[str] = mapped_column(String(50), nullable=False)

    # URLs
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    cdn_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    backend_object_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    # File info
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Size variants: {"thumbnail": url, "small": url, ...}
    variants: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        default=dict,
        nullable=False,
    )

    # Accessibility
    alt_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)

    # HTTP caching
    cache_control: Mapped[str] = mapped_column(
        String(255),
        default="public, max-age=2592000",
        nullable=False,
    )
    etag: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Access tracking
    access_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_accessed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Processing state
    status: Mapped[str] = mapped_column(
        String(20),
        default=UploadStatus.PENDING.value,
        nullable=False,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Soft delete
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<StoredImage(id={self.id}, tenant={self.tenant_id}, "
            f"backend={self.backend}, status={self.status})>"
        )

    @classmethod
    def from_domain(cls, metadata: ImageMetadata) -> "StoredImage":
        """Build a new row from domain metadata (id/timestamps left to defaults)."""
        return cls(
            tenant_id=metadata.tenant_id,
            backend=metadata.backend.value,
            image_category=metadata.image_category.value,
            original_url=metadata.original_url,
            cdn_url=metadata.cdn_url,
            thumbnail_url=metadata.thumbnail_url,
            backend_object_id=metadata.backend_object_id,
            file_name=metadata.file_name,
            file_size_bytes=metadata.file_size_bytes,
            mime_type=metadata.mime_type,
            width=metadata.width,
            height=metadata.height,
            variants=clean_variants(metadata.variants),
            alt_text=metadata.alt_text,
            caption=metadata.caption,
            cache_control=metadata.cache_control,
            etag=metadata.etag,
            access_count=metadata.access_count,
            last_accessed_at=metadata.last_accessed_at,
            status=metadata.status.value,
            error_message=metadata.error_message,
        )

    def to_domain(self) -> ImageMetadata:
        """Convert to the typed domain object."""
        return ImageMetadata(
            id=self.id,
            tenant_id=self.tenant_id,
            backend=BackendName(self.backend),
            image_category=ImageCategory(self.image_category),
            original_url=self.original_url,
            cdn_url=self.cdn_url,
            thumbnail_url=self.thumbnail_url,
            backend_object_id=self.backend_object_id,
            file_name=self.file_name,
            file_size_bytes=self.file_size_bytes,
            mime_type=self.mime_type,
            width=self.width,
            height=self.height,
            variants=clean_variants(self.variants),
            alt_text=self.alt_text,
            caption=self.caption,
            cache_control=self.cache_control,
            etag=self.etag,
            access_count=self.access_count or 0,
            last_accessed_at=self.last_accessed_at,
            status=UploadStatus(self.status),
            error_message=self.error_message,
            created_at=self.created_at,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
        )


# Indexes
Index("idx_image_metadata_tenant", StoredImage.tenant_id)
Index("idx_image_metadata_tenant_category", StoredImage.tenant_id, StoredImage.image_category)
Index("idx_image_metadata_backend", StoredImage.backend)
Index("idx_image_metadata_original_url", StoredImage.original_url)
Index("idx_image_metadata_created_at", StoredImage.created_at.desc())
