"""
Image upload and metadata schemas.
"""

from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from services.storage.types import BackendName, ImageCategory, ImageMetadata, UploadStatus


class ImageResponse(BaseModel):
    """Image metadata as returned by the API."""

    id: UUID
    restaurant_id: str = Field(..., description="Owning tenant")
    backend: BackendName
    image_type: ImageCategory
    original_url: str
    cdn_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    file_name: str
    file_size_bytes: int
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    variants: Dict[str, str] = Field(default_factory=dict)
    alt_text: Optional[str] = None
    caption: Optional[str] = None
    status: UploadStatus
    access_count: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_metadata(cls, metadata: ImageMetadata) -> "ImageResponse":
        return cls(
            id=metadata.id,
            restaurant_id=metadata.tenant_id,
            backend=metadata.backend,
            image_type=metadata.image_category,
            original_url=metadata.original_url,
            cdn_url=metadata.cdn_url,
            thumbnail_url=metadata.thumbnail_url,
            file_name=metadata.file_name,
            file_size_bytes=metadata.file_size_bytes,
            mime_type=metadata.mime_type,
            width=metadata.width,
            height=metadata.height,
            variants=metadata.variants,
            alt_text=metadata.alt_text,
            caption=metadata.caption,
            status=metadata.status,
            access_count=metadata.access_count,
            created_at=metadata.created_at,
        )


class ImageDetailResponse(BaseModel):
    """GET /images/{id}: metadata plus the URL for the requested rendering."""

    success: bool = True
    image: ImageResponse
    optimized_url: str


class UploadResponse(BaseModel):
    """Successful upload."""

    success: bool = True
    image: ImageResponse
    backend: BackendName
    original_size_bytes: int
    duration_ms: int

