"""
Image router.

Endpoints:
- POST   /api/images/upload       - Upload an image (multipart)
- GET    /api/images              - List a restaurant's images
- GET    /api/images/lookup       - Find an image by its URL
- GET    /api/images/cache/stats  - Metadata cache statistics
- POST   /api/images/cache/clear  - Drop the in-memory metadata cache
- GET    /api/images/{id}         - Metadata + optimized URL
- DELETE /api/images/{id}         - Delete an image
"""

import logging
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from api.dependencies import get_storage_context, get_storage_service
from api.schemas.common import ErrorResponse, MessageResponse, PaginatedResponse
from api.schemas.images import ImageDetailResponse, ImageResponse, UploadResponse
from core.config import Settings, get_settings
from core.exceptions import ImageNotFoundError, UploadFailedError, ValidationError
from services.context import StorageContext
from services.image_storage import ImageStorageService
from services.storage.types import ImageCategory, TransformOptions, UploadRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/images", tags=["images"])

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Image not found"}}


# ============ Upload ============


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        422: {"model": ErrorResponse, "description": "Missing, empty, oversized or non-image file"},
        502: {"model": ErrorResponse, "description": "Every candidate backend failed"},
    },
)
async def upload_image(
    response: Response,
    restaurant_id: str = Form(..., min_length=1),
    image_type: ImageCategory = Form(ImageCategory.PRODUCT),
    alt_text: Optional[str] = Form(None),
    caption: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    storage: ImageStorageService = Depends(get_storage_service),
    settings: Settings = Depends(get_settings),
):
    """
    Upload an image for a restaurant.

    The backend is chosen automatically from ``image_type``, file size,
    backend health and the restaurant's quotas.
    """
    if file is None:
        raise ValidationError("No file provided")

    content_type = file.content_type or ""
    if content_type not in settings.upload_allowed_types:
        raise ValidationError(
            f"Invalid file type: {content_type or 'unknown'}",
            details={"allowed_types": settings.upload_allowed_types},
        )

    data = await file.read()
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > settings.upload_max_file_size:
        raise ValidationError(
            f"File too large (max {settings.upload_max_file_size // (1024 * 1024)}MB)",
            details={"size": len(data), "max_size": settings.upload_max_file_size},
        )

    result = await storage.upload(
        UploadRequest(
            tenant_id=restaurant_id,
            image_category=image_type,
            data=data,
            file_name=file.filename or "upload",
            content_type=content_type,
            alt_text=alt_text,
            caption=caption,
        )
    )

    if not result.success or result.image is None:
        raise UploadFailedError(
            result.error or "Upload failed",
            details={"backend": result.backend.value} if result.backend else None,
        )

    response.headers.update(storage.cache_headers())
    return UploadResponse(
        image=ImageResponse.from_metadata(result.image),
        backend=result.backend,
        original_size_bytes=result.original_size_bytes or len(data),
        duration_ms=result.duration_ms,
    )


# ============ Listing / lookup ============


@router.get("", response_model=PaginatedResponse[ImageResponse])
async def list_images(
    restaurant_id: str = Query(..., min_length=1),
    image_type: Optional[ImageCategory] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    storage: ImageStorageService = Depends(get_storage_service),
):
    """List a restaurant's images, newest first."""
    images = await storage.list_for_tenant(
        restaurant_id, image_category=image_type, limit=limit, offset=offset
    )
    total = await storage.count_for_tenant(restaurant_id, image_category=image_type)

    return PaginatedResponse[ImageResponse](
        items=[ImageResponse.from_metadata(image) for image in images],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(images) < total,
    )


@router.get("/lookup", response_model=ImageResponse, responses=NOT_FOUND)
async def lookup_image(
    url: str = Query(..., min_length=1),
    storage: ImageStorageService = Depends(get_storage_service),
):
    """Find an image by its original or CDN URL."""
    metadata = await storage.get_image_by_url(url)
    if metadata is None:
        raise ImageNotFoundError()
    return ImageResponse.from_metadata(metadata)


@router.get("/cache/stats")
async def cache_stats(context: StorageContext = Depends(get_storage_context)):
    """In-memory metadata cache statistics."""
    return context.cache.stats()


@router.post("/cache/clear", response_model=MessageResponse)
async def clear_cache(context: StorageContext = Depends(get_storage_context)):
    """Drop every in-memory metadata entry (the store is untouched)."""
    context.cache.clear()
    return MessageResponse(message="Cache cleared")


# ============ Single image ============


@router.get("/{image_id}", response_model=ImageDetailResponse, responses=NOT_FOUND)
async def get_image(
    image_id: UUID,
    response: Response,
    width: Optional[int] = Query(None, ge=1, le=4096),
    height: Optional[int] = Query(None, ge=1, le=4096),
    format: Optional[Literal["webp", "avif", "jpg", "png"]] = Query(None),
    quality: Optional[int] = Query(None, ge=1, le=100),
    storage: ImageStorageService = Depends(get_storage_service),
):
    """Get image metadata and a URL rendered to the requested size/format."""
    metadata = await storage.get_image(image_id)
    if metadata is None:
        raise ImageNotFoundError()

    optimized_url = storage.get_optimized_url(
        metadata,
        TransformOptions(width=width, height=height, quality=quality, format=format),
    )

    response.headers.update(storage.cache_headers())
    return ImageDetailResponse(
        image=ImageResponse.from_metadata(metadata),
        optimized_url=optimized_url,
    )


@router.delete("/{image_id}", response_model=MessageResponse, responses=NOT_FOUND)
async def delete_image(
    image_id: UUID,
    storage: ImageStorageService = Depends(get_storage_service),
):
    """Delete an image from its backend and mark its metadata deleted."""
    deleted = await storage.delete_image(image_id)
    if not deleted:
        raise ImageNotFoundError()
    return MessageResponse(message="Image deleted")
