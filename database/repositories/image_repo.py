"""
Image repository for image metadata CRUD operations.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import StoredImage
from services.storage.types import ImageCategory, ImageMetadata


class ImageRepository:
    """Repository for StoredImage model operations. Soft-deleted rows are never returned."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, image_id: UUID) -> StoredImage | None:
        """Get a live image by ID."""
        result = await self.session.execute(
            select(StoredImage).where(
                StoredImage.id == image_id,
                StoredImage.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_url(self, url: str) -> StoredImage | None:
        """Get a live image whose original or CDN URL equals ``url``."""
        result = await self.session.execute(
            select(StoredImage)
            .where(
                or_(StoredImage.original_url == url, StoredImage.cdn_url == url),
                StoredImage.deleted_at.is_(None),
            )
            .order_by(desc(StoredImage.created_at))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create(self, metadata: ImageMetadata) -> StoredImage:
        """Insert a new image record."""
        image = StoredImage.from_domain(metadata)
        self.session.add(image)
        await self.session.flush()
        return image

    async def update_fields(self, image_id: UUID, fields: dict) -> StoredImage | None:
        """
        Apply a partial update to a live image.

        ``backend`` and ``tenant_id`` are not accepted here; once a row is
        written its location is fixed.
        """
        image = await self.get_by_id(image_id)
        if not image:
            return None

        for key, value in fields.items():
            if key in ("backend", "tenant_id", "id"):
                raise ValueError(f"Field '{key}' cannot be updated")
            if hasattr(image, key):
                setattr(image, key, value)

        await self.session.flush()
        return image

    async def soft_delete(self, image_id: UUID) -> bool:
        """Stamp ``deleted_at``. Returns False if the row is missing or already deleted."""
        result = await self.session.execute(
            update(StoredImage)
            .where(
                StoredImage.id == image_id,
                StoredImage.deleted_at.is_(None),
            )
            .values(deleted_at=datetime.now(UTC))
        )
        return result.rowcount > 0

    async def record_access(self, image_id: UUID) -> None:
        """Increment the access counter and stamp ``last_accessed_at``."""
        await self.session.execute(
            update(StoredImage)
            .where(StoredImage.id == image_id)
            .values(
                access_count=StoredImage.access_count + 1,
                last_accessed_at=datetime.now(UTC),
            )
        )

    async def list_by_tenant(
        self,
        tenant_id: str,
        image_category: ImageCategory | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[StoredImage]:
        """List a tenant's live images, newest first."""
        query = select(StoredImage).where(
            StoredImage.tenant_id == tenant_id,
            StoredImage.deleted_at.is_(None),
        )
        if image_category:
            query = query.where(StoredImage.image_category == image_category.value)

        query = query.order_by(desc(StoredImage.created_at)).limit(limit).offset(offset)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_by_tenant(
        self,
        tenant_id: str,
        image_category: ImageCategory | None = None,
    ) -> int:
        """Count a tenant's live images."""
        query = (
            select(func.count())
            .select_from(StoredImage)
            .where(
                StoredImage.tenant_id == tenant_id,
                StoredImage.deleted_at.is_(None),
            )
        )
        if image_category:
            query = query.where(StoredImage.image_category == image_category.value)

        result = await self.session.execute(query)
        return result.scalar_one()
