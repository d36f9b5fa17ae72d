"""Initial schema: image metadata and provider quotas.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ========================================
    # Image metadata
    # ========================================

    op.create_table(
        "image_metadata",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(255), nullable=False),
        sa.Column("backend", sa.String(50), nullable=False),
        sa.Column("image_category", sa.String(50), nullable=False),
        sa.Column("original_url", sa.Text(), nullable=False),
        sa.Column("cdn_url", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("backend_object_id", sa.Text(), nullable=True),
        sa.Column("file_name", sa.String(500), nullable=False),
        sa.Column("file_size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column(
            "variants",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default="{}",
            nullable=False,
        ),
        sa.Column("alt_text", sa.Text(), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column(
            "cache_control",
            sa.String(255),
            server_default="public, max-age=2592000",
            nullable=False,
        ),
        sa.Column("etag", sa.String(255), nullable=True),
        sa.Column("access_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), server_default="pending", nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "backend IN ('cloudinary', 'firebase', 'supabase', 'google_photos')",
            name="ck_image_metadata_backend",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_image_metadata_status",
        ),
    )
    op.create_index("idx_image_metadata_tenant", "image_metadata", ["tenant_id"])
    op.create_index(
        "idx_image_metadata_tenant_category", "image_metadata", ["tenant_id", "image_category"]
    )
    op.create_index("idx_image_metadata_backend", "image_metadata", ["backend"])
    op.create_index("idx_image_metadata_original_url", "image_metadata", ["original_url"])
    op.create_index(
        "idx_image_metadata_created_at",
        "image_metadata",
        [sa.text("created_at DESC")],
    )

    # ========================================
    # Provider quotas
    # ========================================

    op.create_table(
        "provider_quotas",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(255), nullable=False),
        sa.Column("backend", sa.String(50), nullable=False),
        sa.Column("monthly_upload_limit_bytes", sa.BigInteger(), nullable=False),
        sa.Column("monthly_request_limit", sa.Integer(), nullable=False),
        sa.Column("max_file_size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("current_month_bytes", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("current_month_requests", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_reset_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_bytes_uploaded", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("total_uploads", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_requests", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("priority", sa.Integer(), server_default="100", nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "backend", name="uq_provider_quotas_tenant_backend"),
    )
    op.create_index("idx_provider_quotas_tenant", "provider_quotas", ["tenant_id"])
    op.create_index("idx_provider_quotas_backend", "provider_quotas", ["backend"])


def downgrade() -> None:
    op.drop_index("idx_provider_quotas_backend", table_name="provider_quotas")
    op.drop_index("idx_provider_quotas_tenant", table_name="provider_quotas")
    op.drop_table("provider_quotas")

    op.drop_index("idx_image_metadata_created_at", table_name="image_metadata")
    op.drop_index("idx_image_metadata_original_url", table_name="image_metadata")
    op.drop_index("idx_image_metadata_backend", table_name="image_metadata")
    op.drop_index("idx_image_metadata_tenant_category", table_name="image_metadata")
    op.drop_index("idx_image_metadata_tenant", table_name="image_metadata")
    op.drop_table("image_metadata")
