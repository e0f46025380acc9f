"""Create products and tripo_generation_logs tables.

products carries the catalog fields the pipeline reads plus the generation
fields it owns. tripo_generation_logs keeps one audit row per external
generation task:
    - task_id unique (one row per service task)
    - product_id foreign key with ON DELETE CASCADE
    - progress constrained to 0-100
    - indexes on product_id, status and task_id

Revision ID: 001_products_and_generation_logs
Revises:
Create Date: 2026-10-16

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_products_and_generation_logs"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

GENERATION_PHASES = (
    "none",
    "queued",
    "downloading",
    "completed",
    "failed",
    "download_failed",
    "timeout",
    "disabled",
)
GENERATION_STATUSES = ("queued", "processing", "success", "failed", "cancelled", "timeout")


def upgrade() -> None:
    """Create products and tripo_generation_logs with indexes."""
    op.create_table(
        "products",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("source_url", sa.Text(), nullable=False),
        sa.Column("primary_image_url", sa.Text(), nullable=True),
        sa.Column("image_urls", sa.JSON(), nullable=True),
        sa.Column("ar_model_url", sa.String(500), nullable=True),
        sa.Column(
            "model_generation_status",
            sa.String(32),
            nullable=False,
            server_default="none",
        ),
        sa.Column("model_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tripo_task_id", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id", name="uq_products_external_id"),
        sa.CheckConstraint(
            "model_generation_status IN ({})".format(
                ", ".join(f"'{phase}'" for phase in GENERATION_PHASES)
            ),
            name="ck_products_model_generation_status",
        ),
    )
    op.create_index("ix_products_tripo_task_id", "products", ["tripo_task_id"])

    op.create_table(
        "tripo_generation_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("task_id", sa.String(255), nullable=False),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="queued"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("request_payload", sa.JSON(), nullable=True),
        sa.Column("last_response", sa.JSON(), nullable=True),
        sa.Column("pbr_model_url", sa.Text(), nullable=True),
        sa.Column("rendered_image_url", sa.Text(), nullable=True),
        sa.Column("local_asset_path", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["products.id"],
            name="fk_tripo_generation_logs_product_id",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "progress >= 0 AND progress <= 100",
            name="ck_tripo_generation_logs_progress_range",
        ),
        sa.CheckConstraint(
            "status IN ({})".format(", ".join(f"'{status}'" for status in GENERATION_STATUSES)),
            name="ck_tripo_generation_logs_status",
        ),
    )
    op.create_index(
        "ix_tripo_generation_logs_task_id", "tripo_generation_logs", ["task_id"], unique=True
    )
    op.create_index("ix_tripo_generation_logs_product_id", "tripo_generation_logs", ["product_id"])
    op.create_index("ix_tripo_generation_logs_status", "tripo_generation_logs", ["status"])


def downgrade() -> None:
    """Drop tripo_generation_logs and products."""
    op.drop_index("ix_tripo_generation_logs_status", table_name="tripo_generation_logs")
    op.drop_index("ix_tripo_generation_logs_product_id", table_name="tripo_generation_logs")
    op.drop_index("ix_tripo_generation_logs_task_id", table_name="tripo_generation_logs")
    op.drop_table("tripo_generation_logs")
    op.drop_index("ix_products_tripo_task_id", table_name="products")
    op.drop_table("products")
