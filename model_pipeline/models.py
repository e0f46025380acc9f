"""SQLAlchemy 2.0 ORM models.

This module contains the SQLAlchemy models for the generation pipeline.
All models use the Mapped[type] annotation pattern required by SQLAlchemy 2.0.

Two tables are involved:
    products: The catalog item. Only the columns this pipeline reads
        (images) or owns (generation phase, asset pointer) are mapped here.
    tripo_generation_logs: One row per external generation task, kept as
        an audit trail of every attempt made for a product.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from model_pipeline.exceptions import InvalidStateTransitionError


def utcnow() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class GenerationStatus(enum.Enum):
    """Status of one external generation task, as reported by the service.

    Flow:
        queued → processing → success | failed | cancelled | timeout

    ``queued`` may jump straight to any terminal value. ``timeout`` is
    written by the poller itself when it gives up, never by the service.
    ``cancelled`` is kept verbatim for audit but handled as a failure.

    Terminal States:
        success, failed, cancelled, timeout
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @classmethod
    def from_reported(cls, value: str | None) -> "GenerationStatus":
        """Map a raw service status onto the enum.

        Unrecognized or missing values map to PROCESSING so that statuses
        added by the service later keep the task polling instead of
        failing it.
        """
        if value:
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.PROCESSING

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        GenerationStatus.SUCCESS,
        GenerationStatus.FAILED,
        GenerationStatus.CANCELLED,
        GenerationStatus.TIMEOUT,
    }
)


class ModelGenerationPhase(enum.Enum):
    """Generation phase stored on the product.

    Pipeline Flow (Happy Path):
        none → queued → downloading → completed

    Failure Paths:
        failed (service rejected the task, or submission gave up)
        timeout (polling ceiling reached)
        download_failed (a download attempt failed; a retry may still complete)
        disabled (generation requested while switched off)
    """

    NONE = "none"
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"
    DOWNLOAD_FAILED = "download_failed"
    TIMEOUT = "timeout"
    DISABLED = "disabled"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Product(Base):
    """Catalog product as seen by the generation pipeline.

    Attributes:
        id: UUID primary key.
        external_id: Retailer identifier (unique).
        title: Product title.
        source_url: Page the product was extracted from.
        primary_image_url: Preferred image used to seed generation.
        image_urls: Fallback images (first one is used when no primary image).
        ar_model_url: Web-relative path of the generated model, set on completion.
        model_generation_status: Current generation phase (see ModelGenerationPhase).
        model_generated_at: When the model was downloaded and stored.
        tripo_task_id: Most recent task submitted for this product.
        generation_logs: Every generation attempt recorded for this product.

    Note:
        The pipeline only writes ar_model_url, model_generation_status,
        model_generated_at and tripo_task_id. Everything else is owned by
        the catalog.
    """

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    external_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    source_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    # Images
    primary_image_url: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    image_urls: Mapped[list[str] | None] = mapped_column(
        JSON,
        nullable=True,
    )
    ar_model_url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # 3D model generation
    model_generation_status: Mapped[ModelGenerationPhase] = mapped_column(
        Enum(
            ModelGenerationPhase,
            native_enum=False,
            length=32,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=ModelGenerationPhase.NONE,
    )
    model_generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    tripo_task_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    generation_logs: Mapped[list["GenerationTask"]] = relationship(
        "GenerationTask",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"<Product(id={self.id!s:.8}, title={self.title!r}, "
            f"model_generation_status={self.model_generation_status.value!r})>"
        )


class GenerationTask(Base):
    """Audit record of one external 3D generation task.

    A row is created when a task is submitted (or on the first poll if
    submission could not record it) and is updated by every poll. Rows are
    never deleted by the pipeline; they go away only with their product.

    Attributes:
        id: UUID primary key.
        task_id: Opaque task identifier assigned by the service (unique).
        product_id: Owning product (ON DELETE CASCADE).
        status: Latest GenerationStatus; only moves forward (see VALID_TRANSITIONS).
        progress: Reported progress, always within 0-100. Not monotonic.
        request_payload: Body sent to the service when the task was created.
        last_response: Most recent raw status payload, stored verbatim.
        pbr_model_url: Remote model URL reported on success.
        rendered_image_url: Remote preview URL reported on success.
        local_asset_path: Web-relative path of the stored model, set once on download.
        error_message: Failure reason, set once by the step that detected it.
    """

    __tablename__ = "tripo_generation_logs"

    # Same-status writes are always accepted (every poll rewrites the status)
    VALID_TRANSITIONS = {
        GenerationStatus.QUEUED: [
            GenerationStatus.PROCESSING,
            GenerationStatus.SUCCESS,
            GenerationStatus.FAILED,
            GenerationStatus.CANCELLED,
            GenerationStatus.TIMEOUT,
        ],
        GenerationStatus.PROCESSING: [
            GenerationStatus.SUCCESS,
            GenerationStatus.FAILED,
            GenerationStatus.CANCELLED,
            GenerationStatus.TIMEOUT,
        ],
        GenerationStatus.SUCCESS: [],
        GenerationStatus.FAILED: [],
        GenerationStatus.CANCELLED: [],
        GenerationStatus.TIMEOUT: [],
    }

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    task_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[GenerationStatus] = mapped_column(
        Enum(
            GenerationStatus,
            native_enum=False,
            length=32,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=GenerationStatus.QUEUED,
        index=True,
    )
    progress: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    request_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )
    last_response: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )
    pbr_model_url: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    rendered_image_url: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    local_asset_path: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    product: Mapped["Product"] = relationship("Product", back_populates="generation_logs")

    __table_args__ = (
        CheckConstraint(
            "progress >= 0 AND progress <= 100",
            name="ck_tripo_generation_logs_progress_range",
        ),
    )

    @validates("status")
    def validate_status_change(self, key: str, value: GenerationStatus) -> GenerationStatus:
        """Validate status transition before it reaches the database.

        Args:
            key: The attribute name being validated (always "status").
            value: The new GenerationStatus value being assigned.

        Returns:
            The validated GenerationStatus value if transition is valid.

        Raises:
            InvalidStateTransitionError: If the transition moves backwards or
                leaves a terminal status.

        Note:
            - Validation is skipped on initial creation (status is None)
            - Re-assigning the current status is always allowed
        """
        if self.status is None or self.status == value:
            return value

        allowed_transitions = self.VALID_TRANSITIONS.get(self.status, [])
        if value not in allowed_transitions:
            raise InvalidStateTransitionError(
                f"Invalid transition: {self.status.value} → {value.value}",
                from_status=self.status,
                to_status=value,
            )

        return value

    @validates("progress")
    def validate_progress(self, key: str, value: int) -> int:
        """Reject progress values outside 0-100."""
        if value is None or not 0 <= value <= 100:
            raise ValueError(f"progress must be within 0-100, got {value!r}")
        return value

    @property
    def is_terminal(self) -> bool:
        """Whether the task reached a status it can no longer leave."""
        return self.status is not None and self.status.is_terminal

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"<GenerationTask(task_id={self.task_id!r}, product_id={self.product_id!s:.8}, "
            f"status={self.status.value!r}, progress={self.progress})>"
        )
