"""Generation log persistence.

This module provides read/write helpers for the ``tripo_generation_logs``
audit table. Helpers only flush; the caller owns the transaction:

    async with session_factory() as db, db.begin():
        await record_poll(db, product_id, task_id, status)
        await update_generation_phase(db, product_id, ModelGenerationPhase.DOWNLOADING)

Status Handling:
    - Reported statuses are applied only while the row is not terminal
    - A reported "queued" after "processing" is ignored (status never moves back)
    - Progress is clamped to 0-100; non-integer progress keeps the stored value
    - error_message is written once and never overwritten
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from model_pipeline.exceptions import GenerationLogNotFoundError
from model_pipeline.models import GenerationStatus, GenerationTask
from model_pipeline.schemas.tripo import TripoTaskData
from model_pipeline.utils.logging import get_logger

log = get_logger(__name__)

ACTIVE_STATUSES = (GenerationStatus.QUEUED, GenerationStatus.PROCESSING)


async def create_log(
    db: AsyncSession,
    product_id: uuid.UUID,
    task_id: str,
    request_payload: dict | None = None,
) -> GenerationTask:
    """Create the log row for a freshly submitted task (status queued, progress 0)."""
    generation_log = GenerationTask(
        product_id=product_id,
        task_id=task_id,
        status=GenerationStatus.QUEUED,
        progress=0,
        request_payload=request_payload,
    )
    db.add(generation_log)
    await db.flush()

    log.info("generation_log_created", product_id=str(product_id), task_id=task_id)
    return generation_log


async def get_log_by_task_id(db: AsyncSession, task_id: str) -> GenerationTask | None:
    result = await db.execute(select(GenerationTask).where(GenerationTask.task_id == task_id))
    return result.scalar_one_or_none()


async def get_logs_by_product_id(db: AsyncSession, product_id: uuid.UUID) -> list[GenerationTask]:
    """Return every log row for a product, newest first."""
    result = await db.execute(
        select(GenerationTask)
        .where(GenerationTask.product_id == product_id)
        .order_by(GenerationTask.created_at.desc())
    )
    return list(result.scalars().all())


async def get_active_generation(db: AsyncSession, product_id: uuid.UUID) -> GenerationTask | None:
    """Return the newest queued or processing row for a product, if any."""
    result = await db.execute(
        select(GenerationTask)
        .where(
            GenerationTask.product_id == product_id,
            GenerationTask.status.in_(ACTIVE_STATUSES),
        )
        .order_by(GenerationTask.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def record_poll(
    db: AsyncSession,
    product_id: uuid.UUID,
    task_id: str,
    status_data: TripoTaskData,
) -> GenerationTask:
    """Apply one status payload to the task's log row.

    Creates the row when submission never recorded it. A row that is
    already terminal is returned unchanged.

    Args:
        db: Session inside an open transaction.
        product_id: Owning product (used only when the row is created).
        task_id: Service task id.
        status_data: Parsed status payload.

    Returns:
        The (possibly new) log row.
    """
    reported = status_data.reported_status
    generation_log = await get_log_by_task_id(db, task_id)

    if generation_log is None:
        generation_log = GenerationTask(
            product_id=product_id,
            task_id=task_id,
            status=reported,
            progress=status_data.progress_or(0),
        )
        db.add(generation_log)
        log.info(
            "generation_log_created_from_poll",
            product_id=str(product_id),
            task_id=task_id,
            status=reported.value,
        )
    elif generation_log.is_terminal:
        log.info(
            "generation_log_already_terminal",
            task_id=task_id,
            status=generation_log.status.value,
            reported_status=reported.value,
        )
        return generation_log
    else:
        if not (
            reported is GenerationStatus.QUEUED
            and generation_log.status is GenerationStatus.PROCESSING
        ):
            generation_log.status = reported
        generation_log.progress = status_data.progress_or(generation_log.progress)

    generation_log.last_response = status_data.raw()
    if status_data.model_url:
        generation_log.pbr_model_url = status_data.model_url
    if status_data.preview_url:
        generation_log.rendered_image_url = status_data.preview_url
    if generation_log.error_message is None and status_data.error_message:
        generation_log.error_message = status_data.error_message

    await db.flush()
    return generation_log


async def mark_timeout(
    db: AsyncSession,
    product_id: uuid.UUID,
    task_id: str,
    message: str,
) -> GenerationTask:
    """Mark a task as timed out by the poller (creates the row when missing).

    A row that already reached another terminal status keeps it.
    """
    generation_log = await get_log_by_task_id(db, task_id)

    if generation_log is None:
        generation_log = GenerationTask(
            product_id=product_id,
            task_id=task_id,
            status=GenerationStatus.TIMEOUT,
            progress=0,
            error_message=message,
        )
        db.add(generation_log)
    elif generation_log.is_terminal:
        log.warning(
            "generation_log_timeout_ignored",
            task_id=task_id,
            status=generation_log.status.value,
        )
        return generation_log
    else:
        generation_log.status = GenerationStatus.TIMEOUT
        if generation_log.error_message is None:
            generation_log.error_message = message

    await db.flush()
    log.warning("generation_log_timed_out", product_id=str(product_id), task_id=task_id)
    return generation_log


async def set_local_asset_path(db: AsyncSession, task_id: str, path: str) -> GenerationTask:
    """Record where the downloaded model was stored.

    The path is written once; later calls leave an existing value alone.

    Raises:
        GenerationLogNotFoundError: If no row exists for task_id.
    """
    generation_log = await get_log_by_task_id(db, task_id)
    if generation_log is None:
        raise GenerationLogNotFoundError(task_id)

    if generation_log.local_asset_path is None:
        generation_log.local_asset_path = path
        await db.flush()
    elif generation_log.local_asset_path != path:
        log.warning(
            "generation_log_asset_path_kept",
            task_id=task_id,
            existing=generation_log.local_asset_path,
            ignored=path,
        )
    return generation_log


async def set_error_message(db: AsyncSession, task_id: str, message: str) -> GenerationTask | None:
    """Record a failure reason on the row if none is stored yet."""
    generation_log = await get_log_by_task_id(db, task_id)
    if generation_log is None:
        return None
    if generation_log.error_message is None:
        generation_log.error_message = message
        await db.flush()
    return generation_log
