"""Status Poller Worker.

This module drives one generation task from submission to a terminal
outcome by polling the generation service. Each execution performs a
single poll and then either hands off, finishes, or reschedules itself.

State Machine (reported status → action):
    success                       → phase "downloading", enqueue the download
    failed / cancelled / timeout  → phase "failed", notify model_failed
    queued / processing / unknown → deferred retry after the poll interval

Attempt Accounting:
    Deferred retries keep the attempt counter. Only failed executions
    (network errors, non-zero envelope codes, malformed payloads) consume
    an attempt. When the counter reaches the ceiling the task is marked
    "timeout" instead of failing again.

Transaction Pattern:
    1. Read the log row (short read, duplicate-delivery check)
    2. Query the service (OUTSIDE transaction)
    3. Record the poll and phase change (one short transaction)
    4. Enqueue follow-up job / notify (after commit)
"""

import uuid

import httpx

from model_pipeline.constants import DOWNLOAD_ENTRYPOINT, POLL_TIMEOUT_MESSAGE
from model_pipeline.exceptions import ProductNotFoundError, TripoAPIError
from model_pipeline.models import GenerationStatus, ModelGenerationPhase, Product
from model_pipeline.queue import JobContext
from model_pipeline.services.generation_log import get_log_by_task_id, mark_timeout, record_poll
from model_pipeline.services.product_state import as_product_id, update_generation_phase
from model_pipeline.utils.logging import get_logger
from model_pipeline.workers.dependencies import PipelineDependencies

log = get_logger(__name__)

FAILURE_STATUSES = frozenset(
    {
        GenerationStatus.FAILED,
        GenerationStatus.CANCELLED,
        GenerationStatus.TIMEOUT,
    }
)

GATEWAY_ERRORS = (httpx.HTTPError, TripoAPIError)


async def poll_generation_status(ctx: JobContext, deps: PipelineDependencies) -> None:
    """Poll one task once and act on the reported status.

    Args:
        ctx: Job context with args ``product_id`` and ``task_id``.
        deps: Shared pipeline collaborators.

    Raises:
        httpx.HTTPError | TripoAPIError: Gateway failure below the attempt
            ceiling (the job layer retries with the poll interval).
    """
    product_id = as_product_id(ctx.args["product_id"])
    task_id = str(ctx.args["task_id"])

    # Step 1: Duplicate delivery check (short read)
    async with deps.session_factory() as db:
        existing = await get_log_by_task_id(db, task_id)

    if existing is not None and existing.is_terminal:
        if existing.status is GenerationStatus.SUCCESS and existing.local_asset_path is None:
            log.info("poll_redispatching_download", product_id=str(product_id), task_id=task_id)
            await _enqueue_download(
                deps, product_id, task_id, existing.pbr_model_url, existing.rendered_image_url
            )
        else:
            log.info(
                "poll_skipped_terminal_task",
                product_id=str(product_id),
                task_id=task_id,
                status=existing.status.value,
            )
        return

    # Step 2: Query the service (OUTSIDE transaction)
    try:
        status_data = await deps.tripo_client.get_task_status(task_id)
    except GATEWAY_ERRORS as e:
        if ctx.attempt >= deps.poll_max_attempts:
            log.error(
                "poll_attempts_exhausted",
                product_id=str(product_id),
                task_id=task_id,
                attempt=ctx.attempt,
                error=str(e),
            )
            await handle_poll_timeout(deps, product_id, task_id)
            return
        log.warning(
            "poll_request_failed",
            product_id=str(product_id),
            task_id=task_id,
            attempt=ctx.attempt,
            max_attempts=deps.poll_max_attempts,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise

    reported = status_data.reported_status
    log.info(
        "poll_status_received",
        product_id=str(product_id),
        task_id=task_id,
        status=status_data.status,
        progress=status_data.progress,
        attempt=ctx.attempt,
    )

    # Step 3: Record poll and phase change (one short transaction)
    error_message: str | None = None
    async with deps.session_factory() as db, db.begin():
        generation_log = await record_poll(db, product_id, task_id, status_data)

        if reported is GenerationStatus.SUCCESS:
            await update_generation_phase(db, product_id, ModelGenerationPhase.DOWNLOADING)
        elif reported in FAILURE_STATUSES:
            error_message = status_data.error_message or status_data.status or reported.value
            if generation_log.error_message is None:
                generation_log.error_message = error_message
            await update_generation_phase(db, product_id, ModelGenerationPhase.FAILED)

    # Step 4: Follow-up (after commit)
    if reported is GenerationStatus.SUCCESS:
        await _enqueue_download(
            deps, product_id, task_id, status_data.model_url, status_data.preview_url
        )
        log.info("poll_task_succeeded", product_id=str(product_id), task_id=task_id)
        return

    if reported in FAILURE_STATUSES:
        log.warning(
            "poll_task_failed",
            product_id=str(product_id),
            task_id=task_id,
            status=status_data.status,
            error=error_message,
        )
        await deps.notifier.model_failed(product_id, error_message or reported.value)
        return

    log.info(
        "poll_deferred",
        product_id=str(product_id),
        task_id=task_id,
        status=reported.value,
        delay_seconds=deps.poll_interval,
    )
    await deps.scheduler.defer(ctx, deps.poll_interval)


async def handle_poll_timeout(
    deps: PipelineDependencies,
    product_id: uuid.UUID,
    task_id: str,
) -> None:
    """Mark a task timed out and tell observers."""
    async with deps.session_factory() as db, db.begin():
        if await db.get(Product, product_id) is None:
            log.warning("poll_timeout_product_missing", product_id=str(product_id), task_id=task_id)
            return
        await mark_timeout(db, product_id, task_id, POLL_TIMEOUT_MESSAGE)
        await update_generation_phase(db, product_id, ModelGenerationPhase.TIMEOUT)

    await deps.notifier.model_failed(product_id, "timeout")


async def handle_poll_exhausted(
    ctx: JobContext,
    error: BaseException,
    deps: PipelineDependencies,
) -> None:
    """Exhaustion hook: a poll gave up through a non-gateway failure."""
    try:
        product_id = as_product_id(ctx.args["product_id"])
        task_id = str(ctx.args["task_id"])
    except (KeyError, ValueError):
        log.error("poll_exhausted_invalid_args", args=ctx.args, error=str(error))
        return

    try:
        await handle_poll_timeout(deps, product_id, task_id)
    except ProductNotFoundError:
        log.warning("poll_timeout_product_missing", product_id=str(product_id), task_id=task_id)


async def _enqueue_download(
    deps: PipelineDependencies,
    product_id: uuid.UUID,
    task_id: str,
    model_url: str | None,
    preview_url: str | None,
) -> None:
    await deps.scheduler.enqueue(
        DOWNLOAD_ENTRYPOINT,
        {
            "product_id": str(product_id),
            "task_id": task_id,
            "model_url": model_url,
            "preview_url": preview_url,
        },
    )
