"""Model Generation Submission Worker.

Entry point of the pipeline. ``request_model_generation`` is called by
the catalog (or scripts/request_model_generation.py) and only enqueues;
the submission job does the actual work:

    1. Load product and pick its source image (short read)
    2. Create the task at the generation service (OUTSIDE transaction)
    3. Create the log row and store the task id (short transaction)
    4. Enqueue the first status poll and announce generation_started

Error Handling:
    - ProductNotFoundError / NoProductImageError: non-retriable, fails at once
    - Gateway errors: retried (3 attempts, attempt^2 x 60s backoff)
    - On giving up: phase "failed" and model_failed notification
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from model_pipeline.config import is_model_generation_enabled
from model_pipeline.constants import POLL_ENTRYPOINT, SUBMIT_ENTRYPOINT
from model_pipeline.exceptions import ProductNotFoundError
from model_pipeline.models import ModelGenerationPhase
from model_pipeline.queue import JobContext, JobScheduler
from model_pipeline.services.generation_log import create_log
from model_pipeline.services.product_state import (
    as_product_id,
    get_product,
    select_source_image,
    set_tripo_task_id,
    update_generation_phase,
)
from model_pipeline.utils.logging import get_logger
from model_pipeline.workers.dependencies import PipelineDependencies

log = get_logger(__name__)


async def request_model_generation(
    product_id: uuid.UUID | str,
    session_factory: async_sessionmaker[AsyncSession],
    scheduler: JobScheduler,
) -> int | None:
    """Request 3D model generation for a product.

    When generation is switched off (TRIPO_ENABLED=false or
    SKIP_3D_MODEL_GENERATION=true) the product phase becomes "disabled"
    and nothing is enqueued.

    Returns:
        The submission job id, or None when generation is disabled.

    Raises:
        ProductNotFoundError: If the product does not exist.
    """
    product_id = as_product_id(product_id)

    if not is_model_generation_enabled():
        async with session_factory() as db, db.begin():
            await update_generation_phase(db, product_id, ModelGenerationPhase.DISABLED)
        log.info("model_generation_disabled", product_id=str(product_id))
        return None

    async with session_factory() as db:
        await get_product(db, product_id)

    job_id = await scheduler.enqueue(SUBMIT_ENTRYPOINT, {"product_id": str(product_id)})

    async with session_factory() as db, db.begin():
        await update_generation_phase(db, product_id, ModelGenerationPhase.QUEUED)

    log.info("model_generation_queued", product_id=str(product_id), job_id=job_id)
    return job_id


async def submit_model_generation(ctx: JobContext, deps: PipelineDependencies) -> None:
    """Submit a product image to the generation service and start polling.

    Args:
        ctx: Job context with arg ``product_id``.
        deps: Shared pipeline collaborators.
    """
    product_id = as_product_id(ctx.args["product_id"])

    # Step 1: Load product (short read)
    async with deps.session_factory() as db:
        product = await get_product(db, product_id)
        image_url = select_source_image(product)

    log.info("model_submission_started", product_id=str(product_id), attempt=ctx.attempt)

    # Step 2: Create the task (OUTSIDE transaction)
    task_id, request_payload = await deps.tripo_client.submit_task(image_url)

    # Step 3: Record the task (short transaction)
    async with deps.session_factory() as db, db.begin():
        await create_log(db, product_id, task_id, request_payload)
        await set_tripo_task_id(db, product_id, task_id)

    # Step 4: Hand off to the poller and announce
    await deps.scheduler.enqueue(
        POLL_ENTRYPOINT,
        {"product_id": str(product_id), "task_id": task_id},
    )
    await deps.notifier.generation_started(product_id, task_id)

    log.info("model_submission_completed", product_id=str(product_id), task_id=task_id)


async def handle_submission_exhausted(
    ctx: JobContext,
    error: BaseException,
    deps: PipelineDependencies,
) -> None:
    """Exhaustion hook: mark the product failed and tell observers."""
    raw_product_id = ctx.args.get("product_id")
    if not raw_product_id:
        return

    message = str(error) or type(error).__name__
    try:
        async with deps.session_factory() as db, db.begin():
            await update_generation_phase(db, raw_product_id, ModelGenerationPhase.FAILED)
    except (ProductNotFoundError, ValueError) as e:
        log.warning("submission_failure_not_recorded", product_id=str(raw_product_id), error=str(e))

    await deps.notifier.model_failed(raw_product_id, message)
