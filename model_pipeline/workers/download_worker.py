"""Asset Download Worker.

Fetches the files produced by a successful generation task, stores them
under the static root and points the product at the stored model.

Files:
    {STATIC_ROOT}/3d/products/{product_id}/model.glb     (required)
    {STATIC_ROOT}/3d/products/{product_id}/preview.webp  (required)

Error Handling:
    - Any failure sets phase "download_failed" and re-raises so the job
      layer retries (3 attempts, 2^attempt x 10s backoff)
    - Bodies stream into ".part" files next to the destination; stored
      files are replaced only after both downloads complete
    - When attempts run out, handle_download_exhausted notifies model_failed
"""

import os
import uuid
from pathlib import Path

import httpx

from model_pipeline.constants import model_asset_url
from model_pipeline.exceptions import AssetDownloadError
from model_pipeline.models import ModelGenerationPhase
from model_pipeline.queue import JobContext
from model_pipeline.services.generation_log import set_error_message, set_local_asset_path
from model_pipeline.services.product_state import (
    as_product_id,
    mark_model_completed,
    update_generation_phase,
)
from model_pipeline.utils.filesystem import get_model_path, get_preview_path
from model_pipeline.utils.logging import get_logger
from model_pipeline.workers.dependencies import PipelineDependencies

log = get_logger(__name__)

PART_SUFFIX = ".part"


def staging_path(destination: Path) -> Path:
    """Sibling temp file a download is written to before it is committed."""
    return destination.with_name(destination.name + PART_SUFFIX)


async def stage_file(client: httpx.AsyncClient, url: str | None, destination: Path) -> Path:
    """Stream one remote file into its staging path.

    The staging file is removed if the download fails at any point, so
    ``destination`` itself is never touched here.

    Returns:
        Path of the fully written staging file.

    Raises:
        AssetDownloadError: Missing URL or non-200 response.
        httpx.HTTPError: Transport failure.
    """
    if not url:
        raise AssetDownloadError(f"No URL available for {destination.name}")

    part = staging_path(destination)
    written = 0
    try:
        async with client.stream("GET", url) as response:
            if response.status_code != 200:
                raise AssetDownloadError(
                    f"Download of {destination.name} failed with HTTP {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                )
            with open(part, "wb") as f:  # noqa: ASYNC230
                async for chunk in response.aiter_bytes():
                    f.write(chunk)
                    written += len(chunk)
    except BaseException:
        part.unlink(missing_ok=True)
        raise

    log.info("asset_downloaded", filename=destination.name, bytes=written)
    return part


async def download_file(client: httpx.AsyncClient, url: str | None, destination: Path) -> int:
    """Download one remote file and atomically replace ``destination``.

    Only HTTP 200 counts as success. On failure ``destination`` keeps
    whatever it held before.

    Returns:
        Number of bytes written.
    """
    part = await stage_file(client, url, destination)
    os.replace(part, destination)
    return destination.stat().st_size


async def download_generated_model(ctx: JobContext, deps: PipelineDependencies) -> None:
    """Download model and preview, then mark the product completed.

    Args:
        ctx: Job context with args ``product_id``, ``task_id``,
            ``model_url`` and ``preview_url``.
        deps: Shared pipeline collaborators.
    """
    product_id = as_product_id(ctx.args["product_id"])
    task_id = str(ctx.args["task_id"])
    model_url = ctx.args.get("model_url")
    preview_url = ctx.args.get("preview_url")

    log.info(
        "model_download_started",
        product_id=str(product_id),
        task_id=task_id,
        attempt=ctx.attempt,
    )

    staged: list[tuple[Path, Path]] = []
    try:
        model_path = get_model_path(str(product_id), deps.static_root)
        preview_path = get_preview_path(str(product_id), deps.static_root)
        for url, destination in ((model_url, model_path), (preview_url, preview_path)):
            part = await stage_file(deps.http_client, url, destination)
            staged.append((part, destination))

        # Both bodies are complete; only now overwrite the stored files.
        for part, destination in staged:
            os.replace(part, destination)
        staged.clear()

        asset_url = model_asset_url(str(product_id))
        async with deps.session_factory() as db, db.begin():
            await set_local_asset_path(db, task_id, asset_url)
            await mark_model_completed(db, product_id, asset_url)
    except Exception as e:
        for part, _ in staged:
            part.unlink(missing_ok=True)
        log.error(
            "model_download_failed",
            product_id=str(product_id),
            task_id=task_id,
            attempt=ctx.attempt,
            error=str(e),
            error_type=type(e).__name__,
        )
        await _mark_download_failed(deps, product_id)
        raise

    log.info("model_download_completed", product_id=str(product_id), ar_model_url=asset_url)
    await deps.notifier.model_completed(product_id, asset_url)


async def handle_download_exhausted(
    ctx: JobContext,
    error: BaseException,
    deps: PipelineDependencies,
) -> None:
    """Exhaustion hook: record the last error and tell observers."""
    product_id = ctx.args.get("product_id")
    task_id = ctx.args.get("task_id")
    message = str(error) or type(error).__name__

    if task_id:
        async with deps.session_factory() as db, db.begin():
            await set_error_message(db, str(task_id), message)

    if product_id:
        await deps.notifier.model_failed(product_id, message)


async def _mark_download_failed(deps: PipelineDependencies, product_id: uuid.UUID) -> None:
    try:
        async with deps.session_factory() as db, db.begin():
            await update_generation_phase(db, product_id, ModelGenerationPhase.DOWNLOAD_FAILED)
    except Exception as e:
        log.error(
            "download_failed_phase_not_recorded",
            product_id=str(product_id),
            error=str(e),
        )
