"""PgQueuer entrypoint definitions for the generation pipeline.

This module binds each pipeline step to a PgQueuer entrypoint and to its
execution policy. Every entrypoint decodes the job envelope and runs the
handler through ``execute_job``, so retries, timeouts and give-up hooks
are handled here rather than by PgQueuer.

Entrypoints:
    - submit_model_generation: 3 attempts, 2 min timeout, attempt^2 x 60s backoff
    - poll_generation_status: STATUS_POLL_MAX_ATTEMPTS attempts, 30s timeout,
      fixed poll-interval backoff
    - download_generated_model: 3 attempts, 3 min timeout, 2^attempt x 10s backoff

References:
    - Architecture: Short Transaction Pattern
    - PgQueuer Documentation: https://pgqueuer.readthedocs.io/
"""

from collections.abc import Awaitable, Callable
from functools import partial

from pgqueuer import PgQueuer
from pgqueuer.models import Job

from model_pipeline.constants import DOWNLOAD_ENTRYPOINT, POLL_ENTRYPOINT, SUBMIT_ENTRYPOINT
from model_pipeline.queue import JobContext, RetryPolicy, decode_job, execute_job
from model_pipeline.utils.logging import get_logger
from model_pipeline.workers.dependencies import PipelineDependencies
from model_pipeline.workers.download_worker import (
    download_generated_model,
    handle_download_exhausted,
)
from model_pipeline.workers.status_poller_worker import (
    handle_poll_exhausted,
    poll_generation_status,
)
from model_pipeline.workers.submission_worker import (
    handle_submission_exhausted,
    submit_model_generation,
)

log = get_logger(__name__)

SUBMIT_MAX_ATTEMPTS = 3
SUBMIT_TIMEOUT_SECONDS = 120
POLL_TIMEOUT_SECONDS = 30
DOWNLOAD_MAX_ATTEMPTS = 3
DOWNLOAD_TIMEOUT_SECONDS = 180

Handler = Callable[[JobContext, PipelineDependencies], Awaitable[None]]


def build_policies(deps: PipelineDependencies) -> dict[str, tuple[Handler, RetryPolicy]]:
    """Map each entrypoint name to its handler and execution policy."""
    poll_interval = deps.poll_interval
    return {
        SUBMIT_ENTRYPOINT: (
            submit_model_generation,
            RetryPolicy(
                max_attempts=SUBMIT_MAX_ATTEMPTS,
                timeout_seconds=SUBMIT_TIMEOUT_SECONDS,
                backoff=lambda attempt: attempt * attempt * 60,
                on_exhausted=partial(handle_submission_exhausted, deps=deps),
            ),
        ),
        POLL_ENTRYPOINT: (
            poll_generation_status,
            RetryPolicy(
                max_attempts=deps.poll_max_attempts,
                timeout_seconds=POLL_TIMEOUT_SECONDS,
                backoff=lambda attempt: poll_interval,
                on_exhausted=partial(handle_poll_exhausted, deps=deps),
            ),
        ),
        DOWNLOAD_ENTRYPOINT: (
            download_generated_model,
            RetryPolicy(
                max_attempts=DOWNLOAD_MAX_ATTEMPTS,
                timeout_seconds=DOWNLOAD_TIMEOUT_SECONDS,
                backoff=lambda attempt: (2**attempt) * 10,
                on_exhausted=partial(handle_download_exhausted, deps=deps),
            ),
        ),
    }


async def dispatch_job(
    job: Job,
    handler: Handler,
    policy: RetryPolicy,
    deps: PipelineDependencies,
) -> None:
    """Decode a PgQueuer job and run it under its policy.

    A payload that cannot be decoded is logged and dropped; there is
    nothing meaningful to retry.
    """
    try:
        ctx = decode_job(job)
    except ValueError as e:
        log.error(
            "job_payload_invalid",
            entrypoint=job.entrypoint,
            pgqueuer_job_id=str(job.id),
            error=str(e),
        )
        return

    log.info(
        "job_claimed",
        entrypoint=ctx.entrypoint,
        attempt=ctx.attempt,
        pgqueuer_job_id=str(job.id),
    )
    await execute_job(ctx, partial(handler, deps=deps), policy, deps.scheduler)


def register_entrypoints(pgq: PgQueuer, deps: PipelineDependencies) -> None:
    """Register all entrypoints with PgQueuer instance.

    This function must be called after PgQueuer is initialized.

    Args:
        pgq: Initialized PgQueuer instance
        deps: Collaborators shared by every job handler
    """
    for name, (handler, policy) in build_policies(deps).items():
        pgq.entrypoint(name)(_make_entrypoint(handler, policy, deps))
        log.info(
            "entrypoint_registered",
            entrypoint=name,
            max_attempts=policy.max_attempts,
            timeout_seconds=policy.timeout_seconds,
        )


def _make_entrypoint(
    handler: Handler,
    policy: RetryPolicy,
    deps: PipelineDependencies,
) -> Callable[[Job], Awaitable[None]]:
    async def entrypoint(job: Job) -> None:
        await dispatch_job(job, handler, policy, deps)

    return entrypoint
