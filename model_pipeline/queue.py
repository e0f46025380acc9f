"""PgQueuer initialization and job execution policy.

This module handles PgQueuer setup with an asyncpg connection pool and adds
the small amount of job semantics the pipeline needs on top of it.

Job Envelope:
    PgQueuer payloads are opaque bytes. Every pipeline job carries a JSON
    envelope:

        {"args": {"product_id": "...", "task_id": "..."}, "attempt": 1}

    ``attempt`` counts failed executions. It is carried in the payload
    because PgQueuer does not track attempts itself.

Rescheduling:
    - defer(): same args, same attempt, after a delay ("not done yet")
    - retry(): same args, attempt + 1, after a backoff delay ("that failed")

Execution Policy (per entrypoint):
    - max_attempts: executions allowed before giving up
    - timeout_seconds: wall-clock limit for a single execution
    - backoff: delay before the next attempt, indexed by the failed attempt
    - on_exhausted: hook run once when the job gives up

Usage:
    from model_pipeline.queue import initialize_pgqueuer

    pgq, pool, scheduler = await initialize_pgqueuer()
    await scheduler.enqueue("submit_model_generation", {"product_id": "..."})
    await pgq.run()

References:
    - PgQueuer Documentation: https://pgqueuer.readthedocs.io/
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import asyncpg
from pgqueuer import PgQueuer
from pgqueuer.db import AsyncpgPoolDriver
from pgqueuer.models import Job
from pgqueuer.qm import QueueManager
from pgqueuer.queries import Queries

from model_pipeline.config import get_database_url
from model_pipeline.exceptions import NoProductImageError, ProductNotFoundError
from model_pipeline.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class JobContext:
    """One execution of a pipeline job.

    Attributes:
        entrypoint: PgQueuer entrypoint name.
        args: Job arguments (JSON-serializable).
        attempt: 1-based count of executions, incremented only by retry().
        job_id: PgQueuer job id, when the job came from the queue.
    """

    entrypoint: str
    args: dict[str, Any] = field(default_factory=dict)
    attempt: int = 1
    job_id: int | None = None


def encode_payload(args: dict[str, Any], attempt: int = 1) -> bytes:
    return json.dumps({"args": args, "attempt": attempt}, sort_keys=True).encode()


def decode_job(job: Job) -> JobContext:
    """Unwrap a PgQueuer job into a JobContext.

    Raises:
        ValueError: If the payload is missing or not a valid envelope.
    """
    if job.payload is None:
        raise ValueError("Job payload is None")
    if not isinstance(job.payload, bytes):
        raise ValueError(f"Job payload must be bytes, got {type(job.payload)}")

    try:
        envelope = json.loads(job.payload.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Job payload is not valid JSON: {e}") from e

    if not isinstance(envelope, dict) or not isinstance(envelope.get("args"), dict):
        raise ValueError("Job payload must be an object with an 'args' object")

    attempt = envelope.get("attempt", 1)
    if not isinstance(attempt, int) or isinstance(attempt, bool) or attempt < 1:
        raise ValueError(f"Invalid attempt in job payload: {attempt!r}")

    return JobContext(
        entrypoint=job.entrypoint,
        args=envelope["args"],
        attempt=attempt,
        job_id=int(job.id),
    )


class JobScheduler:
    """Durable enqueue / defer / retry on top of PgQueuer queries.

    Args:
        queries: pgqueuer Queries bound to the asyncpg pool (anything with
            a compatible async ``enqueue``).
    """

    def __init__(self, queries: Queries) -> None:
        self.queries = queries

    async def enqueue(
        self,
        entrypoint: str,
        args: dict[str, Any],
        attempt: int = 1,
        delay_seconds: float = 0,
    ) -> int | None:
        """Durably enqueue a job, optionally delayed.

        Returns:
            The PgQueuer job id.
        """
        job_ids = await self.queries.enqueue(
            entrypoint,
            encode_payload(args, attempt),
            priority=0,
            execute_after=timedelta(seconds=delay_seconds),
        )
        log.info(
            "job_enqueued",
            entrypoint=entrypoint,
            attempt=attempt,
            delay_seconds=delay_seconds,
            **_log_args(args),
        )
        return int(job_ids[0]) if job_ids else None

    async def defer(self, ctx: JobContext, delay_seconds: float) -> int | None:
        """Run the same job again later without consuming an attempt."""
        return await self.enqueue(ctx.entrypoint, ctx.args, ctx.attempt, delay_seconds)

    async def retry(self, ctx: JobContext, delay_seconds: float) -> int | None:
        """Run the job again after a failure, consuming one attempt."""
        return await self.enqueue(ctx.entrypoint, ctx.args, ctx.attempt + 1, delay_seconds)


def _log_args(args: dict[str, Any]) -> dict[str, Any]:
    # Only identifiers go to logs; URLs may carry signed query strings
    return {key: args[key] for key in ("product_id", "task_id") if key in args}


ExhaustionHook = Callable[[JobContext, BaseException], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry/timeout policy for one entrypoint."""

    max_attempts: int
    timeout_seconds: float
    backoff: Callable[[int], float]
    on_exhausted: ExhaustionHook | None = None


def is_retriable_error(error: BaseException) -> bool:
    """Classify error as retriable or non-retriable.

    Classification:
        - Non-retriable: ValueError, KeyError, ProductNotFoundError, NoProductImageError
        - Retriable: network errors, timeouts, service errors, and unknown errors
    """
    non_retriable_errors = (
        ValueError,  # Invalid input data
        KeyError,  # Missing required data
        ProductNotFoundError,
        NoProductImageError,
    )
    return not isinstance(error, non_retriable_errors)


async def execute_job(
    ctx: JobContext,
    handler: Callable[[JobContext], Awaitable[None]],
    policy: RetryPolicy,
    scheduler: JobScheduler,
) -> None:
    """Run one job execution under its policy.

    Failures never propagate to PgQueuer: a retriable failure below the
    attempt ceiling is re-enqueued with backoff, anything else runs the
    exhaustion hook. Cancellation is propagated.
    """
    try:
        await asyncio.wait_for(handler(ctx), timeout=policy.timeout_seconds)
        return
    except Exception as e:
        error: Exception = e

    if isinstance(error, asyncio.TimeoutError):
        error = TimeoutError(f"Job exceeded {policy.timeout_seconds}s execution timeout")

    retriable = is_retriable_error(error)
    if retriable and ctx.attempt < policy.max_attempts:
        delay = policy.backoff(ctx.attempt)
        log.warning(
            "job_retry_scheduled",
            entrypoint=ctx.entrypoint,
            attempt=ctx.attempt,
            max_attempts=policy.max_attempts,
            delay_seconds=delay,
            error=str(error),
            error_type=type(error).__name__,
            **_log_args(ctx.args),
        )
        await scheduler.retry(ctx, delay)
        return

    log.error(
        "job_failed",
        entrypoint=ctx.entrypoint,
        attempt=ctx.attempt,
        max_attempts=policy.max_attempts,
        is_retriable=retriable,
        error=str(error),
        error_type=type(error).__name__,
        **_log_args(ctx.args),
    )
    if policy.on_exhausted is None:
        return

    try:
        await policy.on_exhausted(ctx, error)
    except Exception as hook_error:
        log.error(
            "job_exhaustion_hook_failed",
            entrypoint=ctx.entrypoint,
            error=str(hook_error),
            error_type=type(hook_error).__name__,
            exc_info=True,
            **_log_args(ctx.args),
        )


async def initialize_pgqueuer() -> tuple[PgQueuer, asyncpg.Pool, JobScheduler]:
    """Create the asyncpg pool, install the PgQueuer schema and build the queue.

    Returns:
        tuple[PgQueuer, asyncpg.Pool, JobScheduler]

    Raises:
        ValueError: If DATABASE_URL not set
        asyncpg.PostgresError: If database connection fails
    """
    # asyncpg wants the plain postgresql:// scheme
    database_url = get_database_url().replace("postgresql+asyncpg://", "postgresql://", 1)

    log.info("initializing_asyncpg_pool", min_size=2, max_size=10, timeout=30)
    pool = await asyncpg.create_pool(
        dsn=database_url,
        min_size=2,
        max_size=10,
        timeout=30,  # Connection acquire timeout (seconds)
        command_timeout=60,
    )

    driver = AsyncpgPoolDriver(pool)

    log.info("installing_pgqueuer_schema")
    try:
        await QueueManager(driver).queries.install()
        log.info("pgqueuer_schema_installed")
    except (asyncpg.exceptions.DuplicateTableError, asyncpg.exceptions.DuplicateObjectError):
        log.info("pgqueuer_schema_already_installed")

    pgq = PgQueuer(driver)
    scheduler = JobScheduler(Queries(driver))

    log.info("pgqueuer_initialized")
    return pgq, pool, scheduler
