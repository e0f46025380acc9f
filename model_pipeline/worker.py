"""Worker process entry point for the 3D model generation pipeline.

This module runs the PgQueuer loop that executes submission, polling and
download jobs. Several workers may run side by side; PgQueuer claims jobs
with FOR UPDATE SKIP LOCKED so each job runs on exactly one worker.

Architecture Pattern:
    - Separate Process: Each worker runs as independent Python process
    - Async Execution: All database operations use async/await patterns
    - Short Transactions: read → close DB → call network → reopen DB → update
    - Graceful Shutdown: Listens for SIGTERM/SIGINT, stops the queue loop,
      closes HTTP clients, the asyncpg pool and the SQLAlchemy engine

Usage:
    python -m model_pipeline.worker
"""

import asyncio
import signal
import sys
from dataclasses import dataclass

import asyncpg
from pgqueuer import PgQueuer

from model_pipeline.clients.tripo import TripoClient
from model_pipeline.config import (
    get_database_url,
    get_poll_interval_seconds,
    get_poll_max_attempts,
    get_static_root,
    get_tripo_api_key,
    get_worker_id,
)
from model_pipeline.database import async_engine, get_session_factory
from model_pipeline.services.notifications import ProductNotifier
from model_pipeline.utils.logging import get_logger
from model_pipeline.workers.dependencies import PipelineDependencies, create_download_client

log = get_logger(__name__)

# Global references (for cleanup in shutdown)
asyncpg_pool: asyncpg.Pool | None = None
pipeline_deps: PipelineDependencies | None = None
job_queue: PgQueuer | None = None


@dataclass
class WorkerConfig:
    """Worker configuration loaded from environment variables."""

    database_url: str
    worker_id: str
    poll_interval: int
    poll_max_attempts: int


def get_config() -> WorkerConfig:
    """Load and validate worker configuration.

    Raises:
        ValueError: If DATABASE_URL not set.
        ConfigurationError: If TRIPO_API_KEY not set.
    """
    get_tripo_api_key()
    return WorkerConfig(
        database_url=get_database_url(),
        worker_id=get_worker_id(),
        poll_interval=get_poll_interval_seconds(),
        poll_max_attempts=get_poll_max_attempts(),
    )


def request_shutdown(signum: int) -> None:
    """Stop the queue loop after in-flight jobs finish."""
    log.info(
        "shutdown_signal_received",
        signal=signum,
        signal_name=signal.Signals(signum).name,
    )
    if job_queue is not None:
        job_queue.shutdown.set()


async def worker_main_loop(config: WorkerConfig) -> None:
    """Initialize PgQueuer, register entrypoints and run the job loop."""
    global asyncpg_pool, pipeline_deps, job_queue

    log.info("worker_started_with_pgqueuer", worker_id=config.worker_id)

    from model_pipeline.entrypoints import register_entrypoints
    from model_pipeline.queue import initialize_pgqueuer

    try:
        pgq, pool, scheduler = await initialize_pgqueuer()
        asyncpg_pool = pool
        job_queue = pgq

        pipeline_deps = PipelineDependencies(
            session_factory=get_session_factory(),
            scheduler=scheduler,
            notifier=ProductNotifier(pool),
            tripo_client=TripoClient(),
            http_client=create_download_client(),
            static_root=get_static_root(),
            poll_interval=config.poll_interval,
            poll_max_attempts=config.poll_max_attempts,
        )
        register_entrypoints(pgq, pipeline_deps)

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, request_shutdown, signum)

        await pgq.run()

    except asyncio.CancelledError:
        log.info("worker_cancelled", worker_id=config.worker_id)
        raise
    except Exception as e:
        log.error(
            "worker_fatal_error",
            worker_id=config.worker_id,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise
    finally:
        await shutdown_worker()
        log.info("worker_shutdown", worker_id=config.worker_id)


async def shutdown_worker() -> None:
    """Graceful shutdown: close HTTP clients and database connections."""
    global asyncpg_pool, pipeline_deps

    if pipeline_deps is not None:
        await pipeline_deps.close()
        pipeline_deps = None
        log.info("http_clients_closed")

    if asyncpg_pool is not None:
        await asyncpg_pool.close()
        asyncpg_pool = None
        log.info("asyncpg_pool_closed")

    if async_engine is not None:
        await async_engine.dispose()
        log.info("sqlalchemy_engine_closed")


def main() -> None:
    """Worker process entry point.

    Exit Codes:
        0: Successful shutdown (signal received)
        1: Fatal error (configuration invalid, database unreachable)
    """
    try:
        config = get_config()
        # Redact credentials when logging
        database_host = (
            config.database_url.split("@")[-1].split("/")[0]
            if "@" in config.database_url
            else "local"
        )
        log.info(
            "worker_configuration_loaded",
            database_url_host=database_host,
            worker_id=config.worker_id,
            poll_interval=config.poll_interval,
            poll_max_attempts=config.poll_max_attempts,
        )
    except Exception as e:
        log.error("configuration_load_failed", error=str(e))
        sys.exit(1)

    try:
        asyncio.run(worker_main_loop(config))
    except KeyboardInterrupt:
        log.info("worker_interrupted_by_user")
    except Exception as e:
        log.error("worker_exited_with_error", error=str(e))
        sys.exit(1)

    log.info("worker_exited_successfully")


if __name__ == "__main__":
    main()
