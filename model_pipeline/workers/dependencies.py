"""Shared collaborators handed to every job handler.

The worker process builds one PipelineDependencies at startup; tests
build one around an in-memory database, an httpx.MockTransport and a
recording scheduler.
"""

from dataclasses import dataclass, field
from pathlib import Path

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from model_pipeline.clients.tripo import TripoClient
from model_pipeline.config import (
    get_download_timeout,
    get_poll_interval_seconds,
    get_poll_max_attempts,
    get_static_root,
)
from model_pipeline.queue import JobScheduler
from model_pipeline.services.notifications import ProductNotifier


def create_download_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """HTTP client used to fetch generated files (redirects followed)."""
    return httpx.AsyncClient(
        timeout=get_download_timeout(),
        follow_redirects=True,
        transport=transport,
    )


@dataclass
class PipelineDependencies:
    """Collaborators and tunables for the pipeline jobs.

    Attributes:
        session_factory: Async SQLAlchemy session factory.
        scheduler: Job scheduler used to enqueue follow-up jobs.
        notifier: Notification channel publisher.
        tripo_client: Generation service gateway.
        http_client: Client used for asset downloads.
        static_root: Root directory assets are written under.
        poll_interval: Seconds between polls of a running task.
        poll_max_attempts: Failed poll executions tolerated before timing out.
    """

    session_factory: async_sessionmaker[AsyncSession]
    scheduler: JobScheduler
    notifier: ProductNotifier
    tripo_client: TripoClient
    http_client: httpx.AsyncClient
    static_root: Path = field(default_factory=get_static_root)
    poll_interval: int = field(default_factory=get_poll_interval_seconds)
    poll_max_attempts: int = field(default_factory=get_poll_max_attempts)

    async def close(self) -> None:
        """Close the HTTP clients (pool and engine are owned by the worker)."""
        await self.tripo_client.close()
        await self.http_client.aclose()
