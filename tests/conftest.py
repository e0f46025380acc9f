"""Shared pytest fixtures for async database and pipeline testing.

This module provides an in-memory SQLite database (aiosqlite), product
factories, and a fully wired PipelineDependencies whose queue, generation
service, asset host and notification pool are in-memory fakes.
"""

from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from model_pipeline.clients.tripo import TripoClient
from model_pipeline.models import Base, GenerationTask, Product
from model_pipeline.services.notifications import ProductNotifier
from model_pipeline.workers.dependencies import PipelineDependencies
from tests.support.factories import create_product
from tests.support.fakes import (
    TRIPO_BASE_URL,
    AssetServer,
    RecordingScheduler,
    TripoServer,
)


@pytest_asyncio.fixture
async def async_engine():
    """Create an async SQLite engine for testing.

    Uses in-memory SQLite with StaticPool so every session shares one
    connection (and therefore one database). Creates all tables before
    yielding, disposes after.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory matching production configuration (expire_on_commit=False)."""
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def async_session(session_factory):
    """Create an async session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def product_factory(session_factory):
    """Persist a product and return it.

    Example:
        product = await product_factory(primary_image_url="https://x/a.png")
    """

    async def _create(**kwargs) -> Product:
        product = create_product(**kwargs)
        async with session_factory() as db, db.begin():
            db.add(product)
        return product

    return _create


@pytest.fixture
def load_product(session_factory):
    """Reload a product from a fresh session."""

    async def _load(product_id) -> Product:
        async with session_factory() as db:
            return await db.get(Product, product_id)

    return _load


@pytest.fixture
def load_log(session_factory):
    """Reload a generation log row by task id from a fresh session."""
    from model_pipeline.services.generation_log import get_log_by_task_id

    async def _load(task_id: str) -> GenerationTask | None:
        async with session_factory() as db:
            return await get_log_by_task_id(db, task_id)

    return _load


@pytest.fixture
def tripo_server() -> TripoServer:
    return TripoServer()


@pytest.fixture
def asset_server() -> AssetServer:
    return AssetServer()


@pytest.fixture
def notify_pool() -> AsyncMock:
    """Mocked asyncpg pool; pg_notify calls land in notify_pool.execute."""
    pool = AsyncMock()
    pool.execute = AsyncMock(return_value="SELECT 1")
    return pool


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest_asyncio.fixture
async def deps(session_factory, scheduler, notify_pool, tripo_server, asset_server, tmp_path):
    """PipelineDependencies wired to in-memory fakes.

    Static root is tmp_path; poll interval 10s; poll ceiling 60 attempts.
    """
    dependencies = PipelineDependencies(
        session_factory=session_factory,
        scheduler=scheduler,
        notifier=ProductNotifier(notify_pool),
        tripo_client=TripoClient(
            api_key="test-api-key",
            base_url=TRIPO_BASE_URL,
            transport=tripo_server.transport(),
        ),
        http_client=httpx.AsyncClient(transport=asset_server.transport()),
        static_root=tmp_path / "static",
        poll_interval=10,
        poll_max_attempts=60,
    )
    yield dependencies
    await dependencies.close()
