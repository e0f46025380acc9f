"""Tests for the worker process entry point.

This module tests:
- Configuration loading and validation
- Signal-driven shutdown of the queue loop
- Resource cleanup on shutdown
"""

import signal
from unittest.mock import AsyncMock, MagicMock

import pytest

from model_pipeline import worker
from model_pipeline.config import get_database_url, get_tripo_api_key
from model_pipeline.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clear_config_cache():
    get_database_url.cache_clear()
    get_tripo_api_key.cache_clear()
    yield
    get_database_url.cache_clear()
    get_tripo_api_key.cache_clear()


class TestGetConfig:
    def test_p1_loads_configuration(self, monkeypatch: pytest.MonkeyPatch):
        """[P1] Should load URL, worker id and polling settings."""
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/catalog")
        monkeypatch.setenv("TRIPO_API_KEY", "tsk_test")
        monkeypatch.setenv("WORKER_ID", "worker-3")
        monkeypatch.setenv("STATUS_POLL_INTERVAL_SECONDS", "5")
        monkeypatch.delenv("STATUS_POLL_MAX_ATTEMPTS", raising=False)

        config = worker.get_config()

        assert config.database_url == "postgresql+asyncpg://u:p@db:5432/catalog"
        assert config.worker_id == "worker-3"
        assert config.poll_interval == 5
        assert config.poll_max_attempts == 60

    def test_p1_requires_api_key(self, monkeypatch: pytest.MonkeyPatch):
        """[P1] Should refuse to start without TRIPO_API_KEY."""
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/catalog")
        monkeypatch.delenv("TRIPO_API_KEY", raising=False)

        with pytest.raises(ConfigurationError):
            worker.get_config()

    def test_p1_requires_database_url(self, monkeypatch: pytest.MonkeyPatch):
        """[P1] Should refuse to start without DATABASE_URL."""
        monkeypatch.setenv("TRIPO_API_KEY", "tsk_test")
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(ValueError):
            worker.get_config()


def test_request_shutdown_stops_queue(monkeypatch: pytest.MonkeyPatch):
    pgq = MagicMock()
    monkeypatch.setattr(worker, "job_queue", pgq)

    worker.request_shutdown(signal.SIGTERM)

    pgq.shutdown.set.assert_called_once()


def test_request_shutdown_before_start(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(worker, "job_queue", None)

    worker.request_shutdown(signal.SIGINT)


@pytest.mark.asyncio
async def test_shutdown_worker_closes_resources(monkeypatch: pytest.MonkeyPatch, mocker):
    deps = MagicMock()
    deps.close = AsyncMock()
    pool = MagicMock()
    pool.close = AsyncMock()
    engine = MagicMock()
    engine.dispose = AsyncMock()
    monkeypatch.setattr(worker, "pipeline_deps", deps)
    monkeypatch.setattr(worker, "asyncpg_pool", pool)
    mocker.patch("model_pipeline.worker.async_engine", engine)

    await worker.shutdown_worker()

    deps.close.assert_awaited_once()
    pool.close.assert_awaited_once()
    engine.dispose.assert_awaited_once()
    assert worker.pipeline_deps is None
    assert worker.asyncpg_pool is None


def test_main_exits_on_invalid_configuration(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("TRIPO_API_KEY", raising=False)

    with pytest.raises(SystemExit) as exc_info:
        worker.main()

    assert exc_info.value.code == 1
