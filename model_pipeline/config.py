"""Configuration management for the generation pipeline.

This module provides centralized configuration loading from environment variables.
Required values are cached after the first successful read.

Environment Variables:
    DATABASE_URL: PostgreSQL connection URL (required)
    TRIPO_API_URL: Generation service base URL (default: https://api.tripo3d.ai)
    TRIPO_API_KEY: Bearer token for the generation service (required by the gateway)
    TRIPO_ENABLED: Master switch for 3D model generation (default: true)
    SKIP_3D_MODEL_GENERATION: Debug switch that skips generation (default: false)
    TRIPO_SUBMIT_TIMEOUT_SECONDS: Receive timeout for task submission (default: 60)
    TRIPO_STATUS_TIMEOUT_SECONDS: Receive timeout for one status poll (default: 30)
    TRIPO_DOWNLOAD_TIMEOUT_SECONDS: Receive timeout for one asset download (default: 120)
    STATUS_POLL_INTERVAL_SECONDS: Delay between polls of a running task (default: 10)
    STATUS_POLL_MAX_ATTEMPTS: Failed polls tolerated before timing out (default: 60)
    STATIC_ROOT: Directory served as static web root (default: /app/static)
    WORKER_ID: Name used in worker logs (default: worker-local)

Usage:
    from model_pipeline.config import get_tripo_api_key, get_static_root

    api_key = get_tripo_api_key()  # Raises ConfigurationError if not set
    static_root = get_static_root()
"""

import os
from functools import lru_cache
from pathlib import Path

import structlog

from model_pipeline.exceptions import ConfigurationError

log = structlog.get_logger(__name__)

DEFAULT_TRIPO_API_URL = "https://api.tripo3d.ai"
DEFAULT_SUBMIT_TIMEOUT_SECONDS = 60.0
DEFAULT_STATUS_TIMEOUT_SECONDS = 30.0
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 120.0
DEFAULT_POLL_INTERVAL_SECONDS = 10
DEFAULT_POLL_MAX_ATTEMPTS = 60

_TRUTHY = {"1", "true", "yes", "on"}


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUTHY


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        log.warning("invalid_config_value", name=name, value=value, using_default=default)
        return default
    if parsed <= 0:
        log.warning("invalid_config_value", name=name, value=value, using_default=default)
        return default
    return parsed


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        log.warning("invalid_config_value", name=name, value=value, using_default=default)
        return default
    if parsed <= 0:
        log.warning("invalid_config_value", name=name, value=value, using_default=default)
        return default
    return parsed


@lru_cache
def get_database_url() -> str:
    """Get database URL from environment.

    Converts postgresql:// to postgresql+asyncpg:// for async SQLAlchemy.

    Returns:
        Database URL with asyncpg driver.

    Raises:
        ValueError: If DATABASE_URL not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def get_tripo_api_url() -> str:
    """Get the generation service base URL (no trailing slash)."""
    return os.getenv("TRIPO_API_URL", DEFAULT_TRIPO_API_URL).rstrip("/")


@lru_cache
def get_tripo_api_key() -> str:
    """Get the generation service bearer token.

    Returns:
        API key string.

    Raises:
        ConfigurationError: If TRIPO_API_KEY not set.
    """
    key = os.getenv("TRIPO_API_KEY")
    if not key:
        raise ConfigurationError("TRIPO_API_KEY environment variable is required")
    return key


def is_model_generation_enabled() -> bool:
    """Check whether 3D model generation may run.

    Generation runs only when TRIPO_ENABLED is on and the debug switch
    SKIP_3D_MODEL_GENERATION is off.

    Returns:
        True if generation requests should be submitted.
    """
    return _get_bool("TRIPO_ENABLED", True) and not _get_bool("SKIP_3D_MODEL_GENERATION", False)


def get_submit_timeout() -> float:
    """Receive timeout in seconds for creating a generation task."""
    return _get_float("TRIPO_SUBMIT_TIMEOUT_SECONDS", DEFAULT_SUBMIT_TIMEOUT_SECONDS)


def get_status_timeout() -> float:
    """Receive timeout in seconds for one status query."""
    return _get_float("TRIPO_STATUS_TIMEOUT_SECONDS", DEFAULT_STATUS_TIMEOUT_SECONDS)


def get_download_timeout() -> float:
    """Receive timeout in seconds for downloading one generated file."""
    return _get_float("TRIPO_DOWNLOAD_TIMEOUT_SECONDS", DEFAULT_DOWNLOAD_TIMEOUT_SECONDS)


def get_poll_interval_seconds() -> int:
    """Get delay between status polls of a task that is still running.

    Environment Variable:
        STATUS_POLL_INTERVAL_SECONDS: Polling interval (default: 10)

    Returns:
        Poll interval in seconds (minimum 1, maximum 300).
    """
    interval = _get_int("STATUS_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS)
    return max(1, min(300, interval))


def get_poll_max_attempts() -> int:
    """Get the number of failed poll executions tolerated before a task times out.

    Only executions that fail (network error, bad payload) count. Polls
    that find the task still running are rescheduled without counting.
    """
    return _get_int("STATUS_POLL_MAX_ATTEMPTS", DEFAULT_POLL_MAX_ATTEMPTS)


def get_static_root() -> Path:
    """Get the static web root that generated assets are written under.

    Environment Variable:
        STATIC_ROOT: Base path for served files (default: "/app/static")
    """
    return Path(os.getenv("STATIC_ROOT", "/app/static"))


def get_worker_id() -> str:
    """Get the worker name used in logs."""
    return os.getenv("WORKER_ID", "worker-local")
