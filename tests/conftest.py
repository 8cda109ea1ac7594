"""Shared fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from durable_pool.core.config import clear_settings_cache
from durable_pool.core.registry import reset_global_registry
from durable_pool.observability import reset_logging, reset_tracing

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


@pytest.fixture(autouse=True)
def clean_state() -> Generator[None, None, None]:
    """Reset process-wide caches before and after each test."""
    clear_settings_cache()
    reset_global_registry()
    yield
    clear_settings_cache()
    reset_global_registry()
    reset_logging()
    reset_tracing()


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Path of a store file that does not exist yet."""
    return tmp_path / "pool.db"


@pytest.fixture
def pool_uri(store_path: Path) -> str:
    """Connection URI for a bucket in a fresh store."""
    return f"durable://test?dsn={store_path}"
