"""Logging and tracing."""

from durable_pool.observability.logging import (
    get_logger,
    reset_logging,
    setup_logging,
)
from durable_pool.observability.tracing import (
    get_tracer,
    reset_tracing,
    setup_tracing,
    traced_async,
)

__all__ = [
    "get_logger",
    "get_tracer",
    "reset_logging",
    "reset_tracing",
    "setup_logging",
    "setup_tracing",
    "traced_async",
]
