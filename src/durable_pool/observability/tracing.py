"""OpenTelemetry tracing for pool operations."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Tracer

from durable_pool import __version__

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from durable_pool.core.config import TracingSettings

_tracer: Tracer | None = None
_provider: TracerProvider | None = None
_initialized: bool = False

P = ParamSpec("P")
T = TypeVar("T")


def setup_tracing(settings: TracingSettings) -> None:
    """Initialize OpenTelemetry tracing.

    Args:
        settings: Tracing configuration settings.
    """
    global _tracer, _provider, _initialized  # noqa: PLW0603

    if _initialized:
        return

    if not settings.enabled:
        _initialized = True
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": __version__,
        }
    )
    provider = TracerProvider(resource=resource)

    if settings.otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )

            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
            )
        except ImportError:
            # The OTLP exporter is an optional extra
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    else:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _provider = provider
    _tracer = provider.get_tracer("durable_pool", __version__)
    _initialized = True


def get_tracer() -> Tracer:
    """Get the configured tracer, or a no-op tracer if not initialized."""
    if _tracer is None:
        return trace.get_tracer("durable_pool", __version__)
    return _tracer


def reset_tracing() -> None:
    """Flush and shut down the provider, then reset tracing state.

    Useful for testing: pending spans are exported while the output
    streams are still open.
    """
    global _tracer, _provider, _initialized  # noqa: PLW0603
    if _provider is not None:
        _provider.shutdown()
    _provider = None
    _tracer = None
    _initialized = False


def traced_async(
    operation_name: str | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator to trace an async function.

    Args:
        operation_name: Optional custom name for the span.
            Defaults to the function's qualified name.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        span_name = operation_name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            tracer = get_tracer()
            with tracer.start_as_current_span(span_name):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
