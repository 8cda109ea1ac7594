"""Pool backend registry.

The registry maps connection URI schemes to backend constructors.
Constructors are async callables that take the full connection URI and
return an opened pool. Nothing is registered at import time: callers
populate a registry explicitly, usually with register_default_backends().
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from durable_pool.core.errors import ConfigurationError

if TYPE_CHECKING:
    from durable_pool.persistence.protocol import Pool

# Type alias for backend constructors
PoolConstructor = Callable[[str], Awaitable["Pool"]]


class RegistryError(Exception):
    """Base exception for registry errors."""


class SchemeNotFoundError(RegistryError):
    """Raised when no backend is registered for a scheme."""

    def __init__(self, scheme: str) -> None:
        self.scheme = scheme
        super().__init__(f"No pool backend registered for scheme: {scheme}")


class SchemeAlreadyRegisteredError(RegistryError):
    """Raised when registering a scheme that already has a backend."""

    def __init__(self, scheme: str) -> None:
        self.scheme = scheme
        super().__init__(f"Scheme already registered: {scheme}")


class InvalidConstructorError(RegistryError):
    """Raised when a constructor doesn't meet requirements."""


def _normalize(scheme: str) -> str:
    return scheme.strip().lower()


def _validate_constructor(constructor: PoolConstructor, scheme: str) -> None:
    if not callable(constructor):
        raise InvalidConstructorError(f"Constructor for '{scheme}' is not callable")

    if not inspect.iscoroutinefunction(constructor):
        raise InvalidConstructorError(f"Constructor for '{scheme}' must be an async function")


@dataclass
class PoolRegistry:
    """Registry of pool backends keyed by URI scheme.

    Example:
        registry = PoolRegistry()
        register_default_backends(registry)

        pool = await registry.open("durable://jobs?dsn=pool.db")
    """

    _constructors: dict[str, PoolConstructor] = field(default_factory=dict)

    def register(
        self,
        scheme: str,
        constructor: PoolConstructor,
        *,
        replace: bool = False,
    ) -> None:
        """Register a backend constructor.

        Args:
            scheme: URI scheme (case-insensitive).
            constructor: Async callable taking the URI and returning a pool.
            replace: If True, replace an existing registration.

        Raises:
            SchemeAlreadyRegisteredError: If scheme exists and replace=False.
            InvalidConstructorError: If constructor is not an async callable.
        """
        key = _normalize(scheme)
        if not key:
            raise InvalidConstructorError("Scheme must not be empty")
        _validate_constructor(constructor, key)

        if key in self._constructors and not replace:
            raise SchemeAlreadyRegisteredError(key)

        self._constructors[key] = constructor

    def get(self, scheme: str) -> PoolConstructor:
        """Get the constructor for a scheme.

        Raises:
            SchemeNotFoundError: If scheme is not registered.
        """
        key = _normalize(scheme)
        if key not in self._constructors:
            raise SchemeNotFoundError(key)
        return self._constructors[key]

    def has(self, scheme: str) -> bool:
        """Check if a scheme is registered."""
        return _normalize(scheme) in self._constructors

    def list_schemes(self) -> list[str]:
        """List all registered schemes."""
        return sorted(self._constructors.keys())

    def unregister(self, scheme: str) -> bool:
        """Unregister a scheme.

        Returns:
            True if the scheme was unregistered, False if not found.
        """
        key = _normalize(scheme)
        if key in self._constructors:
            del self._constructors[key]
            return True
        return False

    def clear(self) -> None:
        """Remove all registered backends."""
        self._constructors.clear()

    async def open(self, uri: str) -> Pool:
        """Open a pool with the backend registered for the URI's scheme.

        Raises:
            ConfigurationError: If the URI has no scheme.
            SchemeNotFoundError: If the scheme is not registered.
        """
        try:
            scheme = urlsplit(uri).scheme
        except (TypeError, ValueError, AttributeError) as e:
            msg = f"Invalid connection URI: {uri!r}"
            raise ConfigurationError(msg) from e
        if not scheme:
            msg = f"Missing scheme in connection URI: {uri!r}"
            raise ConfigurationError(msg)

        constructor = self.get(scheme)
        return await constructor(uri)

    def __len__(self) -> int:
        """Return number of registered backends."""
        return len(self._constructors)

    def __contains__(self, scheme: str) -> bool:
        """Check if scheme is registered."""
        return self.has(scheme)


def register_default_backends(registry: PoolRegistry, *, replace: bool = False) -> None:
    """Register the built-in backends.

    ``durable`` and its alias ``sqlite`` open a DurablePool; ``memory``
    opens a MemoryPool.
    """
    from durable_pool.persistence.durable import DurablePool
    from durable_pool.persistence.memory import MemoryPool

    registry.register("durable", DurablePool.open, replace=replace)
    registry.register("sqlite", DurablePool.open, replace=replace)
    registry.register("memory", MemoryPool.open, replace=replace)


# Global registry instance
_global_registry: PoolRegistry | None = None


def get_global_registry() -> PoolRegistry:
    """Get the global registry, creating it with the built-in backends if needed."""
    global _global_registry  # noqa: PLW0603
    if _global_registry is None:
        registry = PoolRegistry()
        register_default_backends(registry)
        _global_registry = registry
    return _global_registry


def reset_global_registry() -> None:
    """Drop the global registry. Useful for testing."""
    global _global_registry  # noqa: PLW0603
    _global_registry = None


async def new_pool(uri: str) -> Pool:
    """Open a pool through the global registry."""
    return await get_global_registry().open(uri)
