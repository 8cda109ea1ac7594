"""Exception hierarchy for pools and their backends."""

from __future__ import annotations


class PoolError(Exception):
    """Base exception for pool errors."""


class ConfigurationError(PoolError):
    """Raised when a connection URI or pool option is invalid."""


class StoreError(PoolError):
    """Raised when the underlying store fails during a named step.

    Attributes:
        step: The step that failed (e.g., "open", "begin", "commit").
        cause: The original exception, if any.
    """

    def __init__(self, step: str, cause: BaseException | None = None) -> None:
        self.step = step
        self.cause = cause
        message = f"Store failure during {step}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class CodecError(PoolError):
    """Raised when an item cannot be encoded or stored bytes cannot be decoded."""


class ItemTypeError(CodecError, TypeError):
    """Raised when a value is not (and cannot become) a pool item."""

    def __init__(self, value: object, expected: str = "str, int or bytes") -> None:
        self.value = value
        super().__init__(f"Expected {expected}, got {type(value).__name__}")


class PoolClosedError(PoolError):
    """Raised when operating on a pool that has been closed."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Pool is closed: {name}")
