"""Pool protocol.

Defines the capability contract shared by every pool backend. Methods are
async so that backends doing I/O never block the event loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from durable_pool.core.items import PoolItem


@runtime_checkable
class Pool(Protocol):
    """Protocol for pool backends.

    A pool hands items back in the order they were pushed.
    """

    async def push(self, item: PoolItem | str | int | bytes) -> None:
        """Add an item to the pool.

        Args:
            item: A pool item, or a plain value coerced into one.

        Raises:
            CodecError: If the item cannot be encoded.
        """
        ...

    async def pop(self) -> tuple[PoolItem | None, bool]:
        """Remove and return the oldest item.

        Returns:
            ``(item, True)`` if an item was removed, ``(None, False)`` if the
            pool was empty.
        """
        ...

    async def length(self) -> int:
        """Return the number of items currently in the pool."""
        ...
