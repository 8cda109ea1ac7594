"""In-memory pool backend.

Same contract as the durable backend, without persistence. Items live only
as long as the pool object.
"""

from __future__ import annotations

import asyncio
from collections import deque

from durable_pool.core.config import ConnectionConfig
from durable_pool.core.errors import PoolClosedError
from durable_pool.core.items import PoolItem, to_item


class MemoryPool:
    """FIFO pool held in a deque.

    Example:
        pool = await MemoryPool.open("memory://scratch")
        await pool.push(42)
        item, found = await pool.pop()
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._items: deque[PoolItem] = deque()
        self._lock = asyncio.Lock()
        self._closed = False

    @classmethod
    async def open(cls, uri: str) -> MemoryPool:
        """Create an empty pool named by the URI's authority.

        Raises:
            ConfigurationError: If the URI has no name.
        """
        config = ConnectionConfig.from_uri(uri, require_dsn=False)
        return cls(config.bucket)

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise PoolClosedError(self._name)

    async def push(self, item: PoolItem | str | int | bytes) -> None:
        self._check_open()
        converted = to_item(item)
        async with self._lock:
            self._items.append(converted)

    async def pop(self) -> tuple[PoolItem | None, bool]:
        self._check_open()
        async with self._lock:
            if not self._items:
                return None, False
            return self._items.popleft(), True

    async def length(self) -> int:
        self._check_open()
        return len(self._items)

    async def close(self) -> None:
        self._closed = True
        self._items.clear()

    async def __aenter__(self) -> MemoryPool:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
