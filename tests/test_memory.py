"""Tests for the in-memory pool backend."""

import pytest

from durable_pool.core.errors import ConfigurationError, ItemTypeError, PoolClosedError
from durable_pool.core.items import IntItem, TextItem
from durable_pool.persistence import MemoryPool, Pool


class TestMemoryPool:
    """Tests for MemoryPool."""

    async def test_open(self) -> None:
        pool = await MemoryPool.open("memory://scratch")
        assert isinstance(pool, Pool)
        assert pool.name == "scratch"
        assert await pool.length() == 0

    async def test_open_requires_name(self) -> None:
        with pytest.raises(ConfigurationError, match="Missing bucket"):
            await MemoryPool.open("memory://")

    async def test_fifo(self) -> None:
        pool = await MemoryPool.open("memory://scratch")
        for i in range(12):
            await pool.push(i)

        popped = [(await pool.pop())[0] for _ in range(12)]

        assert popped == [IntItem(i) for i in range(12)]
        assert await pool.pop() == (None, False)

    async def test_rejects_non_items(self) -> None:
        pool = await MemoryPool.open("memory://scratch")
        with pytest.raises(ItemTypeError):
            await pool.push(object())  # type: ignore[arg-type]
        assert await pool.length() == 0

    async def test_close(self) -> None:
        async with await MemoryPool.open("memory://scratch") as pool:
            await pool.push("a")
            assert await pool.pop() == (TextItem("a"), True)

        assert pool.is_closed
        with pytest.raises(PoolClosedError):
            await pool.push("b")
