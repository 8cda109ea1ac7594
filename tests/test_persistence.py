"""Tests for the durable pool backend."""

from __future__ import annotations

import asyncio
import os
import sqlite3
import stat
from typing import TYPE_CHECKING, Any

import pytest

from durable_pool.core.errors import (
    CodecError,
    ConfigurationError,
    ItemTypeError,
    PoolClosedError,
    StoreError,
)
from durable_pool.core.items import BytesItem, IntItem, TextItem
from durable_pool.core.keys import format_key
from durable_pool.persistence import DurablePool, Pool

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


def _stored_keys(path: Path, bucket: str) -> list[bytes]:
    """Read a bucket's record keys straight from the store file."""
    conn = sqlite3.connect(path)
    try:
        rows = conn.execute(
            "SELECT key FROM records WHERE bucket = ? ORDER BY key", (bucket,)
        ).fetchall()
    finally:
        conn.close()
    return [bytes(row[0]) for row in rows]


def _insert_record(path: Path, bucket: str, key: bytes, value: bytes) -> None:
    """Write a record straight into the store file."""
    conn = sqlite3.connect(path)
    try:
        with conn:
            conn.execute(
                "INSERT INTO records (bucket, key, value) VALUES (?, ?, ?)", (bucket, key, value)
            )
    finally:
        conn.close()


class _FailingScan:
    """Wraps a cursor context so iteration fails after some rows."""

    def __init__(self, result: Any, fail_after: int) -> None:
        self._result = result
        self._fail_after = fail_after

    async def __aenter__(self) -> _FailingScan:
        self._cursor = await self._result.__aenter__()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self._result.__aexit__(*args)

    async def __aiter__(self) -> AsyncIterator[Any]:
        seen = 0
        async for row in self._cursor:
            if seen == self._fail_after:
                raise sqlite3.OperationalError("disk I/O error")
            seen += 1
            yield row


class TestDurablePool:
    """Tests for push, pop and length."""

    @pytest.fixture
    async def pool(self, pool_uri: str) -> AsyncIterator[DurablePool]:
        """Open a pool on a fresh store file."""
        pool = await DurablePool.open(pool_uri)
        yield pool
        await pool.close()

    async def test_satisfies_protocol(self, pool: DurablePool) -> None:
        assert isinstance(pool, Pool)
        assert pool.bucket == "test"
        assert pool.codec.name == "tagged"

    async def test_push_pop_scenario(self, pool: DurablePool) -> None:
        """Items come back first in, first out."""
        await pool.push("a")
        await pool.push("b")
        assert await pool.length() == 2

        assert await pool.pop() == (TextItem("a"), True)
        assert await pool.length() == 1

        assert await pool.pop() == (TextItem("b"), True)
        assert await pool.length() == 0

        assert await pool.pop() == (None, False)

    async def test_empty_pop(self, pool: DurablePool) -> None:
        """Popping an empty pool is not an error and changes nothing."""
        assert await pool.pop() == (None, False)
        assert await pool.length() == 0
        assert await pool.pop() == (None, False)

    async def test_order_across_digit_boundaries(self, pool: DurablePool) -> None:
        """Sequence numbers 9 -> 10 and 99 -> 100 keep push order."""
        for i in range(120):
            await pool.push(i)

        popped = []
        while True:
            item, found = await pool.pop()
            if not found:
                break
            assert item is not None
            popped.append(item.as_int())

        assert popped == list(range(120))

    async def test_length_after_pushes_and_pops(self, pool: DurablePool) -> None:
        for i in range(7):
            await pool.push(i)
        for _ in range(3):
            await pool.pop()

        assert await pool.length() == 4
        assert await pool.count() == 4

    async def test_item_types_round_trip(self, pool: DurablePool) -> None:
        items = [TextItem("héllo"), IntItem(-(2**70)), BytesItem(b"\x00\xff"), TextItem("")]
        for item in items:
            await pool.push(item)

        for expected in items:
            assert await pool.pop() == (expected, True)

    async def test_sequence_never_reused(self, pool: DurablePool, store_path: Path) -> None:
        """Keys keep growing even after the bucket is drained."""
        for value in ("a", "b", "c"):
            await pool.push(value)
        for _ in range(3):
            await pool.pop()

        await pool.push("d")

        assert _stored_keys(store_path, "test") == [format_key(4)]

    async def test_push_codec_error_writes_nothing(self, pool: DurablePool) -> None:
        await pool.push("a")

        with pytest.raises(ItemTypeError):
            await pool.push(1.5)  # type: ignore[arg-type]

        assert await pool.length() == 1
        assert await pool.pop() == (TextItem("a"), True)

    async def test_concurrent_pushes_and_pops(self, pool: DurablePool) -> None:
        """Concurrent pops never hand out the same record."""
        await asyncio.gather(*(pool.push(i) for i in range(30)))
        assert await pool.length() == 30

        results = await asyncio.gather(*(pool.pop() for _ in range(30)))

        values = [item.as_int() for item, found in results if found and item is not None]
        assert sorted(values) == list(range(30))
        assert await pool.length() == 0

    async def test_length_returns_partial_count_on_scan_failure(
        self, pool: DurablePool, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A scan that fails part way is rolled back and counted so far."""
        for i in range(5):
            await pool.push(i)

        reader = pool._reader
        assert reader is not None
        assert reader is not pool._writer
        real_execute = reader.execute

        def execute(sql: str, parameters: Any = None) -> Any:
            result = real_execute(sql, parameters)
            if sql.lstrip().startswith("SELECT"):
                return _FailingScan(result, fail_after=2)
            return result

        monkeypatch.setattr(reader, "execute", execute)

        assert await pool.length() == 2
        assert not reader.in_transaction

        with pytest.raises(StoreError, match="count") as exc_info:
            await pool.count()
        assert exc_info.value.step == "count"
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
        assert not reader.in_transaction

        monkeypatch.undo()
        assert await pool.count() == 5

    async def test_push_oversized_integer(self, pool: DurablePool, store_path: Path) -> None:
        with pytest.raises(CodecError):
            await pool.push(IntItem(10**5000))

        assert await pool.length() == 0
        await pool.push(1)
        assert _stored_keys(store_path, "test") == [format_key(1)]

    async def test_closed_pool(self, pool: DurablePool) -> None:
        await pool.close()
        assert pool.is_closed

        with pytest.raises(PoolClosedError):
            await pool.push("a")
        with pytest.raises(PoolClosedError):
            await pool.pop()
        with pytest.raises(PoolClosedError):
            await pool.length()

        # Closing twice is harmless
        await pool.close()


class TestOpen:
    """Tests for opening stores and buckets."""

    async def test_creates_owner_only_file(self, pool_uri: str, store_path: Path) -> None:
        async with await DurablePool.open(pool_uri):
            pass

        mode = stat.S_IMODE(os.stat(store_path).st_mode)
        assert mode == 0o600

    async def test_keeps_existing_file_mode(self, pool_uri: str, store_path: Path) -> None:
        store_path.touch()
        os.chmod(store_path, 0o640)

        async with await DurablePool.open(pool_uri):
            pass

        assert stat.S_IMODE(os.stat(store_path).st_mode) == 0o640

    async def test_items_survive_reopen(self, pool_uri: str) -> None:
        async with await DurablePool.open(pool_uri) as pool:
            await pool.push("a")
            await pool.push(2)

        async with await DurablePool.open(pool_uri) as pool:
            assert await pool.length() == 2
            assert await pool.pop() == (TextItem("a"), True)
            assert await pool.pop() == (IntItem(2), True)

    async def test_buckets_are_isolated(self, store_path: Path) -> None:
        async with (
            await DurablePool.open(f"durable://left?dsn={store_path}") as left,
            await DurablePool.open(f"durable://right?dsn={store_path}") as right,
        ):
            await left.push("l")
            assert await right.length() == 0
            assert await right.pop() == (None, False)
            assert await left.pop() == (TextItem("l"), True)

    async def test_in_memory_store(self) -> None:
        async with await DurablePool.open("durable://scratch?dsn=:memory:") as pool:
            await pool.push("a")
            assert await pool.length() == 1
            assert await pool.pop() == (TextItem("a"), True)

    @pytest.mark.parametrize(
        ("uri", "message"),
        [
            ("durable://?dsn=pool.db", "Missing bucket"),
            ("durable://test", "Missing dsn"),
            ("durable://test?dsn=", "Missing dsn"),
        ],
    )
    async def test_configuration_errors(self, uri: str, message: str) -> None:
        with pytest.raises(ConfigurationError, match=message):
            await DurablePool.open(uri)

    async def test_unopenable_store(self, tmp_path: Path) -> None:
        with pytest.raises(StoreError) as exc_info:
            await DurablePool.open(f"durable://test?dsn={tmp_path / 'missing' / 'pool.db'}")
        assert exc_info.value.step == "open"

    async def test_directory_as_store(self, tmp_path: Path) -> None:
        with pytest.raises(StoreError) as exc_info:
            await DurablePool.open(f"durable://test?dsn={tmp_path}")
        assert exc_info.value.step == "open"

    async def test_not_a_database(self, store_path: Path) -> None:
        store_path.write_bytes(b"this is not an sqlite database" * 100)
        os.chmod(store_path, 0o600)

        with pytest.raises(StoreError):
            await DurablePool.open(f"durable://test?dsn={store_path}")


class TestDecodeFailure:
    """A pop that cannot decode its record leaves the store unchanged."""

    async def test_pop_rolls_back(self, store_path: Path) -> None:
        # Write a record the tagged codec cannot read
        async with await DurablePool.open(f"durable://test?dsn={store_path}&codec=text") as pool:
            await pool.push("oops")

        async with await DurablePool.open(f"durable://test?dsn={store_path}") as pool:
            with pytest.raises(CodecError):
                await pool.pop()
            assert await pool.length() == 1
            with pytest.raises(CodecError):
                await pool.pop()
            assert await pool.length() == 1

    async def test_oversized_integer_record(self, pool_uri: str, store_path: Path) -> None:
        async with await DurablePool.open(pool_uri) as pool:
            record = b'{"kind":"integer","value":' + b"1" * 5000 + b"}"
            _insert_record(store_path, "test", format_key(1), record)
            with pytest.raises(CodecError):
                await pool.pop()
            assert await pool.length() == 1

    async def test_malformed_key(self, pool_uri: str, store_path: Path) -> None:
        async with await DurablePool.open(pool_uri) as pool:
            _insert_record(store_path, "test", b"not-a-key", b'{"kind":"text","value":"a"}')
            with pytest.raises(CodecError, match="Malformed record key"):
                await pool.pop()
            assert _stored_keys(store_path, "test") == [b"not-a-key"]

    async def test_text_codec_scenario(self, store_path: Path) -> None:
        async with await DurablePool.open(f"durable://test?dsn={store_path}&codec=text") as pool:
            await pool.push("a")
            await pool.push(12)
            assert await pool.pop() == (TextItem("a"), True)
            assert await pool.pop() == (IntItem(12), True)
