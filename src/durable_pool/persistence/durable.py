"""Durable pool backend.

Implements the Pool protocol on top of SQLite, accessed through aiosqlite.
SQLite is used as a transactional ordered map:

- ``buckets`` holds one row per bucket with its sequence counter. The
  counter only ever grows, so keys are never reused even after pops.
- ``records`` is clustered on ``(bucket, key)``. Keys are fixed-width
  sequence numbers, so the smallest key of a bucket is its oldest item.

Writes take SQLite's writer lock up front (``BEGIN IMMEDIATE``); a pop reads
and deletes the head record in the same write transaction, so two pops can
never hand out the same record. Length walks the bucket on a separate
read connection and sees a consistent snapshot without waiting on writers.
"""

from __future__ import annotations

import asyncio
import os
import sqlite3
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import aiosqlite

from durable_pool.core.codec import ItemCodec, get_codec
from durable_pool.core.config import ConnectionConfig
from durable_pool.core.errors import PoolClosedError, StoreError
from durable_pool.core.items import PoolItem, to_item
from durable_pool.core.keys import format_key, parse_key
from durable_pool.observability import get_logger, traced_async

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

STORE_FILE_MODE = 0o600
MEMORY_DSN = ":memory:"

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS buckets (
        name TEXT PRIMARY KEY,
        sequence INTEGER NOT NULL DEFAULT 0
    ) WITHOUT ROWID
    """,
    """
    CREATE TABLE IF NOT EXISTS records (
        bucket TEXT NOT NULL,
        key BLOB NOT NULL,
        value BLOB NOT NULL,
        PRIMARY KEY (bucket, key)
    ) WITHOUT ROWID
    """,
)


def _ensure_store_file(dsn: str) -> None:
    """Create the store file readable and writable by its owner only.

    An existing file is left as it is.
    """
    fd = os.open(dsn, os.O_RDWR | os.O_CREAT, STORE_FILE_MODE)
    os.close(fd)


async def _connect(dsn: str, busy_timeout: float) -> aiosqlite.Connection:
    # isolation_level=None: transactions are opened and closed explicitly
    return await aiosqlite.connect(dsn, timeout=busy_timeout, isolation_level=None)


async def _rollback(db: aiosqlite.Connection) -> None:
    """Roll back an open transaction, logging rather than masking failures."""
    if not db.in_transaction:
        return
    try:
        await db.execute("ROLLBACK")
    except sqlite3.Error as e:
        logger.warning("pool.rollback_failed", error=str(e))


class DurablePool:
    """SQLite implementation of the Pool protocol.

    Example:
        pool = await DurablePool.open("durable://jobs?dsn=/var/lib/app/pool.db")
        await pool.push("a")
        item, found = await pool.pop()
        await pool.close()
    """

    def __init__(
        self,
        writer: aiosqlite.Connection,
        reader: aiosqlite.Connection,
        bucket: str,
        codec: ItemCodec,
    ) -> None:
        """Initialize with open store connections.

        Use DurablePool.open() instead of calling this directly.
        """
        self._writer: aiosqlite.Connection | None = writer
        self._reader: aiosqlite.Connection | None = reader
        self._bucket = bucket
        self._codec = codec
        self._write_lock = asyncio.Lock()
        # An in-memory store has a single connection shared by both paths
        self._read_lock = self._write_lock if reader is writer else asyncio.Lock()
        self._log = logger.bind(bucket=bucket)

    @classmethod
    @traced_async("pool.open")
    async def open(cls, uri: str) -> DurablePool:
        """Open (creating if needed) the store and bucket named by a URI.

        Args:
            uri: ``<scheme>://<bucket>?dsn=<path>``. Optional query
                parameters: ``codec`` (default "tagged") and
                ``busy_timeout`` in seconds (default 5).

        Returns:
            A ready pool.

        Raises:
            ConfigurationError: If the URI is invalid.
            StoreError: If the store cannot be opened or the bucket created.
                The store handle is closed before raising.
        """
        config = ConnectionConfig.from_uri(uri)
        codec = get_codec(config.codec)
        in_memory = config.dsn == MEMORY_DSN

        try:
            if not in_memory:
                _ensure_store_file(config.dsn)
            writer = await _connect(config.dsn, config.busy_timeout)
        except (OSError, sqlite3.Error) as e:
            raise StoreError("open", e) from e

        reader = writer
        try:
            if not in_memory:
                await writer.execute("PRAGMA journal_mode = WAL")
            await cls._create_bucket(writer, config.bucket)
            if not in_memory:
                reader = await _connect(config.dsn, config.busy_timeout)
        except BaseException as e:
            await writer.close()
            if isinstance(e, sqlite3.Error):
                raise StoreError("open", e) from e
            raise

        logger.info(
            "pool.opened",
            bucket=config.bucket,
            dsn=config.dsn,
            codec=codec.name,
        )
        return cls(writer, reader, config.bucket, codec)

    @staticmethod
    async def _create_bucket(db: aiosqlite.Connection, bucket: str) -> None:
        """Create the schema and the bucket row in one write transaction."""
        try:
            await db.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise StoreError("begin", e) from e

        try:
            for statement in SCHEMA:
                await db.execute(statement)
            await db.execute(
                "INSERT OR IGNORE INTO buckets (name, sequence) VALUES (?, 0)",
                (bucket,),
            )
        except BaseException as e:
            await _rollback(db)
            if isinstance(e, sqlite3.Error):
                raise StoreError("create_bucket", e) from e
            raise

        try:
            await db.execute("COMMIT")
        except sqlite3.Error as e:
            await _rollback(db)
            raise StoreError("commit", e) from e

    @property
    def bucket(self) -> str:
        """Name of the bucket this pool reads and writes."""
        return self._bucket

    @property
    def codec(self) -> ItemCodec:
        """Codec used to store items."""
        return self._codec

    @property
    def is_closed(self) -> bool:
        """Whether the pool has been closed."""
        return self._writer is None

    def _connections(self) -> tuple[aiosqlite.Connection, aiosqlite.Connection]:
        if self._writer is None or self._reader is None:
            raise PoolClosedError(self._bucket)
        return self._writer, self._reader

    @asynccontextmanager
    async def _write_transaction(self, step: str) -> AsyncIterator[aiosqlite.Connection]:
        """Run the body in one write transaction.

        The transaction commits if the body succeeds and rolls back on any
        exception. Store errors are raised as StoreError(step); other
        exceptions (codec errors, cancellation) propagate unchanged.
        """
        async with self._write_lock:
            db, _ = self._connections()
            try:
                await db.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreError("begin", e) from e

            try:
                yield db
            except BaseException as e:
                await _rollback(db)
                if isinstance(e, sqlite3.Error):
                    raise StoreError(step, e) from e
                raise

            try:
                await db.execute("COMMIT")
            except sqlite3.Error as e:
                await _rollback(db)
                raise StoreError("commit", e) from e

    async def _next_sequence(self, db: aiosqlite.Connection) -> int:
        await db.execute(
            "UPDATE buckets SET sequence = sequence + 1 WHERE name = ?",
            (self._bucket,),
        )
        async with db.execute(
            "SELECT sequence FROM buckets WHERE name = ?",
            (self._bucket,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise StoreError("sequence", LookupError(f"Bucket not found: {self._bucket}"))
        seq: int = row[0]
        return seq

    @traced_async("pool.push")
    async def push(self, item: PoolItem | str | int | bytes) -> None:
        """Append an item under the bucket's next sequence number.

        Raises:
            CodecError: If the item cannot be encoded. Nothing is written.
            StoreError: If the write transaction fails. Nothing is written.
        """
        async with self._write_transaction("push") as db:
            value = self._codec.deflate(to_item(item))
            seq = await self._next_sequence(db)
            await db.execute(
                "INSERT INTO records (bucket, key, value) VALUES (?, ?, ?)",
                (self._bucket, format_key(seq), value),
            )
        self._log.debug("pool.pushed", sequence=seq)

    @traced_async("pool.pop")
    async def pop(self) -> tuple[PoolItem | None, bool]:
        """Remove and return the item with the smallest key.

        Returns:
            ``(item, True)``, or ``(None, False)`` if the bucket is empty.

        Raises:
            CodecError: If the stored key or value cannot be decoded. The
                record is left in place.
            StoreError: If the transaction fails.
        """
        item: PoolItem | None = None
        async with self._write_transaction("pop") as db:
            async with db.execute(
                "SELECT key, value FROM records WHERE bucket = ? ORDER BY key LIMIT 1",
                (self._bucket,),
            ) as cursor:
                row = await cursor.fetchone()

            if row is not None:
                key, value = row
                seq = parse_key(bytes(key))
                try:
                    item = self._codec.inflate(bytes(value))
                except Exception:
                    self._log.warning("pool.pop_decode_failed", sequence=seq)
                    raise
                await db.execute(
                    "DELETE FROM records WHERE bucket = ? AND key = ?",
                    (self._bucket, key),
                )

        if item is None:
            return None, False
        self._log.debug("pool.popped", sequence=seq)
        return item, True

    async def _walk(self) -> tuple[int, sqlite3.Error | None]:
        """Count the bucket's records, first key to last, in a read transaction.

        Returns:
            The number of records seen and the error that stopped the walk,
            if any.
        """
        count = 0
        async with self._read_lock:
            _, db = self._connections()
            try:
                await db.execute("BEGIN")
                async with db.execute(
                    "SELECT key FROM records WHERE bucket = ? ORDER BY key",
                    (self._bucket,),
                ) as cursor:
                    async for _row in cursor:
                        count += 1
                await db.execute("COMMIT")
            except sqlite3.Error as e:
                await _rollback(db)
                return count, e
        return count, None

    async def length(self) -> int:
        """Return the number of records in the bucket.

        Never raises for store failures: the walk stops at the first error,
        which is logged, and the records counted so far are returned. Use
        count() to have failures raised instead.
        """
        count, error = await self._walk()
        if error is not None:
            self._log.warning("pool.length_scan_failed", error=str(error), partial_count=count)
        return count

    async def count(self) -> int:
        """Return the number of records in the bucket.

        Raises:
            StoreError: If the walk fails.
        """
        count, error = await self._walk()
        if error is not None:
            raise StoreError("count", error) from error
        return count

    async def close(self) -> None:
        """Close the store connections. Closing twice is a no-op."""
        writer, reader = self._writer, self._reader
        if writer is None:
            return
        self._writer = None
        self._reader = None

        # Wait for in-flight transactions before closing their connections
        async with self._write_lock:
            await writer.close()
        if reader is not None and reader is not writer:
            async with self._read_lock:
                await reader.close()

        self._log.info("pool.closed")

    # Context manager support

    async def __aenter__(self) -> DurablePool:
        """Enter async context."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context, closing the pool."""
        await self.close()
