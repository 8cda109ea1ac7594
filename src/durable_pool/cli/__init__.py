"""Command-line interface for durable-pool."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import click

from durable_pool.core.config import get_settings
from durable_pool.core.errors import PoolError
from durable_pool.core.items import BytesItem, IntItem, TextItem, item_to_dict
from durable_pool.core.registry import RegistryError, get_global_registry
from durable_pool.observability import setup_logging, setup_tracing

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Coroutine
    from typing import Any

    from durable_pool.core.items import PoolItem
    from durable_pool.persistence.protocol import Pool


def _run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run an async function synchronously."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        # Already inside a loop (e.g., pytest-asyncio): run on a fresh thread
        import concurrent.futures

        with concurrent.futures.ThreadPoolExecutor() as pool:
            future = pool.submit(asyncio.run, coro)
            return future.result()
    else:
        return asyncio.run(coro)


@asynccontextmanager
async def _opened(uri: str) -> AsyncIterator[Pool]:
    pool = await get_global_registry().open(uri)
    try:
        yield pool
    finally:
        close = getattr(pool, "close", None)
        if close is not None:
            await close()


def _resolve_uri(ctx: click.Context, uri: str | None) -> str:
    if uri:
        return uri
    default = get_settings(ctx.obj.get("config_path")).pool.default_uri
    if not default:
        raise click.UsageError("No pool URI given and pool.default_uri is not configured.")
    return default


def _parse_value(raw: str, kind: str) -> PoolItem:
    if kind == "int":
        try:
            return IntItem(int(raw, 10))
        except ValueError as e:
            raise click.BadParameter(f"not an integer: {raw!r}") from e
    if kind == "hex":
        try:
            return BytesItem(bytes.fromhex(raw))
        except ValueError as e:
            raise click.BadParameter(f"not hex: {raw!r}") from e
    return TextItem(raw)


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    try:
        return _run_async(coro)
    except (PoolError, RegistryError) as e:
        raise click.ClickException(str(e)) from e


uri_option = click.option(
    "--uri",
    "-u",
    default=None,
    help="Pool connection URI, e.g. durable://jobs?dsn=pool.db.",
)


@click.group()
@click.version_option(package_name="durable-pool")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to config file.",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None) -> None:
    """durable-pool: a FIFO item pool on an embedded store."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = str(config) if config else None

    settings = get_settings(ctx.obj["config_path"])
    setup_logging(settings.general)
    setup_tracing(settings.tracing)


@main.command()
@uri_option
@click.option(
    "--type",
    "kind",
    type=click.Choice(["text", "int", "hex"]),
    default="text",
    show_default=True,
    help="How to interpret VALUES.",
)
@click.argument("values", nargs=-1, required=True)
@click.pass_context
def push(ctx: click.Context, uri: str | None, kind: str, values: tuple[str, ...]) -> None:
    """Push VALUES onto the pool, in order."""
    items = [_parse_value(raw, kind) for raw in values]
    resolved = _resolve_uri(ctx, uri)

    async def do_push() -> None:
        async with _opened(resolved) as pool:
            for item in items:
                await pool.push(item)

    _run(do_push())
    click.echo(f"Pushed {len(items)} item(s)")


@main.command()
@uri_option
@click.option("--all", "drain", is_flag=True, help="Pop until the pool is empty.")
@click.pass_context
def pop(ctx: click.Context, uri: str | None, drain: bool) -> None:
    """Pop the oldest item (or all items) and print them as JSON lines."""
    resolved = _resolve_uri(ctx, uri)

    async def do_pop() -> list[PoolItem]:
        popped: list[PoolItem] = []
        async with _opened(resolved) as pool:
            while True:
                item, found = await pool.pop()
                if not found or item is None:
                    break
                popped.append(item)
                if not drain:
                    break
        return popped

    popped = _run(do_pop())
    for item in popped:
        click.echo(json.dumps(item_to_dict(item)))

    if not popped:
        click.echo("Pool is empty", err=True)
        ctx.exit(1)


@main.command()
@uri_option
@click.option("--strict", is_flag=True, help="Fail instead of returning a partial count.")
@click.pass_context
def length(ctx: click.Context, uri: str | None, strict: bool) -> None:
    """Print the number of items in the pool."""
    resolved = _resolve_uri(ctx, uri)

    async def do_length() -> int:
        async with _opened(resolved) as pool:
            count = getattr(pool, "count", None)
            if strict and count is not None:
                result: int = await count()
                return result
            return await pool.length()

    click.echo(str(_run(do_length())))


@main.command()
def backends() -> None:
    """List registered pool backends."""
    for scheme in get_global_registry().list_schemes():
        click.echo(scheme)


if __name__ == "__main__":
    main()
