"""Item codecs.

A codec converts pool items to the bytes written to the store (deflate) and
stored bytes back into items (inflate). Codecs are looked up by name so a
pool can select one from its connection URI.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass

from durable_pool.core.errors import CodecError, ConfigurationError
from durable_pool.core.items import (
    IntItem,
    PoolItem,
    TextItem,
    item_from_dict,
    item_to_dict,
    to_item,
)

DeflateFunc = Callable[[PoolItem], bytes]
InflateFunc = Callable[[bytes], PoolItem]

DEFAULT_CODEC = "tagged"


@dataclass(frozen=True, slots=True)
class ItemCodec:
    """A named pair of deflate/inflate functions.

    Attributes:
        name: Codec name used in connection URIs.
        deflate: Serializes an item to bytes.
        inflate: Parses bytes back into an item.
    """

    name: str
    deflate: DeflateFunc
    inflate: InflateFunc


def deflate_tagged(item: PoolItem) -> bytes:
    """Serialize an item as a JSON envelope carrying its kind."""
    item = to_item(item)
    try:
        text = json.dumps(item_to_dict(item), separators=(",", ":"))
    except ValueError as e:
        msg = f"Cannot encode {item.kind.value} item"
        raise CodecError(msg) from e
    return text.encode("utf-8")


def inflate_tagged(data: bytes) -> PoolItem:
    """Parse a JSON envelope written by deflate_tagged."""
    if not isinstance(data, bytes | bytearray | memoryview):
        msg = f"Expected stored bytes, got {type(data).__name__}"
        raise CodecError(msg)
    try:
        payload = json.loads(bytes(data).decode("utf-8"))
    except ValueError as e:
        # Covers UnicodeDecodeError, JSONDecodeError and oversized integers
        msg = "Stored value is not a tagged item"
        raise CodecError(msg) from e
    if not isinstance(payload, dict):
        msg = f"Stored value is not a tagged item: {payload!r}"
        raise CodecError(msg)
    return item_from_dict(payload)


def deflate_text(item: PoolItem) -> bytes:
    """Serialize an item as its canonical text."""
    return to_item(item).as_text().encode("utf-8")


def inflate_text(data: bytes) -> PoolItem:
    """Parse stored text, yielding an integer item when it is a decimal."""
    if not isinstance(data, bytes | bytearray | memoryview):
        msg = f"Expected stored bytes, got {type(data).__name__}"
        raise CodecError(msg)
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError as e:
        msg = "Stored value is not valid UTF-8"
        raise CodecError(msg) from e
    try:
        number = int(text, 10)
    except ValueError:
        return TextItem(text)
    # "007", " 7" and "7_0" parse as ints but would not come back as written
    if str(number) != text:
        return TextItem(text)
    return IntItem(number)


TAGGED_CODEC = ItemCodec(name="tagged", deflate=deflate_tagged, inflate=inflate_tagged)
TEXT_CODEC = ItemCodec(name="text", deflate=deflate_text, inflate=inflate_text)

_CODECS: dict[str, ItemCodec] = {
    TAGGED_CODEC.name: TAGGED_CODEC,
    TEXT_CODEC.name: TEXT_CODEC,
}


def get_codec(name: str) -> ItemCodec:
    """Look up a built-in codec by name.

    Raises:
        ConfigurationError: If no codec has that name.
    """
    try:
        return _CODECS[name]
    except KeyError:
        msg = f"Unknown codec: {name!r} (available: {', '.join(sorted(_CODECS))})"
        raise ConfigurationError(msg) from None


def list_codecs() -> list[str]:
    """List built-in codec names."""
    return sorted(_CODECS)
