"""Pool item types.

A pool item is a small immutable value. Items form a closed set of variants
(text, integer, bytes); every variant can be asked for its textual, integer
or byte form, and conversions that do not apply fail with a CodecError
rather than silently producing garbage.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from durable_pool.core.errors import CodecError, ItemTypeError

if TYPE_CHECKING:
    from collections.abc import Mapping


class ItemKind(Enum):
    """Variant tag of a pool item."""

    TEXT = "text"
    INTEGER = "integer"
    BYTES = "bytes"


@dataclass(frozen=True, slots=True)
class TextItem:
    """A text item.

    Attributes:
        value: The text.
    """

    value: str
    kind: ClassVar[ItemKind] = ItemKind.TEXT

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise ItemTypeError(self.value, expected="str")

    def as_text(self) -> str:
        return self.value

    def as_int(self) -> int:
        """Parse the text as a decimal integer."""
        try:
            return int(self.value, 10)
        except ValueError as e:
            msg = f"Text item is not a decimal integer: {self.value!r}"
            raise CodecError(msg) from e

    def as_bytes(self) -> bytes:
        return self.value.encode("utf-8")

    def to_value(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class IntItem:
    """An integer item.

    Attributes:
        value: The integer. Booleans are rejected.
    """

    value: int
    kind: ClassVar[ItemKind] = ItemKind.INTEGER

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ItemTypeError(self.value, expected="int")

    def as_text(self) -> str:
        """Format the integer in decimal."""
        try:
            return str(self.value)
        except ValueError as e:
            # Past the interpreter's int/str conversion digit limit
            msg = "Integer item is too large to format as decimal"
            raise CodecError(msg) from e

    def as_int(self) -> int:
        return self.value

    def as_bytes(self) -> bytes:
        return self.as_text().encode("ascii")

    def to_value(self) -> int:
        return self.value


@dataclass(frozen=True, slots=True)
class BytesItem:
    """A raw byte-string item.

    Attributes:
        value: The bytes. Bytearrays and memoryviews are copied into bytes.
    """

    value: bytes
    kind: ClassVar[ItemKind] = ItemKind.BYTES

    def __post_init__(self) -> None:
        if isinstance(self.value, bytearray | memoryview):
            object.__setattr__(self, "value", bytes(self.value))
        if not isinstance(self.value, bytes):
            raise ItemTypeError(self.value, expected="bytes")

    def as_text(self) -> str:
        """Decode the bytes as UTF-8."""
        try:
            return self.value.decode("utf-8")
        except UnicodeDecodeError as e:
            msg = "Bytes item is not valid UTF-8"
            raise CodecError(msg) from e

    def as_int(self) -> int:
        return TextItem(self.as_text()).as_int()

    def as_bytes(self) -> bytes:
        return self.value

    def to_value(self) -> bytes:
        return self.value


PoolItem = TextItem | IntItem | BytesItem

_ITEM_TYPES: dict[ItemKind, type[TextItem] | type[IntItem] | type[BytesItem]] = {
    ItemKind.TEXT: TextItem,
    ItemKind.INTEGER: IntItem,
    ItemKind.BYTES: BytesItem,
}


def to_item(value: Any) -> PoolItem:
    """Coerce a plain value into a pool item.

    Args:
        value: A pool item, str, int or bytes-like value.

    Returns:
        The corresponding pool item. Existing items are returned unchanged.

    Raises:
        ItemTypeError: If the value has no item representation.
    """
    if isinstance(value, TextItem | IntItem | BytesItem):
        return value
    if isinstance(value, str):
        return TextItem(value)
    if isinstance(value, bool):
        raise ItemTypeError(value)
    if isinstance(value, int):
        return IntItem(value)
    if isinstance(value, bytes | bytearray | memoryview):
        return BytesItem(bytes(value))
    raise ItemTypeError(value)


def item_to_dict(item: PoolItem) -> dict[str, Any]:
    """Serialize an item to a JSON-compatible dict."""
    value: Any = item.value
    if isinstance(item, BytesItem):
        value = base64.b64encode(item.value).decode("ascii")
    return {"kind": item.kind.value, "value": value}


def item_from_dict(data: Mapping[str, Any]) -> PoolItem:
    """Deserialize an item from a dict produced by item_to_dict.

    Raises:
        CodecError: If the dict does not describe a valid item.
    """
    try:
        kind = ItemKind(data["kind"])
        value = data["value"]
    except (KeyError, TypeError, ValueError) as e:
        msg = f"Malformed item record: {data!r}"
        raise CodecError(msg) from e

    if kind is ItemKind.BYTES:
        if not isinstance(value, str):
            raise ItemTypeError(value, expected="base64 str")
        try:
            value = base64.b64decode(value.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            msg = "Bytes item value is not valid base64"
            raise CodecError(msg) from e

    return _ITEM_TYPES[kind](value)
