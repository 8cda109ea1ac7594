"""Order-preserving record keys.

Records are keyed by their sequence number. Keys are fixed-width,
zero-padded decimal so that byte-wise ordering of keys equals numeric
ordering of sequence numbers ("00..09" sorts before "00..10").
"""

from __future__ import annotations

from durable_pool.core.errors import CodecError

KEY_WIDTH = 20  # digits in 2**64 - 1
MAX_SEQUENCE = 2**64 - 1


def format_key(seq: int) -> bytes:
    """Encode a sequence number as a record key.

    Args:
        seq: A sequence number in 1..2**64-1.

    Returns:
        The 20-byte ASCII key.

    Raises:
        ValueError: If the sequence number is out of range.
    """
    if isinstance(seq, bool) or not isinstance(seq, int):
        msg = f"Sequence number must be an int, got {type(seq).__name__}"
        raise ValueError(msg)
    if seq < 1 or seq > MAX_SEQUENCE:
        msg = f"Sequence number out of range: {seq}"
        raise ValueError(msg)
    return f"{seq:0{KEY_WIDTH}d}".encode("ascii")


def parse_key(key: bytes) -> int:
    """Decode a record key back into its sequence number.

    Raises:
        CodecError: If the key is not a 20-digit ASCII decimal.
    """
    if len(key) != KEY_WIDTH or not key.isdigit():
        msg = f"Malformed record key: {key!r}"
        raise CodecError(msg)
    return int(key)
