# balanced_split/keyspace.py
"""Key space codec: shard keys <-> fixed-width unsigned integers."""

from __future__ import annotations

import hashlib
import re
from typing import List

from balanced_split.errors import KeyDecodeError

__all__ = [
    "KeySpaceCodec",
    "MD5",
    "DEFAULT_KEY_WIDTH",
    "DEFAULT_KEY_MAX",
    "md5_row_key",
]

MD5 = "MD5"

# Shard keys are the first 8 hex characters of a positive MD5 digest
DEFAULT_KEY_WIDTH = 8
DEFAULT_KEY_MAX = 0x7FFFFFFF

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


class KeySpaceCodec:
    """
    Converts between hex-text shard keys and integers in ``[0, max_value]``.

    Keys are compared numerically after decoding, so midpoints can be taken
    with plain integer arithmetic. The empty key (table start, or the open
    end of the last shard) decodes to 0.

    Example:
        >>> codec = KeySpaceCodec()
        >>> codec.encode(0x1F)
        b'0000001f'
        >>> codec.decode(b'0000001f')
        31
        >>> codec.decode(b'')
        0
    """

    def __init__(self, width: int = DEFAULT_KEY_WIDTH, max_value: int = DEFAULT_KEY_MAX):
        if width < 1:
            raise ValueError(f"width must be >= 1, got {width}")
        if max_value < 1 or max_value >= 16 ** width:
            raise ValueError(
                f"max_value {max_value:#x} does not fit in {width} hex digits"
            )
        self.width = width
        self.max_value = max_value

    def __repr__(self) -> str:
        return f"KeySpaceCodec(width={self.width}, max_value={self.max_value:#x})"

    def to_hex(self, value: int) -> str:
        """Return ``value`` as lower-case hex, zero-padded to the key width."""
        if value < 0:
            raise ValueError(f"key values are unsigned, got {value}")
        text = format(value, "x")
        if len(text) > self.width:
            raise ValueError(f"key value {value:#x} is wider than {self.width} hex digits")
        return text.rjust(self.width, "0")

    def encode(self, value: int) -> bytes:
        """Encode ``value`` as the table's external key bytes."""
        return self.to_hex(value).encode("ascii")

    def decode(self, key: bytes) -> int:
        """Decode external key bytes; empty keys decode to 0."""
        if not key:
            return 0
        try:
            text = key.decode("ascii")
        except UnicodeDecodeError as exc:
            raise KeyDecodeError(f"key {key!r} is not ASCII hex") from exc
        if not _HEX_RE.fullmatch(text):
            raise KeyDecodeError(f"key {key!r} is not hex-encoded")
        return int(text, 16)

    # ------------------------------------------------------------------
    # Pre-split helpers
    # ------------------------------------------------------------------

    def uniform_split_points(self, num_splits: int) -> List[int]:
        """
        Divide ``[0, max_value]`` into ``num_splits`` equal slices.

        Returns the ``num_splits - 1`` interior boundaries.

        Example:
            >>> KeySpaceCodec(width=2, max_value=200).uniform_split_points(4)
            [50, 100, 150]
        """
        if num_splits < 2:
            raise ValueError(f"num_splits must be >= 2, got {num_splits}")
        size = self.max_value // num_splits
        return [size * i for i in range(1, num_splits)]

    def split_keys(self, hashing: str, num_splits: int) -> List[bytes]:
        """Return encoded pre-split boundaries for a table keyed by ``hashing``."""
        if hashing != MD5:
            raise ValueError(f"hashing scheme {hashing!r} is not supported")
        return [self.encode(v) for v in self.uniform_split_points(num_splits)]


def md5_row_key(row: str) -> bytes:
    """
    Build a hashed row key: 32 hex digits of ``abs(md5(row))`` then ``:row``.

    The digest is read as a signed big-endian integer before taking its
    absolute value, which keeps the leading hex digit below 8 and therefore
    within the default key space.
    """
    digest = hashlib.md5(row.encode("utf-8")).digest()
    value = abs(int.from_bytes(digest, "big", signed=True))
    return f"{value:032x}:{row}".encode("utf-8")
