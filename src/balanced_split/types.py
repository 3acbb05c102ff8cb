# balanced_split/types.py
"""Shared types for split planning and execution."""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = [
    "ShardRange",
    "SplitOperation",
    "LogOp",
    "LogEntry",
    "ShardLocation",
    "SplitState",
]


@dataclass(frozen=True)
class ShardRange:
    """A currently existing shard covering ``[start, end)``."""

    start: int
    """Starting key value (inclusive)"""

    end: int
    """Ending key value (exclusive), 0 for the open end of the key space"""


@dataclass(frozen=True, order=True)
class SplitOperation:
    """Split the shard beginning at ``start`` at ``split_point``."""

    start: int
    split_point: int

    def __str__(self) -> str:
        return f"({self.start:x}, {self.split_point:x})"


class LogOp(str, enum.Enum):
    """Operation log markers."""

    ADD = "+"
    REMOVE = "-"


@dataclass(frozen=True)
class LogEntry:
    """One line of the operation log."""

    op: LogOp
    operation: SplitOperation


@dataclass(frozen=True)
class ShardLocation:
    """Live lookup result for the shard containing a key. Never persisted."""

    start_key: bytes
    end_key: bytes
    online: bool
    encoded_name: str = ""


class SplitState(enum.Enum):
    """Per-operation progress through the split pipeline."""

    PENDING = "pending"
    REQUESTED = "requested"
    DAUGHTER_VISIBLE = "daughter_visible"
    LOGGED = "logged"
    AWAITING_COMPACTION = "awaiting_compaction"
    SETTLED = "settled"
