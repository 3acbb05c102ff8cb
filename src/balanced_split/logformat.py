# balanced_split/logformat.py
"""
Operation log line format and replay.

Each line is ``<marker> <start-hex> <split-hex>``, where the marker is ``+``
for a planned split and ``-`` for a completed one. Writers pad hex values to
the key width; readers accept any run of hex digits.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Set

from balanced_split.errors import LogCorruptionError
from balanced_split.keyspace import KeySpaceCodec
from balanced_split.types import LogEntry, LogOp, SplitOperation

__all__ = ["encode_entry", "decode_line", "decode_lines", "reconcile"]

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def encode_entry(entry: LogEntry, codec: KeySpaceCodec) -> str:
    """Render one log entry as a newline-terminated line."""
    op = entry.operation
    return f"{entry.op.value} {codec.to_hex(op.start)} {codec.to_hex(op.split_point)}\n"


def _parse_hex(token: str, lineno: int) -> int:
    if not _HEX_RE.fullmatch(token):
        raise LogCorruptionError(f"{token!r} is not a hex value", lineno)
    return int(token, 16)


def decode_line(line: str, lineno: int = 0) -> LogEntry:
    """Parse one log line; raises LogCorruptionError when malformed."""
    tokens = line.rstrip("\r\n").split(" ")
    if len(tokens) != 3:
        raise LogCorruptionError(f"expected 3 fields, got {len(tokens)}: {line.rstrip()!r}", lineno)
    marker, start, split_point = tokens
    try:
        op = LogOp(marker)
    except ValueError:
        raise LogCorruptionError(f"unknown marker {marker!r}", lineno) from None
    return LogEntry(op, SplitOperation(_parse_hex(start, lineno), _parse_hex(split_point, lineno)))


def decode_lines(text: str) -> List[LogEntry]:
    """Parse a whole log, skipping blank lines."""
    entries = []
    for lineno, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue
        entries.append(decode_line(line, lineno))
    return entries


def reconcile(entries: Iterable[LogEntry]) -> Set[SplitOperation]:
    """
    Replay log entries in order and return the pending set.

    Adding an operation twice is harmless; removing one that is not pending
    means the log was written out of order or edited by hand.

    Example:
        >>> add, rm = LogOp.ADD, LogOp.REMOVE
        >>> reconcile([
        ...     LogEntry(add, SplitOperation(1, 5)),
        ...     LogEntry(add, SplitOperation(10, 15)),
        ...     LogEntry(rm, SplitOperation(1, 5)),
        ... ])
        {SplitOperation(start=10, split_point=15)}
    """
    pending: Set[SplitOperation] = set()
    for index, entry in enumerate(entries, start=1):
        if entry.op is LogOp.ADD:
            pending.add(entry.operation)
        elif entry.operation in pending:
            pending.remove(entry.operation)
        else:
            raise LogCorruptionError(
                f"entry {index} removes {entry.operation}, which is not pending"
            )
    return pending
