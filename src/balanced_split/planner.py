# balanced_split/planner.py
"""Balanced split planning: one midpoint per shard."""

from __future__ import annotations

import logging
from typing import Iterable, List, Set, Tuple

from balanced_split.errors import InvalidRangeError
from balanced_split.keyspace import KeySpaceCodec
from balanced_split.types import ShardRange, SplitOperation

__all__ = ["compute_plan", "ranges_from_boundaries", "midpoint"]

logger = logging.getLogger(__name__)


def midpoint(start: int, end: int) -> int:
    """Floor midpoint of ``[start, end)``."""
    return (start + end) // 2


def ranges_from_boundaries(
    boundaries: Iterable[Tuple[bytes, bytes]],
    codec: KeySpaceCodec,
) -> Set[ShardRange]:
    """
    Convert raw ``(start_key, end_key)`` pairs into shard ranges.

    Empty keys decode to 0, so the last shard of a table arrives with
    ``end == 0`` and is resolved to the domain maximum by ``compute_plan``.
    """
    return {ShardRange(codec.decode(s), codec.decode(e)) for s, e in boundaries}


def compute_plan(
    shard_ranges: Iterable[ShardRange],
    codec: KeySpaceCodec,
) -> Set[SplitOperation]:
    """
    Compute one split operation per shard by integer bisection.

    Args:
        shard_ranges: Current shards of the table
        codec: Key space codec providing the domain maximum

    Returns:
        Set of SplitOperation(start, (start + end) // 2)

    Raises:
        InvalidRangeError: If a range is empty or inverted, too narrow to
            bisect, or overlaps another range

    Example:
        >>> codec = KeySpaceCodec(width=2, max_value=200)
        >>> sorted(compute_plan({ShardRange(0, 100), ShardRange(100, 0)}, codec))
        [SplitOperation(start=0, split_point=50), SplitOperation(start=100, split_point=150)]
    """
    resolved: List[Tuple[int, int]] = []
    for r in shard_ranges:
        end = codec.max_value if r.end == 0 else r.end
        if r.start >= end:
            raise InvalidRangeError(f"shard range [{r.start:x}, {end:x}) is empty or inverted")
        resolved.append((r.start, end))

    resolved.sort()
    for (prev_start, prev_end), (start, end) in zip(resolved, resolved[1:]):
        if start < prev_end:
            raise InvalidRangeError(
                f"shard ranges [{prev_start:x}, {prev_end:x}) and "
                f"[{start:x}, {end:x}) overlap"
            )

    plan: Set[SplitOperation] = set()
    for start, end in resolved:
        split_point = midpoint(start, end)
        if split_point == start:
            raise InvalidRangeError(f"shard range [{start:x}, {end:x}) is too narrow to split")
        plan.add(SplitOperation(start, split_point))
        logger.debug("Will split [%x, %x) at %x", start, end, split_point)

    logger.info("Planned %d splits", len(plan))
    return plan
