"""Balanced split planning and execution for range-sharded tables."""

from balanced_split.errors import (
    AlreadyExistsError,
    ClusterCommunicationError,
    InvalidRangeError,
    KeyDecodeError,
    LeaseHeldError,
    LogCorruptionError,
    PlanInconsistencyError,
    PollCancelledError,
    SplitterError,
    SplitTimeoutError,
)
from balanced_split.keyspace import KeySpaceCodec, md5_row_key
from balanced_split.logformat import reconcile
from balanced_split.oplog import OperationLog
from balanced_split.orchestrate import RunResult, run_balanced_split
from balanced_split.planner import compute_plan
from balanced_split.types import LogEntry, LogOp, ShardRange, SplitOperation

__all__ = [
    "AlreadyExistsError",
    "ClusterCommunicationError",
    "InvalidRangeError",
    "KeyDecodeError",
    "KeySpaceCodec",
    "LeaseHeldError",
    "LogCorruptionError",
    "LogEntry",
    "LogOp",
    "OperationLog",
    "PlanInconsistencyError",
    "PollCancelledError",
    "RunResult",
    "ShardRange",
    "SplitOperation",
    "SplitTimeoutError",
    "SplitterError",
    "compute_plan",
    "md5_row_key",
    "reconcile",
    "run_balanced_split",
]

__version__ = "0.1.0"
