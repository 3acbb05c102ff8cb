"""
balanced_split/errors.py

Exception hierarchy for the balanced split job.
"""
from __future__ import annotations

__all__ = [
    "SplitterError",
    "InvalidRangeError",
    "KeyDecodeError",
    "LogCorruptionError",
    "AlreadyExistsError",
    "LeaseHeldError",
    "PlanInconsistencyError",
    "ClusterCommunicationError",
    "SplitTimeoutError",
    "PollCancelledError",
]


class SplitterError(Exception):
    """Base class for all balanced split errors."""


class InvalidRangeError(SplitterError):
    """Raised when planner input is empty, inverted, or overlapping."""


class KeyDecodeError(SplitterError, ValueError):
    """Raised when a shard key is not a hex-encoded key value."""


class LogCorruptionError(SplitterError):
    """Raised when the operation log cannot be parsed or replayed."""

    def __init__(self, msg: str = "", lineno: int | None = None):
        self.lineno = lineno
        if lineno is not None:
            msg = f"line {lineno}: {msg}"
        super().__init__(msg)


class AlreadyExistsError(SplitterError):
    """Raised when creating a fresh operation log over an existing one."""


class LeaseHeldError(SplitterError):
    """Raised when another live process holds the operation log lease."""


class PlanInconsistencyError(SplitterError):
    """Raised when the live shard topology no longer matches the plan."""


class ClusterCommunicationError(SplitterError):
    """Raised when the cluster control plane cannot be reached or errors."""


class SplitTimeoutError(SplitterError):
    """Raised when a poll exhausts its attempt ceiling."""


class PollCancelledError(SplitterError):
    """Raised when a poll is interrupted through its cancel event."""
