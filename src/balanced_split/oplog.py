# balanced_split/oplog.py
"""Durable, append-only record of planned and completed split operations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Set, TextIO, Union

from balanced_split.errors import AlreadyExistsError
from balanced_split.keyspace import KeySpaceCodec
from balanced_split.logformat import decode_lines, encode_entry, reconcile
from balanced_split.storage import LogStore
from balanced_split.types import LogEntry, LogOp, SplitOperation

__all__ = ["OperationLog", "PREPARE_SUFFIX"]

logger = logging.getLogger(__name__)

PREPARE_SUFFIX = "_prepare"


class OperationLog:
    """
    The operation log of one balanced split run.

    A fresh plan is written to a temporary file and renamed into place, so the
    canonical path only ever holds a complete plan. Completed splits are
    appended as ``-`` lines and synced before ``append_remove`` returns;
    replaying the log after a crash yields exactly the splits still to do.
    """

    def __init__(self, store: LogStore, path: Union[str, Path], codec: KeySpaceCodec):
        """
        Initialize the operation log.

        Args:
            store: Storage primitives (local filesystem or a test fake)
            path: Canonical log path
            codec: Key codec used to render hex values
        """
        self.store = store
        self.path = Path(path)
        self.codec = codec
        self._out: Optional[TextIO] = None
        self.planned_count = 0

    @property
    def prepare_path(self) -> Path:
        return self.path.with_name(self.path.name + PREPARE_SUFFIX)

    def exists(self) -> bool:
        return self.store.exists(self.path)

    def create(self, operations: Iterable[SplitOperation]) -> None:
        """
        Publish a fresh plan as ``+`` lines.

        Raises:
            AlreadyExistsError: If a log is already present at the canonical path
        """
        if self.exists():
            raise AlreadyExistsError(f"operation log already exists at {self.path}; recover it instead")

        operations = sorted(operations)
        tmp = self.prepare_path
        out = self.store.create(tmp)
        try:
            for op in operations:
                out.write(encode_entry(LogEntry(LogOp.ADD, op), self.codec))
            self.store.sync(out)
        finally:
            out.close()
        self.store.rename(tmp, self.path)
        self.planned_count = len(operations)
        logger.info("Wrote plan of %d splits to %s", len(operations), self.path)

    def recover(self) -> Set[SplitOperation]:
        """
        Replay the log and return the pending operations.

        Raises:
            LogCorruptionError: If a line is malformed or removes an operation
                that was never added
        """
        logger.info("Found %s; replaying log to restore state", self.path)
        self.store.recover_lease(self.path)
        entries = decode_lines(self.store.read_text(self.path))
        pending = reconcile(entries)
        self.planned_count = len({e.operation for e in entries if e.op is LogOp.ADD})
        logger.info(
            "Replayed %d log entries; %d splits left", len(entries), len(pending)
        )
        return pending

    def open(self) -> None:
        """Open the canonical log for appending completion records."""
        if self._out is None:
            self._out = self.store.append(self.path)

    def append_remove(self, operation: SplitOperation) -> None:
        """Record ``operation`` as done; durable once this returns."""
        if self._out is None:
            raise RuntimeError(f"operation log {self.path} is not open for writing")
        self._out.write(encode_entry(LogEntry(LogOp.REMOVE, operation), self.codec))
        self.store.sync(self._out)
        logger.debug("Logged completion of %s", operation)

    def close(self) -> None:
        if self._out is None:
            return
        try:
            self._out.close()
        finally:
            self._out = None
            self.store.release_lease(self.path)

    def delete(self) -> None:
        """Close and remove the log, marking a clean finish."""
        self.close()
        self.store.delete(self.path)
        logger.info("Removed operation log %s", self.path)

    def __enter__(self) -> "OperationLog":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
