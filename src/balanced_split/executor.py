# balanced_split/executor.py
"""Throttled split pipeline."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, Iterable, List

from tqdm import tqdm

from balanced_split.cluster import ClusterClient
from balanced_split.compaction import CompactionWaiter
from balanced_split.errors import PlanInconsistencyError
from balanced_split.keyspace import KeySpaceCodec
from balanced_split.oplog import OperationLog
from balanced_split.polling import Poller
from balanced_split.types import ShardLocation, SplitOperation, SplitState

__all__ = ["SplitExecutor", "window_size", "STATUS_EVERY"]

logger = logging.getLogger(__name__)

STATUS_EVERY = 10


def window_size(worker_count: int) -> int:
    """Outstanding split + compaction budget: 10% of workers, at least 2."""
    return max(worker_count // 10, 2)


class SplitExecutor:
    """
    Drives each pending operation from split request to settled daughters.

    At most ``window`` completed splits may be awaiting compaction at once;
    admitting one more first drains the oldest and waits for its daughters.
    """

    def __init__(
        self,
        table: str,
        cluster: ClusterClient,
        oplog: OperationLog,
        waiter: CompactionWaiter,
        codec: KeySpaceCodec,
        poller: Poller,
        window: int = 2,
        *,
        show_progress: bool = True,
    ):
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.table = table
        self.cluster = cluster
        self.oplog = oplog
        self.waiter = waiter
        self.codec = codec
        self.poller = poller
        self.window = window
        self.show_progress = show_progress

        self.outstanding: Deque[SplitOperation] = deque()
        self.states: Dict[SplitOperation, SplitState] = {}
        self.max_outstanding = 0
        self.split_count = 0

    def _set_state(self, op: SplitOperation, state: SplitState) -> None:
        self.states[op] = state
        logger.debug("%s -> %s", op, state.value)

    def _starts_at(self, location: ShardLocation, value: int) -> bool:
        return bool(location.start_key) and self.codec.decode(location.start_key) == value

    def _locate(self, value: int) -> ShardLocation:
        """Look up the shard holding ``value``, retrying communication errors."""
        key = self.codec.encode(value)
        found: List[ShardLocation] = []

        def _lookup() -> bool:
            found.append(self.cluster.locate_shard(self.table, key))
            return True

        self.poller.wait_for(_lookup, f"location of {key.decode()}", sleep_first=False)
        return found[-1]

    # ------------------------------------------------------------------
    # Per-operation steps
    # ------------------------------------------------------------------

    def request_split(self, op: SplitOperation) -> bool:
        """
        Ask the cluster to split at ``op.split_point``.

        Returns:
            False if the split had already happened (a prior run crashed
            before logging it), True if a request was issued

        Raises:
            PlanInconsistencyError: If the shard holding the split point no
                longer starts at ``op.start``
        """
        split_key = self.codec.encode(op.split_point)
        issued: List[bool] = []

        def _attempt() -> bool:
            # A failed attempt may still have reached the cluster, so every
            # attempt looks the shard up again before asking for the split.
            location = self.cluster.locate_shard(self.table, split_key)
            if self._starts_at(location, op.split_point):
                return True
            if location.start_key and self.codec.decode(location.start_key) != op.start:
                raise PlanInconsistencyError(
                    f"planned split {op} expects a shard starting at "
                    f"{self.codec.to_hex(op.start)}, found {location.start_key!r}"
                )
            logger.debug("Splitting at %s", split_key.decode())
            self.cluster.split_shard(self.table, split_key)
            issued.append(True)
            return True

        self.poller.wait_for(_attempt, f"split at {split_key.decode()}", sleep_first=False)
        if not issued:
            logger.info("Shard already split at %s; waiting for daughter", split_key.decode())
        return bool(issued)

    def wait_for_daughter(self, op: SplitOperation) -> int:
        """Poll until the daughter starting at the split point is online."""
        split_key = self.codec.encode(op.split_point)

        def _online() -> bool:
            location = self.cluster.locate_shard(self.table, split_key)
            return self._starts_at(location, op.split_point) and location.online

        attempts = self.poller.wait_for(_online, f"daughter shard at {split_key.decode()}")
        logger.debug("Daughter shard at %s is online", split_key.decode())
        return attempts

    def drain_oldest(self) -> SplitOperation:
        """Wait for compaction of the oldest outstanding split's daughters."""
        op = self.outstanding.popleft()
        logger.debug("Waiting for %s to finish compaction", op)
        daughters = [self._locate(op.start), self._locate(op.split_point)]
        self.waiter.await_settled(daughters)
        self._set_state(op, SplitState.SETTLED)
        return op

    def admit(self, op: SplitOperation) -> None:
        """Add a logged split to the window, draining first when full."""
        while len(self.outstanding) >= self.window:
            self.drain_oldest()
        self.outstanding.append(op)
        self.max_outstanding = max(self.max_outstanding, len(self.outstanding))
        self._set_state(op, SplitState.AWAITING_COMPACTION)

    def process(self, op: SplitOperation) -> None:
        self._set_state(op, SplitState.PENDING)
        self.request_split(op)
        self._set_state(op, SplitState.REQUESTED)
        self.wait_for_daughter(op)
        self._set_state(op, SplitState.DAUGHTER_VISIBLE)
        self.oplog.append_remove(op)
        self._set_state(op, SplitState.LOGGED)
        self.admit(op)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def run(self, pending: Iterable[SplitOperation]) -> List[SplitOperation]:
        """
        Execute every pending operation, then drain the window.

        Returns:
            Operations processed, in execution order
        """
        ordered = sorted(pending)
        total = len(ordered)
        for op in ordered:
            self.states[op] = SplitState.PENDING

        with tqdm(total=total, desc="Splitting Shards", unit="splits",
                  colour="blue", disable=not self.show_progress) as pbar:
            for op in ordered:
                self.process(op)
                self.split_count += 1
                if self.split_count % STATUS_EVERY == 0:
                    logger.info("STATUS UPDATE: %d / %d", self.split_count, total)
                pbar.update(1)

        while self.outstanding:
            self.drain_oldest()

        logger.info("All shards have been split")
        return ordered
