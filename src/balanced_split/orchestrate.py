# balanced_split/orchestrate.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from setproctitle import setproctitle

from balanced_split.cluster import ClusterClient, RestClusterClient
from balanced_split.compaction import CompactionWaiter
from balanced_split.config import SplitterConfig
from balanced_split.executor import SplitExecutor, window_size
from balanced_split.oplog import OperationLog
from balanced_split.planner import compute_plan, ranges_from_boundaries
from balanced_split.polling import Poller
from balanced_split.report import log_run_summary
from balanced_split.storage import LocalLogStore, LogStore, StoreLayout

__all__ = ["RunResult", "run_balanced_split"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    """Outcome of a completed balanced split run."""

    table: str
    planned: int
    completed: int
    resumed: bool
    window_size: int


def run_balanced_split(
    table: str,
    *,
    config: SplitterConfig,
    cluster: Optional[ClusterClient] = None,
    store: Optional[LogStore] = None,
    layout: Optional[StoreLayout] = None,
    poller: Optional[Poller] = None,
    show_progress: bool = True,
) -> RunResult:
    """
    Split every shard of ``table`` at its midpoint, resuming a crashed run.

    Process
    -------
    1. Replay the operation log if one exists; otherwise plan from the live
       shard boundaries and publish the plan
    2. Size the outstanding-split window from the cluster's worker count
    3. Split, wait for daughters, log completions, throttle on compaction
    4. Delete the log once every split has settled

    On any error the log is closed but left in place for the next run.
    """
    setproctitle(f"balanced-split:{table}")
    start_time = datetime.now()

    codec = config.codec()
    cluster = cluster or RestClusterClient(
        config.control_plane_url, timeout=config.request_timeout_s
    )
    store = store or LocalLogStore()
    layout = layout or StoreLayout(config.root_dir)
    poller = poller or Poller(
        interval_s=config.poll_interval_s, max_attempts=config.max_poll_attempts
    )

    oplog = OperationLog(store, layout.table_dir(table) / config.log_filename, codec)

    # 1) Load or plan
    resumed = oplog.exists()
    if resumed:
        pending = oplog.recover()
    else:
        logger.info("No operation log for %s; calculating splits", table)
        ranges = ranges_from_boundaries(cluster.shard_boundaries(table), codec)
        logger.info("Table %s has %d shards that will be split", table, len(ranges))
        pending = compute_plan(ranges, codec)
        oplog.create(pending)

    # 2) Throttle window
    window = window_size(cluster.worker_count())

    log_run_summary(
        table=table,
        log_path=str(oplog.path),
        control_plane_url=config.control_plane_url,
        resumed=resumed,
        planned=oplog.planned_count,
        pending=len(pending),
        window=window,
        poll_interval_s=poller.interval_s,
        start_time=start_time,
    )

    # 3) Execute
    waiter = CompactionWaiter(table, layout, cluster.column_families(table), poller)
    executor = SplitExecutor(
        table, cluster, oplog, waiter, codec, poller, window,
        show_progress=show_progress,
    )
    with oplog:
        done = executor.run(pending)

    # 4) Clean finish
    oplog.delete()

    logger.info(
        "Balanced split of %s finished: %d splits in %s",
        table, len(done), datetime.now() - start_time,
    )
    return RunResult(
        table=table,
        planned=oplog.planned_count,
        completed=len(done),
        resumed=resumed,
        window_size=window,
    )
