# balanced_split/compaction.py
"""Wait for post-split compaction of daughter shards."""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from balanced_split.polling import Poller
from balanced_split.storage import StoreLayout
from balanced_split.types import ShardLocation

__all__ = ["CompactionWaiter"]

logger = logging.getLogger(__name__)


class CompactionWaiter:
    """
    Polls daughter shard directories until no reference artifacts remain.

    Opening a daughter triggers a compaction that rewrites the reference
    files pointing into the parent; once every column family of a daughter is
    free of references, that daughter is settled.
    """

    def __init__(self, table: str, layout: StoreLayout, families: Sequence[str], poller: Poller):
        self.table = table
        self.layout = layout
        self.families = list(families)
        self.poller = poller

    def has_references(self, shard: ShardLocation) -> bool:
        """True while any column family of ``shard`` holds a reference file."""
        for cf_dir in self.layout.column_family_dirs(self.table, shard, self.families):
            for path in self.layout.list_files(cf_dir):
                if self.layout.is_reference_artifact(path):
                    logger.debug("Reference still exists for %r at %s", shard.start_key, path)
                    return True
        return False

    def await_settled(self, daughters: Iterable[ShardLocation]) -> int:
        """
        Block until every daughter is free of reference artifacts.

        Returns:
            Number of polling rounds
        """
        check: List[ShardLocation] = list(daughters)

        def _round() -> bool:
            for shard in list(check):
                try:
                    busy = self.has_references(shard)
                except OSError as exc:
                    logger.warning("Could not list %r: %s", shard.start_key, exc)
                    continue
                if not busy:
                    check.remove(shard)
                    logger.debug("Finished compaction of %r", shard.start_key)
            if check:
                logger.debug("Waiting for %d compactions", len(check))
            return not check

        return self.poller.wait_for(_round, f"compaction of {len(check)} shards", sleep_first=False)
