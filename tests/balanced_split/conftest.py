# tests/balanced_split/conftest.py
"""In-memory stand-ins for the cluster and the log store."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from balanced_split.errors import LeaseHeldError
from balanced_split.keyspace import KeySpaceCodec
from balanced_split.polling import Poller
from balanced_split.storage import StoreLayout
from balanced_split.types import ShardLocation


class MemoryHandle:
    """Text handle whose writes only become durable on sync/close."""

    def __init__(self, store: "MemoryLogStore", path: str, initial: str = ""):
        self.store = store
        self.path = path
        self.buffer = ""
        self.closed = False
        store.files[path] = initial

    def write(self, text: str) -> int:
        assert not self.closed, "write to closed handle"
        self.buffer += text
        return len(text)

    def flush(self) -> None:
        self.store.files[self.path] += self.buffer
        self.buffer = ""

    def close(self) -> None:
        if not self.closed:
            self.flush()
            self.closed = True


class MemoryLogStore:
    """LogStore fake keeping files in a dict."""

    def __init__(self):
        self.files: Dict[str, str] = {}
        self.leases: Set[str] = set()
        self.live_leases: Set[str] = set()
        self.renames: List[tuple] = []
        self.syncs = 0
        self.recovered: List[str] = []

    def exists(self, path) -> bool:
        return str(path) in self.files

    def read_text(self, path) -> str:
        return self.files[str(path)]

    def create(self, path) -> MemoryHandle:
        return MemoryHandle(self, str(path))

    def append(self, path) -> MemoryHandle:
        path = str(path)
        if path in self.live_leases or path in self.leases:
            raise LeaseHeldError(path)
        self.leases.add(path)
        return MemoryHandle(self, path, self.files.get(path, ""))

    def sync(self, handle: MemoryHandle) -> None:
        handle.flush()
        self.syncs += 1

    def rename(self, src, dst) -> None:
        self.renames.append((str(src), str(dst)))
        self.files[str(dst)] = self.files.pop(str(src))

    def delete(self, path) -> None:
        self.files.pop(str(path), None)
        self.leases.discard(str(path))

    def recover_lease(self, path) -> bool:
        path = str(path)
        self.recovered.append(path)
        if path in self.live_leases:
            raise LeaseHeldError(path)
        if path in self.leases:
            self.leases.discard(path)
            return True
        return False

    def release_lease(self, path) -> None:
        self.leases.discard(str(path))


class _Shard:
    def __init__(self, start: int, end: int, online: bool = True):
        self.start = start
        self.end = end
        self.online = online
        self.online_in = 0
        self.compacted_in: Optional[int] = None


class FakeCluster:
    """
    A table whose shards split on request.

    Daughters come online ``lag`` ticks after the split and lose their
    reference files ``compact_lag`` ticks after that. Every ``locate_shard``
    call is one tick; tests may also tick from the poller's sleep.
    """

    def __init__(
        self,
        codec: KeySpaceCodec,
        bounds: List[tuple],
        *,
        layout: Optional[StoreLayout] = None,
        table: str = "usertable",
        families=("cf1", "cf2"),
        workers: int = 20,
        lag: int = 1,
        compact_lag: int = 2,
    ):
        self.codec = codec
        self.shards = [_Shard(s, e) for s, e in bounds]
        self.layout = layout
        self.table = table
        self.families = list(families)
        self.workers = workers
        self.lag = lag
        self.compact_lag = compact_lag
        self.split_requests: List[bytes] = []
        self.locate_calls = 0

    # -- helpers -------------------------------------------------------

    def _key(self, value: int) -> bytes:
        return b"" if value == 0 else self.codec.encode(value)

    def _name(self, shard: _Shard) -> str:
        return f"shard-{shard.start:x}"

    def _find(self, value: int) -> _Shard:
        for shard in self.shards:
            end = self.codec.max_value + 1 if shard.end == 0 else shard.end
            if shard.start <= value < end:
                return shard
        raise AssertionError(f"no shard holds {value}")

    def _location(self, shard: _Shard) -> ShardLocation:
        return ShardLocation(
            start_key=self._key(shard.start),
            end_key=self._key(shard.end),
            online=shard.online,
            encoded_name=self._name(shard),
        )

    def _cf_dirs(self, shard: _Shard) -> List[Path]:
        return self.layout.column_family_dirs(self.table, self._location(shard), self.families)

    def tick(self, *_args) -> None:
        for shard in self.shards:
            if not shard.online:
                shard.online_in -= 1
                if shard.online_in <= 0:
                    shard.online = True
                    shard.compacted_in = self.compact_lag
            elif shard.compacted_in is not None:
                shard.compacted_in -= 1
                if shard.compacted_in <= 0:
                    shard.compacted_in = None
                    if self.layout is not None:
                        for cf_dir in self._cf_dirs(shard):
                            for ref in cf_dir.glob("*.*"):
                                ref.unlink()

    # -- ClusterClient -------------------------------------------------

    def shard_boundaries(self, table: str):
        return [(self._key(s.start), self._key(s.end)) for s in self.shards]

    def locate_shard(self, table: str, key: bytes) -> ShardLocation:
        self.locate_calls += 1
        self.tick()
        return self._location(self._find(self.codec.decode(key)))

    def split_shard(self, table: str, split_key: bytes) -> None:
        self.split_requests.append(split_key)
        point = self.codec.decode(split_key)
        parent = self._find(point)
        index = self.shards.index(parent)
        left, right = _Shard(parent.start, point, False), _Shard(point, parent.end, False)
        for daughter in (left, right):
            daughter.online_in = self.lag
        self.shards[index:index + 1] = [left, right]
        if self.layout is not None:
            for daughter in (left, right):
                for cf_dir in self._cf_dirs(daughter):
                    cf_dir.mkdir(parents=True, exist_ok=True)
                    (cf_dir / "1001").write_text("data")
                    (cf_dir / f"2002.{self._name(parent)}").write_text("ref")

    def column_families(self, table: str) -> List[str]:
        return list(self.families)

    def worker_count(self) -> int:
        return self.workers


@pytest.fixture()
def codec() -> KeySpaceCodec:
    return KeySpaceCodec(width=2, max_value=200)


@pytest.fixture()
def memory_store() -> MemoryLogStore:
    return MemoryLogStore()


@pytest.fixture()
def make_cluster(codec, tmp_path):
    def _make(bounds, **kwargs):
        kwargs.setdefault("layout", StoreLayout(tmp_path))
        return FakeCluster(codec, bounds, **kwargs)
    return _make


@pytest.fixture()
def ticking_poller():
    """Poller that advances a FakeCluster instead of sleeping."""
    def _make(cluster: FakeCluster, max_attempts: Optional[int] = 50) -> Poller:
        return Poller(interval_s=0, max_attempts=max_attempts, sleep=cluster.tick)
    return _make


@pytest.fixture()
def clean_root_handlers():
    """Start each test with a clean root logger; restore afterwards."""
    root = logging.getLogger()
    prev = list(root.handlers)
    prev_level = root.level
    try:
        for h in list(root.handlers):
            root.removeHandler(h)
        yield
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            try:
                h.close()
            except Exception:
                pass
        for h in prev:
            root.addHandler(h)
        root.setLevel(prev_level)
