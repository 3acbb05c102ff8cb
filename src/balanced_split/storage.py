# balanced_split/storage.py
"""
Durable storage access: the operation log store and shard data directories.

``LocalLogStore`` keeps the log on a local or mounted filesystem. Publishing
uses ``os.replace`` so readers never observe a half-written log, and every
sync is an ``fsync``. A sidecar lease file marks the single writer allowed
to append to a given log.
"""

from __future__ import annotations

import logging
import os
import re
import socket
from pathlib import Path
from typing import List, Protocol, Sequence, TextIO, Union

from balanced_split.errors import LeaseHeldError
from balanced_split.types import ShardLocation

__all__ = ["LogStore", "LocalLogStore", "StoreLayout", "lease_path"]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Store files are named by a numeric id; a reference file left behind by a
# split appends ".<encoded parent shard>" to the id of the file it points at.
_REFERENCE_NAME_RE = re.compile(r"^([0-9a-fA-F]+)\.(.+)$")


def lease_path(path: PathLike) -> Path:
    """Location of the writer lease guarding ``path``."""
    path = Path(path)
    return path.with_name(path.name + ".lease")


class LogStore(Protocol):
    """Storage primitives the operation log relies on."""

    def exists(self, path: PathLike) -> bool: ...

    def read_text(self, path: PathLike) -> str: ...

    def create(self, path: PathLike) -> TextIO: ...

    def append(self, path: PathLike) -> TextIO: ...

    def sync(self, handle: TextIO) -> None: ...

    def rename(self, src: PathLike, dst: PathLike) -> None: ...

    def delete(self, path: PathLike) -> None: ...

    def recover_lease(self, path: PathLike) -> bool: ...

    def release_lease(self, path: PathLike) -> None: ...


class LocalLogStore:
    """LogStore backed by the local filesystem."""

    def __init__(self, hostname: str | None = None):
        self.hostname = hostname or socket.gethostname()

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def read_text(self, path: PathLike) -> str:
        return Path(path).read_text(encoding="utf-8")

    def create(self, path: PathLike) -> TextIO:
        """Open ``path`` for writing from scratch, creating parent dirs."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return open(path, "w", encoding="utf-8")

    def append(self, path: PathLike) -> TextIO:
        """Take the writer lease on ``path`` and open it for appending."""
        self._acquire_lease(path)
        try:
            return open(path, "a", encoding="utf-8")
        except OSError:
            self.release_lease(path)
            raise

    def sync(self, handle: TextIO) -> None:
        handle.flush()
        os.fsync(handle.fileno())

    def rename(self, src: PathLike, dst: PathLike) -> None:
        """Atomically move ``src`` over ``dst`` and persist the directory entry."""
        dst = Path(dst)
        os.replace(src, dst)
        self._sync_dir(dst.parent)

    def delete(self, path: PathLike) -> None:
        path = Path(path)
        path.unlink(missing_ok=True)
        self.release_lease(path)
        self._sync_dir(path.parent)

    # ------------------------------------------------------------------
    # Lease handling
    # ------------------------------------------------------------------

    def _owner(self) -> str:
        return f"{self.hostname}:{os.getpid()}"

    def _acquire_lease(self, path: PathLike) -> None:
        lease = lease_path(path)
        for attempt in range(2):
            try:
                fd = os.open(lease, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if attempt == 0:
                    self.recover_lease(path)
                    continue
                raise LeaseHeldError(f"{path} is leased by {self._read_owner(lease)}") from None
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self._owner())
            logger.debug("Acquired lease on %s", path)
            return

    @staticmethod
    def _read_owner(lease: Path) -> str:
        try:
            return lease.read_text(encoding="utf-8").strip()
        except OSError:
            return ""

    def _owner_alive(self, owner: str) -> bool:
        host, _, pid_text = owner.rpartition(":")
        if host != self.hostname or not pid_text.isdigit():
            # Cannot probe remote or unreadable owners; treat them as dead.
            return False
        pid = int(pid_text)
        if pid == os.getpid():
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    def recover_lease(self, path: PathLike) -> bool:
        """
        Reclaim a lease left behind by a writer that is no longer running.

        Returns:
            True if a stale lease was removed, False if there was none

        Raises:
            LeaseHeldError: If a live process on this host holds the lease
        """
        lease = lease_path(path)
        if not lease.exists():
            return False
        owner = self._read_owner(lease)
        if self._owner_alive(owner):
            raise LeaseHeldError(f"{path} is leased by running process {owner}")
        lease.unlink(missing_ok=True)
        logger.warning("Reclaimed stale lease on %s (owner %s)", path, owner or "<unknown>")
        return True

    def release_lease(self, path: PathLike) -> None:
        lease = lease_path(path)
        if self._read_owner(lease) == self._owner():
            lease.unlink(missing_ok=True)
            logger.debug("Released lease on %s", path)

    @staticmethod
    def _sync_dir(directory: Path) -> None:
        try:
            fd = os.open(directory, os.O_RDONLY)
        except OSError:
            return
        try:
            os.fsync(fd)
        except OSError as exc:
            logger.warning("Could not sync directory %s: %s", directory, exc)
        finally:
            os.close(fd)


class StoreLayout:
    """Locates shard data directories under the storage root."""

    def __init__(self, root_dir: PathLike):
        self.root_dir = Path(root_dir).expanduser()

    def table_dir(self, table: str) -> Path:
        return self.root_dir / table

    def shard_dir(self, table: str, shard: ShardLocation) -> Path:
        return self.table_dir(table) / shard.encoded_name

    def column_family_dirs(
        self, table: str, shard: ShardLocation, families: Sequence[str]
    ) -> List[Path]:
        shard_dir = self.shard_dir(table, shard)
        return [shard_dir / family for family in families]

    @staticmethod
    def list_files(directory: PathLike) -> List[Path]:
        """Files directly under ``directory``; a missing directory is empty."""
        directory = Path(directory)
        if not directory.exists():
            return []
        return sorted(p for p in directory.iterdir() if p.is_file())

    @staticmethod
    def is_reference_artifact(path: PathLike) -> bool:
        """True if ``path`` is a split reference still awaiting compaction."""
        return _REFERENCE_NAME_RE.match(Path(path).name) is not None
