# balanced_split/config.py
"""Configuration for balanced split runs."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from balanced_split.keyspace import DEFAULT_KEY_MAX, DEFAULT_KEY_WIDTH, KeySpaceCodec
from balanced_split.polling import DEFAULT_POLL_INTERVAL_S

__all__ = ["SplitterConfig", "ENV_PREFIX", "DEFAULT_LOG_FILENAME"]

ENV_PREFIX = "BALANCED_SPLIT_"
DEFAULT_LOG_FILENAME = "_balancedSplit"


def _env(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _require(environ: Mapping[str, str], name: str) -> str:
    value = _env(environ, name)
    if value is None:
        raise ValueError(f"{ENV_PREFIX}{name} must be set")
    return value


def _parse(environ: Mapping[str, str], name: str, kind, default):
    raw = _env(environ, name)
    if raw is None:
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name}={raw!r} is not a valid value") from None


@dataclass(frozen=True)
class SplitterConfig:
    """Settings for one balanced split job."""

    # Storage
    root_dir: Path
    """Storage root; each table keeps its data (and the operation log) in root_dir/<table>"""

    # Cluster
    control_plane_url: str
    request_timeout_s: float = 10.0

    # Polling
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    max_poll_attempts: Optional[int] = None  # None = wait forever

    # Key space
    key_width: int = DEFAULT_KEY_WIDTH
    key_max: int = DEFAULT_KEY_MAX

    # Operation log
    log_filename: str = DEFAULT_LOG_FILENAME

    # Logging
    log_dir: Optional[Path] = None  # None = console only
    log_level: str = "INFO"

    def codec(self) -> KeySpaceCodec:
        return KeySpaceCodec(width=self.key_width, max_value=self.key_max)

    def table_dir(self, table: str) -> Path:
        return Path(self.root_dir) / table

    def log_path(self, table: str) -> Path:
        return self.table_dir(table) / self.log_filename

    @property
    def level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level {self.log_level!r}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SplitterConfig":
        """
        Build a config from ``BALANCED_SPLIT_*`` environment variables.

        ``ROOT_DIR`` and ``CONTROL_URL`` are required; ``KEY_MAX`` is hex.

        Raises:
            ValueError: If a required variable is missing or a value is malformed
        """
        environ = os.environ if environ is None else environ
        log_dir = _env(environ, "LOG_DIR")
        max_polls = _parse(environ, "MAX_POLLS", int, None)
        if max_polls is not None and max_polls < 1:
            raise ValueError(f"{ENV_PREFIX}MAX_POLLS must be >= 1, got {max_polls}")

        return cls(
            root_dir=Path(_require(environ, "ROOT_DIR")).expanduser(),
            control_plane_url=_require(environ, "CONTROL_URL"),
            request_timeout_s=_parse(environ, "REQUEST_TIMEOUT", float, 10.0),
            poll_interval_s=_parse(environ, "POLL_INTERVAL", float, DEFAULT_POLL_INTERVAL_S),
            max_poll_attempts=max_polls,
            key_width=_parse(environ, "KEY_WIDTH", int, DEFAULT_KEY_WIDTH),
            key_max=_parse(environ, "KEY_MAX", lambda v: int(v, 16), DEFAULT_KEY_MAX),
            log_filename=_env(environ, "LOG_FILENAME") or DEFAULT_LOG_FILENAME,
            log_dir=Path(log_dir).expanduser() if log_dir else None,
            log_level=_env(environ, "LOG_LEVEL") or "INFO",
        )
