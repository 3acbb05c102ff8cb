# balanced_split/logger.py
from __future__ import annotations

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

__all__ = ["setup_logger"]


def setup_logger(
    log_dir: Optional[Union[str, Path]] = None,
    *,
    level: int = logging.INFO,
    filename_prefix: str = "balanced_split",
    console: bool = True,
    rotate: bool = False,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
    force: bool = False,
) -> Optional[Path]:
    """
    Configure root logging for a split run.

    Writes a timestamped log file into ``log_dir`` when given, and to stderr
    when ``console`` is set. Returns the log file path, or None when logging
    only to the console. Safe to call once at process start.
    """
    root = logging.getLogger()
    if force:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()

    root.setLevel(level)

    fmt = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_path: Optional[Path] = None
    if log_dir is not None:
        log_dir = Path(log_dir).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = log_dir / f"{filename_prefix}_{ts}.log"

        if rotate:
            fhandler = RotatingFileHandler(
                log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        else:
            fhandler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        fhandler.setLevel(level)
        fhandler.setFormatter(fmt)
        root.addHandler(fhandler)

    if console:
        shandler = logging.StreamHandler()
        shandler.setLevel(level)
        shandler.setFormatter(fmt)
        root.addHandler(shandler)

    if log_path is not None:
        root.info("Logging to: %s", str(log_path))
    return log_path
