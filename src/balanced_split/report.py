# balanced_split/report.py
from __future__ import annotations

import logging
from datetime import datetime

logger = logging.getLogger(__name__)

__all__ = ["format_run_summary", "log_run_summary"]


def _abbrev(s: str, width: int = 96) -> str:
    """Return s truncated with an ellipsis if it exceeds width."""
    return s if len(s) <= width else (s[: max(0, width - 1)] + "…")


def format_run_summary(
    *,
    table: str,
    log_path: str,
    control_plane_url: str,
    resumed: bool,
    planned: int,
    pending: int,
    window: int,
    poll_interval_s: float,
    start_time: datetime,
    color: bool = True,
) -> str:
    """
    Build a formatted, human-readable summary of the split run.
    """
    heading = f"Start Time: {start_time:%Y-%m-%d %H:%M:%S}"
    if color:
        heading = f"\033[31m{heading}\033[0m"

    lines = [
        heading,
        ("\033[4mBalanced Split Configuration\033[0m" if color
         else "Balanced Split Configuration"),
        f"Table:                      {table}",
        f"Operation log:              {_abbrev(log_path)}",
        f"Control plane:              {_abbrev(control_plane_url)}",
        f"Mode:                       {'resume' if resumed else 'fresh plan'}",
        f"Splits in plan:             {planned}",
        f"Splits pending:             {pending}",
    ]

    if resumed and planned > pending:
        lines.append(f"Splits already done:        {planned - pending}")

    lines.append(f"Outstanding split window:   {window}")
    lines.append(f"Poll interval:              {poll_interval_s:g}s")
    return "\n".join(lines) + "\n"


def log_run_summary(*, color: bool = False, **kwargs) -> None:
    """Log the run summary at INFO level."""
    summary = format_run_summary(color=color, **kwargs)
    for line in summary.rstrip("\n").splitlines():
        logger.info(line)
