"""
balanced-split: split every shard of a table at its midpoint.

Examples:
  balanced-split usertable
  BALANCED_SPLIT_MAX_POLLS=120 python -m balanced_split usertable

Settings come from BALANCED_SPLIT_* environment variables (ROOT_DIR and
CONTROL_URL are required). A crashed run is resumed by running the same
command again.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from balanced_split.config import SplitterConfig
from balanced_split.errors import SplitterError
from balanced_split.logger import setup_logger
from balanced_split.orchestrate import run_balanced_split

__all__ = ["parse_args", "main"]

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="balanced-split",
        description="Split every shard of TABLE at its midpoint, resuming any interrupted run.",
    )
    p.add_argument("table", help="Name of the table to split")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if not args.table.strip():
        print("ERROR: table name must not be empty", file=sys.stderr)
        return 2

    try:
        config = SplitterConfig.from_env()
        config.codec()
        level = config.level
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    setup_logger(config.log_dir, level=level, console=True)

    try:
        run_balanced_split(args.table, config=config)
    except (SplitterError, OSError) as e:
        logger.error("Balanced split of %s failed: %s", args.table, e)
        print(f"ERROR: {e}", file=sys.stderr)
        print(f"Operation log kept at {config.log_path(args.table)}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0
