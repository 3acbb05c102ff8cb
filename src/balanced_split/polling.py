# balanced_split/polling.py
"""Fixed-interval polling with an optional attempt ceiling and cancel event."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from balanced_split.errors import (
    ClusterCommunicationError,
    PollCancelledError,
    SplitTimeoutError,
)

__all__ = ["Poller", "DEFAULT_POLL_INTERVAL_S"]

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 30.0


class Poller:
    """Repeats a check until it passes."""

    def __init__(
        self,
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            interval_s: Seconds between checks
            max_attempts: Give up after this many failed checks (None = never)
            sleep: Sleep function, replaced by a no-op in tests
            cancel_event: When set, the current wait ends with PollCancelledError
        """
        if max_attempts is not None and max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.interval_s = interval_s
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.cancel_event = cancel_event

    def _wait(self, what: str) -> None:
        if self.cancel_event is None:
            self.sleep(self.interval_s)
        elif self.cancel_event.wait(self.interval_s):
            raise PollCancelledError(f"cancelled while waiting for {what}")

    def wait_for(self, check: Callable[[], bool], what: str, *, sleep_first: bool = True) -> int:
        """
        Call ``check`` every interval until it returns True.

        Communication errors raised by ``check`` are logged and count as a
        failed attempt.

        Returns:
            Number of checks performed

        Raises:
            SplitTimeoutError: If max_attempts checks all failed
            PollCancelledError: If the cancel event was set
        """
        attempt = 0
        while True:
            if sleep_first or attempt > 0:
                self._wait(what)
            attempt += 1
            try:
                if check():
                    return attempt
            except ClusterCommunicationError as exc:
                logger.warning("Check for %s failed (attempt %d): %s", what, attempt, exc)
            if self.max_attempts is not None and attempt >= self.max_attempts:
                raise SplitTimeoutError(f"gave up waiting for {what} after {attempt} attempts")
            logger.debug("Waiting for %s (attempt %d)", what, attempt)
