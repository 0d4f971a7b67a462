# tweet_harvest/services/throttle_gate.py

"""Fixed-window request throttle shared by every collection flow."""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from tweet_harvest.config.settings import Settings

logger = logging.getLogger("tweet_harvest.throttle")


@dataclass(frozen=True)
class QuotaStatus:
    """Snapshot of the current window's usage."""

    used: int
    remaining: int
    total: int
    window_elapsed: float
    can_proceed: bool


class ThrottleGate:
    """Caps upstream requests at ``max_requests`` per ``window_duration``.

    ``acquire()`` never fails; once the quota is spent it sleeps until the
    window rolls over (plus a small safety margin) and then proceeds.
    The window counters are guarded by a lock, and the lock is released
    while sleeping so status reads and other flows are not stalled.
    """

    def __init__(
        self,
        max_requests: int = Settings.MAX_REQUESTS_PER_WINDOW,
        window_duration: float = Settings.WINDOW_DURATION,
        safety_margin: float = Settings.WINDOW_SAFETY_MARGIN,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.max_requests = max_requests
        self.window_duration = window_duration
        self.safety_margin = safety_margin
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._lock = threading.Lock()
        self._window_start: float | None = None
        self._count: int = 0

    def acquire(self) -> None:
        """Block until a request slot is free, then claim it."""
        while True:
            with self._lock:
                now = self._clock()
                if self._window_start is None:
                    self._window_start = now
                elapsed = now - self._window_start
                if elapsed >= self.window_duration:
                    self._count = 0
                    self._window_start = now
                    elapsed = 0.0
                    logger.info("Request window reset, quota refreshed")

                if self._count < self.max_requests:
                    self._count += 1
                    logger.debug(
                        "Request %d/%d (%d remaining, %.0fs elapsed)",
                        self._count,
                        self.max_requests,
                        self.max_requests - self._count,
                        elapsed,
                    )
                    return

                wait = (
                    self.window_duration - elapsed + self.safety_margin
                )

            logger.warning(
                "Window quota reached (%d/%d), waiting %.0fs",
                self.max_requests,
                self.max_requests,
                wait,
            )
            self._sleep(wait)

    def status(self) -> QuotaStatus:
        """Report usage of the current window without changing it."""
        with self._lock:
            if self._window_start is None:
                return QuotaStatus(
                    used=0,
                    remaining=self.max_requests,
                    total=self.max_requests,
                    window_elapsed=0.0,
                    can_proceed=True,
                )
            elapsed = self._clock() - self._window_start
            used = 0 if elapsed >= self.window_duration else self._count
            remaining = self.max_requests - used
            return QuotaStatus(
                used=used,
                remaining=remaining,
                total=self.max_requests,
                window_elapsed=elapsed,
                can_proceed=remaining > 0,
            )

    def reset(self) -> None:
        """Forget the current window."""
        with self._lock:
            self._window_start = None
            self._count = 0
