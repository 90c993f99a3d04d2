"""Politeness gates and the one-way circuit breaker."""
from __future__ import annotations

import threading
import time
from typing import Callable

from jobpilot.log import get_logger

log = get_logger(__name__)


class MinIntervalGate:
    """Blocks until at least ``interval`` seconds passed since the previous pass."""

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Sleep if needed; returns the seconds slept."""
        with self._lock:
            slept = 0.0
            if self._last is not None:
                remaining = self.interval - (self._clock() - self._last)
                if remaining > 0:
                    log.debug("Politeness delay: waiting %.2fs", remaining)
                    self._sleep(remaining)
                    slept = remaining
            self._last = self._clock()
            return slept


class CircuitBreaker:
    """One-way breaker: once tripped it stays open for the process lifetime."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.reason: str | None = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.reason is not None

    def trip(self, reason: str) -> None:
        with self._lock:
            if self.reason is None:
                self.reason = reason
                log.warning("Circuit %r opened (%s); disabled until restart", self.name, reason)


# Shared by every browser user in this process.
BROWSER_CIRCUIT = CircuitBreaker("browser")
