"""Backoff for flaky HTTP providers."""
from __future__ import annotations

import functools
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Type

from jobpilot.log import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Backoff:
    base: float = 1.0
    factor: float = 2.0
    cap: float = 30.0
    jitter: bool = True

    def delay(self, failures: int) -> float:
        """Seconds to wait after the ``failures``-th consecutive failure."""
        seconds = min(self.base * self.factor ** (failures - 1), self.cap)
        return seconds * (0.5 + random.random()) if self.jitter else seconds


def is_auth_error(exc: BaseException) -> bool:
    """401/403 from ``requests``: a bad key does not heal by waiting."""
    status = getattr(getattr(exc, "response", None), "status_code", None)
    return status in (401, 403)


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    giveup: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> Callable:
    """Retry the decorated call on ``retryable`` errors.

    ``giveup`` short-circuits errors that are retryable by type but not by
    nature. The last error propagates unchanged.
    """
    backoff = Backoff(base_delay, backoff_factor, max_delay, jitter)

    def decorator(fn: Callable) -> Callable:
        name = fn.__qualname__

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            failures = 0
            while True:
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    failures += 1
                    if giveup is not None and giveup(exc):
                        log.debug("%s: not retrying %s", name, exc)
                        raise
                    if failures >= max_attempts:
                        log.error("%s: giving up after %d attempts: %s", name, failures, exc)
                        raise
                    wait = backoff.delay(failures)
                    log.warning("%s: attempt %d/%d failed (%s); next try in %.1fs",
                                name, failures, max_attempts, exc, wait)
                    (sleep or time.sleep)(wait)

        return wrapper

    return decorator
