"""Process-wide minimum-interval gate for rate-limited external services."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from threading import Lock

logger = logging.getLogger("pipelines.ingest.rate_limiter")

Clock = Callable[[], float]
SleepFn = Callable[[float], None]


class RateLimiter:
    """Blocks callers until `min_interval` has elapsed since the previous grant.

    A single lock guards the last-grant timestamp; callers queue on it, so
    successive grants are spaced by at least `min_interval` regardless of how
    many threads call `acquire` concurrently.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Clock | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._lock = Lock()
        self._last_grant: float | None = None

    def acquire(self) -> float:
        """Wait for the next slot and return the clock reading at which it was granted."""
        with self._lock:
            now = self._clock()
            if self._last_grant is not None:
                wait = self._last_grant + self.min_interval - now
                if wait > 0:
                    logger.debug("rate_limiter.wait", extra={"wait_ms": round(wait * 1000, 2)})
                    self._sleep(wait)
                    now = max(self._clock(), self._last_grant + self.min_interval)
            self._last_grant = now
            return now

    def reset(self) -> None:
        with self._lock:
            self._last_grant = None


_GEOCODER_LIMITER: RateLimiter | None = None
_GEOCODER_LIMITER_LOCK = Lock()


def get_geocoder_rate_limiter(min_interval: float = 1.0) -> RateLimiter:
    """Return the one geocoder limiter shared by every run in this process.

    `min_interval` only applies to the first call; later callers get the
    existing limiter unchanged.
    """
    global _GEOCODER_LIMITER  # noqa: PLW0603
    with _GEOCODER_LIMITER_LOCK:
        if _GEOCODER_LIMITER is None:
            _GEOCODER_LIMITER = RateLimiter(min_interval)
        elif _GEOCODER_LIMITER.min_interval != min_interval:
            logger.warning(
                "rate_limiter.interval_ignored",
                extra={"requested": min_interval, "active": _GEOCODER_LIMITER.min_interval},
            )
        return _GEOCODER_LIMITER
