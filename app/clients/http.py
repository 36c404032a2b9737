"""Shared httpx helpers for outbound crawler and geocoder calls."""

from __future__ import annotations

from collections.abc import Iterator

import httpx

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def build_timeout(total_seconds: float) -> httpx.Timeout:
    """Return a bounded timeout; connect gets a third of the budget."""
    if total_seconds <= 0:
        raise ValueError("total_seconds must be > 0")
    return httpx.Timeout(total_seconds, connect=max(total_seconds / 3, 1.0))


def build_http_client(
    *,
    base_url: str = "",
    timeout_seconds: float,
    user_agent: str,
    accept: str = "text/html,application/json;q=0.9,*/*;q=0.5",
) -> httpx.Client:
    return httpx.Client(
        base_url=base_url.rstrip("/"),
        timeout=build_timeout(timeout_seconds),
        headers={"User-Agent": user_agent, "Accept": accept},
        follow_redirects=True,
    )


def backoff_delays(
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    factor: float = 2.0,
    max_delay: float = 8.0,
) -> Iterator[tuple[int, float]]:
    """Yield (attempt, delay_seconds) pairs; the delay follows a failed attempt."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    if base_delay < 0:
        raise ValueError("base_delay must be >= 0")
    if factor < 1:
        raise ValueError("factor must be >= 1")
    delay = base_delay
    for attempt in range(1, max_attempts + 1):
        yield attempt, min(delay, max_delay)
        delay *= factor
