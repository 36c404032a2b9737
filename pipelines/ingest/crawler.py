"""Per-region listing crawl loops over pluggable listing sources."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Protocol

from app.clients.chess_results import ChessResultsClient, ChessResultsError
from app.clients.http import backoff_delays
from app.models.tournament import RawListing
from app.observability.metrics import metrics
from app.services.ingest.errors import CrawlPageError
from pipelines.ingest.centroids import ISO_TO_FIDE

logger = logging.getLogger("pipelines.ingest.crawler")

SleepFn = Callable[[float], None]
StopSignal = Callable[[], bool]


class ListingSource(Protocol):
    """One external listing site.

    `page_refs` enumerates the pages of a region in crawl order; failures while
    enumerating end the region scan. `fetch_page` returns the listings of one
    page and raises CrawlPageError on network or parse failures.
    """

    name: str

    def page_refs(self, region: str) -> Iterator[str]:
        ...

    def fetch_page(self, ref: str) -> list[RawListing]:
        ...


@dataclass
class RegionScanStats:
    region: str
    target: int
    listings: int = 0
    pages: int = 0
    errors: int = 0
    error_messages: list[str] = field(default_factory=list)
    terminated_early: bool = False
    stopped_by_budget: bool = False

    @property
    def shortfall(self) -> int:
        return max(self.target - self.listings, 0)

    def record_error(self, message: str) -> None:
        self.errors += 1
        self.error_messages.append(message[:300])

    def as_dict(self) -> dict[str, object]:
        return {
            "target": self.target,
            "found": self.listings,
            "shortfall": self.shortfall,
            "pages": self.pages,
            "errors": self.errors,
            "terminated_early": self.terminated_early,
            "stopped_by_budget": self.stopped_by_budget,
        }


class RegionCrawl:
    """Lazy, finite, single-use sequence of RawListing for one region.

    Iterating drives the page loop; `stats` is complete once iteration ends.
    """

    def __init__(
        self,
        source: ListingSource,
        *,
        region: str,
        target: int,
        max_consecutive_errors: int = 3,
        should_stop: StopSignal | None = None,
    ) -> None:
        if target < 0:
            raise ValueError("target must be >= 0")
        if max_consecutive_errors < 1:
            raise ValueError("max_consecutive_errors must be >= 1")
        self._source = source
        self._max_consecutive_errors = max_consecutive_errors
        self._should_stop = should_stop or (lambda: False)
        self._started = False
        self.stats = RegionScanStats(region=region, target=target)

    def __iter__(self) -> Iterator[RawListing]:
        if self._started:
            raise RuntimeError("RegionCrawl is not restartable.")
        self._started = True
        return self._scan()

    def _scan(self) -> Iterator[RawListing]:
        stats = self.stats
        if stats.target == 0:
            return
        seen: set[str] = set()
        consecutive_errors = 0
        refs = self._source.page_refs(stats.region)
        while stats.listings < stats.target:
            if self._should_stop():
                stats.stopped_by_budget = True
                logger.info("crawler.region.budget_stop", extra={"region": stats.region})
                return
            try:
                ref = next(refs)
            except StopIteration:
                return
            except Exception as exc:
                stats.record_error(f"page enumeration failed: {exc}")
                stats.terminated_early = True
                self._log_page_error(ref=None, exc=exc)
                return

            stats.pages += 1
            started = time.perf_counter()
            try:
                listings = self._source.fetch_page(ref)
            except CrawlPageError as exc:
                stats.record_error(str(exc))
                self._log_page_error(ref=ref, exc=exc)
                consecutive_errors += 1
                if consecutive_errors >= self._max_consecutive_errors:
                    stats.terminated_early = True
                    logger.warning(
                        "crawler.region.terminated",
                        extra={"region": stats.region, "consecutive_errors": consecutive_errors},
                    )
                    return
                continue
            consecutive_errors = 0
            metrics.increment("crawler.page.fetched", tags={"source": self._source.name})
            metrics.timing(
                "crawler.page.latency_ms",
                (time.perf_counter() - started) * 1000,
                tags={"source": self._source.name},
            )

            for listing in listings:
                dedup_key = listing.listing_id or listing.source_url
                if dedup_key in seen:
                    continue
                seen.add(dedup_key)
                stats.listings += 1
                yield listing
                if stats.listings >= stats.target:
                    return

    def _log_page_error(self, *, ref: str | None, exc: Exception) -> None:
        metrics.increment("crawler.page.error", tags={"source": self._source.name})
        logger.warning(
            "crawler.page.error",
            extra={
                "source": self._source.name,
                "region": self.stats.region,
                "ref": ref,
                "code": getattr(exc, "code", type(exc).__name__),
                "error": str(exc)[:300],
            },
        )


class ChessResultsSource:
    """chess-results.com: a federation index page followed by one detail page per tournament."""

    name = "chess-results"

    def __init__(
        self,
        client: ChessResultsClient,
        *,
        retry_attempts: int = 3,
        page_delay: float = 0.2,
        sleep: SleepFn | None = None,
    ) -> None:
        self._client = client
        self._retry_attempts = max(retry_attempts, 1)
        self._page_delay = max(page_delay, 0.0)
        self._sleep = sleep or time.sleep

    def page_refs(self, region: str) -> Iterator[str]:
        federation = ISO_TO_FIDE.get(region.upper(), region.upper())
        urls = self._with_retries(lambda: self._client.list_tournament_urls(federation), federation)
        logger.info(
            "crawler.index.loaded",
            extra={"region": region, "federation": federation, "links": len(urls)},
        )
        yield from urls

    def fetch_page(self, ref: str) -> list[RawListing]:
        if self._page_delay:
            self._sleep(self._page_delay)
        return [self._with_retries(lambda: self._client.fetch_tournament(ref), ref)]

    def _with_retries(self, call, ref: str):
        for attempt, delay in backoff_delays(max_attempts=self._retry_attempts):
            try:
                return call()
            except ChessResultsError as exc:
                if not exc.retryable or attempt >= self._retry_attempts:
                    raise CrawlPageError(f"{ref}: {exc}", code=exc.code) from exc
                logger.info(
                    "crawler.page.retry",
                    extra={"ref": ref, "attempt": attempt, "delay_ms": round(delay * 1000, 2)},
                )
                self._sleep(delay)
        raise CrawlPageError(f"{ref}: retries exhausted")
