"""Top-level ingestion run: crawl → normalize → resolve → upsert, recorded in the run ledger."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from threading import Lock
from typing import Any
from uuid import uuid4

from app.clients.chess_results import ChessResultsClient
from app.clients.google_geocoding import GoogleGeocodingClient
from app.clients.nominatim import NominatimClient
from app.config import Settings, settings as default_settings
from app.models.tournament import RawListing, RunRecord, RunStatus
from app.observability.metrics import metrics
from app.services.ingest.errors import (
    NormalizationError,
    RunFatalError,
    StorePersistenceError,
    StoreUnavailableError,
)
from app.services.ingest.repositories import (
    IngestRepositories,
    TournamentRepository,
    build_repositories,
)
from pipelines.ingest.crawler import ChessResultsSource, ListingSource, RegionCrawl
from pipelines.ingest.geocode_cache import GeocodeCache
from pipelines.ingest.ledger import RunLedger
from pipelines.ingest.normalizer import NormalizationContext, normalize_listing
from pipelines.ingest.rate_limiter import RateLimiter, get_geocoder_rate_limiter
from pipelines.ingest.resolver import CoordinateResolver, LocationQuery, build_resolver
from pipelines.ingest.upsert import TournamentUpserter, UpsertOutcome

logger = logging.getLogger("pipelines.ingest.orchestrator")

NO_LISTINGS_MESSAGE = "no listings acquired from any source"


@dataclass(frozen=True)
class RegionPlan:
    region: str
    target: int


def build_region_plan(
    targets: Mapping[str, int], regions: Sequence[str] | None = None
) -> list[RegionPlan]:
    """Plan in configuration order, optionally restricted to `regions`."""
    if regions is None:
        return [RegionPlan(code, target) for code, target in targets.items()]
    plan: list[RegionPlan] = []
    for raw in regions:
        code = raw.strip().upper()
        if not code or any(item.region == code for item in plan):
            continue
        if code not in targets:
            raise ValueError(f"Region {code} is not configured.")
        plan.append(RegionPlan(code, targets[code]))
    return plan


@dataclass
class RegionResult:
    region: str
    target: int
    found: int = 0
    added: int = 0
    updated: int = 0
    errors: int = 0
    skipped: bool = False
    terminated_early: bool = False
    stopped_by_budget: bool = False

    @property
    def failed(self) -> bool:
        return self.found == 0 and self.errors > 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "found": self.found,
            "shortfall": max(self.target - self.found, 0),
            "added": self.added,
            "updated": self.updated,
            "errors": self.errors,
            "skipped": self.skipped,
            "truncated": self.terminated_early or self.stopped_by_budget,
        }


@dataclass
class _RunTotals:
    results: list[RegionResult] = field(default_factory=list)
    fatal_errors: int = 0

    def as_run_fields(self) -> dict[str, Any]:
        scanned = [result for result in self.results if not result.skipped]
        added = sum(result.added for result in scanned)
        updated = sum(result.updated for result in scanned)
        return {
            "regions_processed": len(scanned),
            "listings_found": sum(result.found for result in scanned),
            "tournaments_added": added,
            "tournaments_updated": updated,
            "tournaments_written": added + updated,
            "errors": sum(result.errors for result in scanned) + self.fatal_errors,
        }


class IngestionOrchestrator:
    """Runs one ingestion pass over a region plan.

    Regions are scanned in parallel on a bounded thread pool; pages within a
    region are sequential. Only an unreachable store aborts a run; every other
    failure becomes a counter on the run record.
    """

    def __init__(
        self,
        *,
        source: ListingSource,
        resolver: CoordinateResolver,
        upserter: TournamentUpserter,
        store: TournamentRepository,
        ledger: RunLedger,
        plan: Sequence[RegionPlan],
        concurrency: int = 4,
        budget_seconds: float | None = None,
        max_consecutive_errors: int = 3,
        monotonic: Callable[[], float] | None = None,
        today: Callable[[], date] | None = None,
        closers: Sequence[Callable[[], None]] = (),
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._source = source
        self._resolver = resolver
        self._upserter = upserter
        self._store = store
        self._ledger = ledger
        self._plan = list(plan)
        self._concurrency = concurrency
        self._budget_seconds = budget_seconds
        self._max_consecutive_errors = max_consecutive_errors
        self._monotonic = monotonic or time.monotonic
        self._today = today or (lambda: datetime.now(timezone.utc).date())
        self._closers = list(closers)
        self._deadline: float | None = None
        self._budget_lock = Lock()
        self._budget_exhausted = False

    @property
    def plan(self) -> list[RegionPlan]:
        return list(self._plan)

    def run(self, run_id: str | None = None) -> RunRecord:
        run_id = run_id or new_run_id()
        run = self._ledger.start(run_id)
        totals = _RunTotals()
        status = RunStatus.FAILED
        message = "Run aborted"
        details: dict[str, Any] = {"source": self._source.name}
        self._budget_exhausted = False
        if self._budget_seconds is not None:
            self._deadline = self._monotonic() + self._budget_seconds
        else:
            self._deadline = None
        logger.info(
            "ingest.run.started",
            extra={"run_id": run_id, "regions": len(self._plan), "concurrency": self._concurrency},
        )
        try:
            self._ping_store()
            totals.results = self._scan_regions(self._today())
            status, message = self._conclude(totals)
        except RunFatalError as exc:
            totals.fatal_errors += 1
            message = str(exc)
            logger.error("ingest.run.fatal", extra={"run_id": run_id, "code": exc.code})
        except Exception as exc:
            totals.fatal_errors += 1
            message = f"Run failed: {exc}"
            logger.exception("ingest.run.crashed", extra={"run_id": run_id})
        finally:
            details["regions"] = {result.region: result.as_dict() for result in totals.results}
            details["budget_exhausted"] = self._budget_exhausted
            run = run.model_copy(update={**totals.as_run_fields(), "details": details})
            run = self._ledger.finish(run, status=status, message=message)
        return run

    def close(self) -> None:
        for closer in self._closers:
            closer()

    def _ping_store(self) -> None:
        try:
            self._store.ping()
        except StoreUnavailableError as exc:
            raise RunFatalError(f"Tournament store is unreachable: {exc}", code=exc.code) from exc

    def _scan_regions(self, as_of: date) -> list[RegionResult]:
        if not self._plan:
            return []
        results = [RegionResult(plan.region, plan.target) for plan in self._plan]
        workers = min(self._concurrency, len(self._plan))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest-region") as pool:
            futures = [
                (result, pool.submit(self._process_region, plan, as_of, result))
                for plan, result in zip(self._plan, results)
            ]
            for result, future in futures:
                try:
                    future.result()
                except Exception:
                    # Counts gathered before the crash stay on the result.
                    result.errors += 1
                    logger.exception("ingest.region.crashed", extra={"region": result.region})
        return results

    def _process_region(self, plan: RegionPlan, as_of: date, result: RegionResult) -> RegionResult:
        if self._should_stop():
            result.skipped = True
            result.stopped_by_budget = True
            return result

        context = NormalizationContext(source=self._source.name, region=plan.region, as_of=as_of)
        crawl = RegionCrawl(
            self._source,
            region=plan.region,
            target=plan.target,
            max_consecutive_errors=self._max_consecutive_errors,
            should_stop=self._should_stop,
        )
        try:
            for listing in crawl:
                result.found += 1
                self._ingest_listing(listing, context, result)
        finally:
            stats = crawl.stats
            result.errors += stats.errors
            result.terminated_early = stats.terminated_early
            result.stopped_by_budget = stats.stopped_by_budget
        metrics.gauge("crawler.region.shortfall", stats.shortfall, tags={"region": plan.region})
        logger.info(
            "ingest.region.completed",
            extra={"region": plan.region, **result.as_dict()},
        )
        return result

    def _ingest_listing(
        self, listing: RawListing, context: NormalizationContext, result: RegionResult
    ) -> None:
        try:
            draft = normalize_listing(listing, context)
        except NormalizationError as exc:
            result.errors += 1
            metrics.increment("normalizer.rejected", tags={"code": exc.code})
            logger.info(
                "ingest.listing.rejected",
                extra={"region": context.region, "url": listing.source_url, "code": exc.code},
            )
            return

        try:
            resolution = self._resolver.resolve(LocationQuery.from_draft(draft))
            outcome, _ = self._upserter.upsert(draft.with_resolution(resolution))
        except (StorePersistenceError, StoreUnavailableError) as exc:
            result.errors += 1
            logger.warning(
                "ingest.listing.write_failed",
                extra={
                    "region": context.region,
                    "external_ref": draft.external_ref,
                    "code": exc.code,
                },
            )
            return
        except Exception:
            result.errors += 1
            metrics.increment("ingest.listing.crashed", tags={"region": context.region})
            logger.exception(
                "ingest.listing.crashed",
                extra={"region": context.region, "external_ref": draft.external_ref},
            )
            return
        if outcome is UpsertOutcome.INSERTED:
            result.added += 1
        else:
            result.updated += 1

    def _should_stop(self) -> bool:
        if self._deadline is None:
            return False
        with self._budget_lock:
            if not self._budget_exhausted and self._monotonic() >= self._deadline:
                self._budget_exhausted = True
                logger.warning("ingest.run.budget_exhausted")
            return self._budget_exhausted

    def _conclude(self, totals: _RunTotals) -> tuple[RunStatus, str]:
        fields = totals.as_run_fields()
        scanned = [result for result in totals.results if not result.skipped]
        if fields["listings_found"] == 0 and scanned and all(result.failed for result in scanned):
            return RunStatus.FAILED, NO_LISTINGS_MESSAGE
        message = (
            f"Scraped {fields['listings_found']} listings across "
            f"{fields['regions_processed']} regions: {fields['tournaments_added']} added, "
            f"{fields['tournaments_updated']} updated, {fields['errors']} errors"
        )
        if self._budget_exhausted:
            message += " (partial coverage: run budget exhausted)"
        return RunStatus.COMPLETED, message


def new_run_id() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"run_{stamp}_{uuid4().hex[:8]}"


def build_orchestrator(
    config: Settings | None = None,
    *,
    regions: Sequence[str] | None = None,
    budget_seconds: float | None = None,
    concurrency: int | None = None,
    repositories: IngestRepositories | None = None,
    rate_limiter: RateLimiter | None = None,
) -> IngestionOrchestrator:
    """Wire the production pipeline from settings."""
    config = config or default_settings
    owns_repositories = repositories is None
    repositories = repositories or build_repositories(config.database_url)
    crawler_client = ChessResultsClient(
        base_url=config.crawler_base_url,
        user_agent=config.crawler_user_agent,
        timeout=config.http_timeout_seconds,
    )
    google_client = (
        GoogleGeocodingClient(
            config.google_maps_api_key,
            base_url=config.google_geocoding_base_url,
            timeout=config.http_timeout_seconds,
        )
        if config.google_maps_api_key
        else None
    )
    nominatim_client = NominatimClient(
        base_url=config.nominatim_base_url,
        user_agent=config.nominatim_user_agent,
        timeout=config.http_timeout_seconds,
    )
    cache = GeocodeCache(store=repositories.geocode_store)
    resolver = build_resolver(
        config.resolver_tiers,
        cache=cache,
        google_client=google_client,
        nominatim_client=nominatim_client,
        rate_limiter=rate_limiter
        or get_geocoder_rate_limiter(config.nominatim_min_interval_seconds),
    )
    closers: list[Callable[[], None]] = [crawler_client.close, nominatim_client.close]
    if google_client is not None:
        closers.append(google_client.close)
    if owns_repositories:
        closers.append(repositories.close)

    return IngestionOrchestrator(
        source=ChessResultsSource(
            crawler_client,
            retry_attempts=config.crawler_retry_attempts,
            page_delay=config.crawler_page_delay_seconds,
        ),
        resolver=resolver,
        upserter=TournamentUpserter(repositories.tournaments),
        store=repositories.tournaments,
        ledger=RunLedger(repositories.run_log),
        plan=build_region_plan(config.region_targets, regions),
        concurrency=concurrency or config.ingest_concurrency,
        budget_seconds=budget_seconds if budget_seconds is not None else config.ingest_run_budget_seconds,
        max_consecutive_errors=config.crawler_max_consecutive_errors,
        closers=closers,
    )
