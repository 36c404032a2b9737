from __future__ import annotations

import itertools
from dataclasses import replace

import pytest

from app.models.tournament import ResolutionTier, RunStatus
from app.services.ingest.errors import StorePersistenceError, StoreUnavailableError
from app.services.ingest.repositories import (
    IngestRepositories,
    InMemoryRunLogRepository,
    InMemoryTournamentRepository,
)
from pipelines.ingest.ledger import RunLedger
from pipelines.ingest.orchestrator import (
    NO_LISTINGS_MESSAGE,
    IngestionOrchestrator,
    RegionPlan,
    build_orchestrator,
    build_region_plan,
)
from pipelines.ingest.rate_limiter import get_geocoder_rate_limiter
from pipelines.ingest.resolver import CoordinateResolver, RegionCentroidStrategy
from pipelines.ingest.upsert import TournamentUpserter
from tests.helpers.ingest_fakes import AS_OF, FakeListingSource, make_listing
from tests.helpers.metrics_stub import StubMetrics


def _us_listing(number: int):
    return make_listing(number, city="Chicago", state="IL", federation="United States (USA)")


def _orchestrator(
    source: FakeListingSource,
    plan: list[RegionPlan],
    *,
    store: InMemoryTournamentRepository | None = None,
    run_log: InMemoryRunLogRepository | None = None,
    **kwargs,
) -> IngestionOrchestrator:
    store = store if store is not None else InMemoryTournamentRepository()
    return IngestionOrchestrator(
        source=source,
        resolver=CoordinateResolver([RegionCentroidStrategy()]),
        upserter=TournamentUpserter(store),
        store=store,
        ledger=RunLedger(run_log if run_log is not None else InMemoryRunLogRepository()),
        plan=plan,
        today=lambda: AS_OF,
        **kwargs,
    )


def test_partial_region_failure_completes_with_error_count():
    in_pages = [[make_listing(i)] for i in range(1, 31)] + [RuntimeError("502 Bad Gateway")]
    us_pages = [[_us_listing(i) for i in range(101, 111)]]
    source = FakeListingSource({"IN": in_pages, "US": us_pages})
    store = InMemoryTournamentRepository()
    run_log = InMemoryRunLogRepository()
    orchestrator = _orchestrator(
        source,
        [RegionPlan("IN", 100), RegionPlan("US", 50)],
        store=store,
        run_log=run_log,
        concurrency=2,
    )

    record = orchestrator.run("run-partial")

    assert record.status is RunStatus.COMPLETED
    assert record.errors == 1
    assert record.listings_found == 40
    assert record.tournaments_added == 40
    assert record.tournaments_written == 40
    assert record.regions_processed == 2
    assert store.count() == 40
    assert record.details["regions"]["IN"]["found"] == 30
    assert record.details["regions"]["IN"]["shortfall"] == 70
    assert record.details["regions"]["IN"]["errors"] == 1
    assert [row.status for row in run_log.list_run("run-partial")] == [
        RunStatus.RUNNING,
        RunStatus.COMPLETED,
    ]


def test_rerun_updates_instead_of_duplicating():
    pages = {"IN": [[make_listing(i) for i in range(1, 6)]]}
    store = InMemoryTournamentRepository()

    first = _orchestrator(FakeListingSource(pages), [RegionPlan("IN", 10)], store=store).run()
    second = _orchestrator(FakeListingSource(pages), [RegionPlan("IN", 10)], store=store).run()

    assert first.tournaments_added == 5
    assert second.tournaments_added == 0
    assert second.tournaments_updated == 5
    assert store.count() == 5
    assert all(row.resolution_tier is ResolutionTier.REGION_CENTROID for row in store.list())


def test_run_fails_when_no_listings_are_acquired():
    source = FakeListingSource(
        {"IN": [RuntimeError("down")] * 3},
        enumeration_errors={"US": RuntimeError("index unavailable")},
    )
    orchestrator = _orchestrator(source, [RegionPlan("IN", 100), RegionPlan("US", 50)])

    record = orchestrator.run()

    assert record.status is RunStatus.FAILED
    assert record.message == NO_LISTINGS_MESSAGE
    assert record.listings_found == 0


class UnreachableStore(InMemoryTournamentRepository):
    def ping(self) -> None:
        raise StoreUnavailableError()


def test_unreachable_store_is_run_fatal():
    source = FakeListingSource({"IN": [[make_listing(1)]]})
    run_log = InMemoryRunLogRepository()
    orchestrator = _orchestrator(
        source, [RegionPlan("IN", 10)], store=UnreachableStore(), run_log=run_log
    )

    record = orchestrator.run("run-fatal")

    assert record.status is RunStatus.FAILED
    assert "unreachable" in record.message
    assert source.fetched == []
    assert [row.status for row in run_log.list_run("run-fatal")] == [
        RunStatus.RUNNING,
        RunStatus.FAILED,
    ]


def test_budget_exhaustion_stops_new_pages_and_regions():
    source = FakeListingSource(
        {"IN": [[make_listing(i)] for i in range(1, 11)], "US": [[_us_listing(200)]]}
    )
    ticks = itertools.count()
    orchestrator = _orchestrator(
        source,
        [RegionPlan("IN", 100), RegionPlan("US", 50)],
        concurrency=1,
        budget_seconds=3,
        monotonic=lambda: next(ticks),
    )

    record = orchestrator.run()

    assert record.status is RunStatus.COMPLETED
    assert record.listings_found == 1
    assert record.details["budget_exhausted"] is True
    assert record.details["regions"]["US"]["skipped"] is True
    assert "partial coverage" in record.message
    assert source.fetched == ["IN:0"]


def test_unnormalizable_listings_are_counted_not_written():
    broken = replace(make_listing(2), date_text="TBA")
    source = FakeListingSource({"IN": [[make_listing(1), broken, make_listing(3)]]})
    store = InMemoryTournamentRepository()
    record = _orchestrator(source, [RegionPlan("IN", 10)], store=store).run()

    assert record.status is RunStatus.COMPLETED
    assert record.listings_found == 3
    assert record.errors == 1
    assert store.count() == 2


class RejectingStore(InMemoryTournamentRepository):
    def insert(self, tournament):
        if tournament.external_ref == "2":
            raise StorePersistenceError("value too long")
        return super().insert(tournament)


def test_write_failures_are_counted_and_run_continues():
    source = FakeListingSource({"IN": [[make_listing(i) for i in range(1, 4)]]})
    store = RejectingStore()
    record = _orchestrator(source, [RegionPlan("IN", 10)], store=store).run()

    assert record.status is RunStatus.COMPLETED
    assert record.errors == 1
    assert record.tournaments_written == 2
    assert store.count() == 2


def test_build_region_plan_filters_and_validates():
    targets = {"IN": 100, "US": 100, "IT": 50}
    assert build_region_plan(targets) == [
        RegionPlan("IN", 100),
        RegionPlan("US", 100),
        RegionPlan("IT", 50),
    ]
    assert build_region_plan(targets, ["it", "IN", "it"]) == [
        RegionPlan("IT", 50),
        RegionPlan("IN", 100),
    ]
    with pytest.raises(ValueError):
        build_region_plan(targets, ["XX"])


class CorruptRowStore(InMemoryTournamentRepository):
    def get(self, source, external_ref):
        if external_ref == "6":
            raise ValueError("'bughouse' is not a valid TournamentCategory")
        return super().get(source, external_ref)


def test_unexpected_record_error_skips_only_that_listing():
    source = FakeListingSource({"IN": [[make_listing(i)] for i in range(1, 11)]})
    store = CorruptRowStore()
    record = _orchestrator(source, [RegionPlan("IN", 100)], store=store).run()

    assert record.status is RunStatus.COMPLETED
    assert record.listings_found == 10
    assert record.errors == 1
    assert record.tournaments_written == 9
    assert store.count() == 9
    assert len(source.fetched) == 10


class GaugeFailingMetrics(StubMetrics):
    def gauge(self, metric, value, *, tags=None):
        raise RuntimeError("statsd socket closed")


def test_crashed_region_keeps_partial_counts(monkeypatch):
    monkeypatch.setattr("pipelines.ingest.orchestrator.metrics", GaugeFailingMetrics())
    source = FakeListingSource({"IN": [[make_listing(i) for i in range(1, 4)]]})
    store = InMemoryTournamentRepository()
    record = _orchestrator(source, [RegionPlan("IN", 10)], store=store).run()

    assert record.status is RunStatus.COMPLETED
    assert record.listings_found == 3
    assert record.tournaments_added == 3
    assert record.errors == 1
    assert record.details["regions"]["IN"]["found"] == 3


def test_built_orchestrators_share_one_geocoder_limiter(monkeypatch):
    limiters = []

    def capture_resolver(tier_names, **kwargs):
        limiters.append(kwargs["rate_limiter"])
        return CoordinateResolver([RegionCentroidStrategy()])

    monkeypatch.setattr("pipelines.ingest.orchestrator.build_resolver", capture_resolver)
    repositories = IngestRepositories(
        tournaments=InMemoryTournamentRepository(), run_log=InMemoryRunLogRepository()
    )
    first = build_orchestrator(regions=["IN"], repositories=repositories)
    second = build_orchestrator(regions=["US"], repositories=repositories)
    first.close()
    second.close()

    assert len(limiters) == 2
    assert limiters[0] is limiters[1]
    assert limiters[0] is get_geocoder_rate_limiter()
