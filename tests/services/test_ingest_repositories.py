from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import text
from sqlalchemy.engine.url import make_url

from app.core.database import build_database, coerce_sync_database_url
from app.models.tournament import (
    Coordinates,
    Resolution,
    ResolutionTier,
    RunRecord,
    RunStatus,
    TournamentDraft,
)
from app.services.ingest.errors import StoreConflictError, StorePersistenceError
from app.services.ingest.repositories import (
    SqlGeocodeCacheStore,
    SqlRunLogRepository,
    SqlTournamentRepository,
    build_repositories,
)
from pipelines.ingest.geocode_cache import GeocodeCache
from pipelines.ingest.upsert import TournamentUpserter, UpsertOutcome

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def database(tmp_path):
    handle = build_database(f"sqlite:///{tmp_path / 'ingest.db'}", auto_create_schema=True)
    yield handle
    handle.dispose()


def _tournament(ref: str = "1001", tier: ResolutionTier = ResolutionTier.GEOCODER):
    draft = TournamentDraft(
        source="chess-results",
        external_ref=ref,
        name="Paris Rapid Cup",
        start_date=date(2026, 11, 7),
        location_text="Paris",
        city="Paris",
        country="France",
        country_code="FR",
        source_url=f"https://chess-results.com/tnr{ref}.aspx?lan=1",
    )
    return draft.with_resolution(Resolution(Coordinates(48.85, 2.35), tier)).model_copy(
        update={"first_seen_at": NOW, "last_updated_at": NOW}
    )


def test_insert_get_and_conditional_update(database):
    repository = SqlTournamentRepository(database)
    repository.ping()

    inserted = repository.insert(_tournament())
    assert inserted.id is not None
    assert inserted.version == 1

    fetched = repository.get("chess-results", "1001")
    assert fetched is not None
    assert fetched.id == inserted.id
    assert fetched.resolution_tier is ResolutionTier.GEOCODER
    assert fetched.first_seen_at == NOW

    renamed = fetched.model_copy(update={"name": "Paris Rapid Cup II"})
    updated = repository.update(renamed, expected_version=1)
    assert updated.version == 2
    assert updated.name == "Paris Rapid Cup II"
    assert updated.id == inserted.id

    with pytest.raises(StoreConflictError):
        repository.update(renamed, expected_version=1)


def test_duplicate_insert_is_a_conflict(database):
    repository = SqlTournamentRepository(database)
    repository.insert(_tournament())
    with pytest.raises(StoreConflictError):
        repository.insert(_tournament())
    assert repository.count() == 1


def test_hand_edited_invalid_row_is_a_persistence_error(database):
    repository = SqlTournamentRepository(database)
    repository.insert(_tournament())
    with database.engine.begin() as conn:
        conn.execute(text("UPDATE tournaments SET category = 'bughouse' WHERE external_ref = '1001'"))

    with pytest.raises(StorePersistenceError) as excinfo:
        repository.get("chess-results", "1001")
    assert excinfo.value.code == "STORE_ROW_INVALID"


def test_upserter_against_sqlite_is_idempotent(database):
    repository = SqlTournamentRepository(database)
    upserter = TournamentUpserter(repository)

    outcomes = [upserter.upsert(_tournament(str(ref)))[0] for ref in (1, 2, 3)]
    outcomes += [upserter.upsert(_tournament(str(ref)))[0] for ref in (1, 2, 3)]

    assert outcomes == [UpsertOutcome.INSERTED] * 3 + [UpsertOutcome.UPDATED] * 3
    assert repository.count() == 3
    assert [row.external_ref for row in repository.list(source="chess-results")] == ["1", "2", "3"]


def test_run_log_is_append_only(database):
    repository = SqlRunLogRepository(database)
    started = RunRecord(run_id="run-a", started_at=NOW)
    repository.append(started)
    repository.append(
        started.model_copy(
            update={
                "status": RunStatus.COMPLETED,
                "completed_at": NOW,
                "listings_found": 12,
                "details": {"regions": {"FR": {"found": 12}}},
            }
        )
    )

    rows = repository.list_run("run-a")
    assert [row.status for row in rows] == [RunStatus.RUNNING, RunStatus.COMPLETED]
    assert rows[1].listings_found == 12
    assert rows[1].details["regions"]["FR"]["found"] == 12
    assert len(repository.recent(limit=5)) == 2


def test_geocode_cache_store_round_trip(database):
    store = SqlGeocodeCacheStore(database)
    cache = GeocodeCache(store=store)
    cache.put("Lyon", "FR", Coordinates(45.76, 4.83))
    store.save("lyon|FR", Coordinates(0.0, 0.0))

    warm = GeocodeCache(store=SqlGeocodeCacheStore(database))
    assert warm.get("LYON", "fr") == Coordinates(45.76, 4.83)


def test_build_repositories_without_url_is_in_memory(monkeypatch):
    monkeypatch.setattr("app.services.ingest.repositories.settings.database_url", None)
    repositories = build_repositories()
    assert repositories.database is None
    assert repositories.geocode_store is None
    repositories.tournaments.ping()


def test_async_urls_are_coerced_to_sync_drivers():
    url, connect_args, driver = coerce_sync_database_url(
        make_url("postgresql+asyncpg://user:pw@db.abc.supabase.co:5432/postgres?ssl=require")
    )
    assert driver == "postgresql+psycopg2"
    assert url.startswith("postgresql+psycopg2://user:pw@db.abc.supabase.co:5432/postgres")
    assert "ssl=" not in url
    assert connect_args == {"sslmode": "require"}
