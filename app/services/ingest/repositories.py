"""Persistence backends for tournaments, the run log, and the geocode cache."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Protocol
from uuid import uuid4

from sqlalchemy import func, text, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session, select

from app.config import settings
from app.core.database import DatabaseHandle, build_database
from app.models.geocode_cache import GeocodeCacheRecord
from app.models.run_log import RunLogRecord
from app.models.tournament import CanonicalTournament, Coordinates, RunRecord
from app.models.tournament_record import TournamentRecord, utcnow
from app.observability.metrics import metrics
from app.services.ingest.errors import (
    StoreConflictError,
    StorePersistenceError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


class TournamentRepository(Protocol):
    """Persistence contract for canonical tournaments keyed by (source, external_ref)."""

    def ping(self) -> None:
        ...

    def get(self, source: str, external_ref: str) -> CanonicalTournament | None:
        ...

    def insert(self, tournament: CanonicalTournament) -> CanonicalTournament:
        ...

    def update(
        self, tournament: CanonicalTournament, *, expected_version: int
    ) -> CanonicalTournament:
        ...

    def list(self, *, source: str | None = None) -> list[CanonicalTournament]:
        ...

    def count(self) -> int:
        ...


class RunLogRepository(Protocol):
    """Append-only run ledger."""

    def append(self, run: RunRecord) -> None:
        ...

    def list_run(self, run_id: str) -> list[RunRecord]:
        ...

    def recent(self, *, limit: int = 20) -> list[RunRecord]:
        ...


class InMemoryTournamentRepository(TournamentRepository):
    """Thread-safe repository used for tests and local development."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], CanonicalTournament] = {}
        self._lock = Lock()

    def ping(self) -> None:
        return None

    def get(self, source: str, external_ref: str) -> CanonicalTournament | None:
        with self._lock:
            return self._rows.get((source, external_ref))

    def insert(self, tournament: CanonicalTournament) -> CanonicalTournament:
        key = tournament.dedup_key
        stored = tournament.model_copy(update={"id": tournament.id or uuid4(), "version": 1})
        with self._lock:
            if key in self._rows:
                raise StoreConflictError(f"Tournament {key} already exists.")
            self._rows[key] = stored
        metrics.increment("store.tournament.inserted", tags={"repository": "memory"})
        return stored

    def update(
        self, tournament: CanonicalTournament, *, expected_version: int
    ) -> CanonicalTournament:
        key = tournament.dedup_key
        with self._lock:
            current = self._rows.get(key)
            if current is None or current.version != expected_version:
                raise StoreConflictError(f"Version mismatch for {key}.")
            stored = tournament.model_copy(
                update={
                    "id": current.id,
                    "first_seen_at": current.first_seen_at,
                    "version": expected_version + 1,
                }
            )
            self._rows[key] = stored
        metrics.increment("store.tournament.updated", tags={"repository": "memory"})
        return stored

    def list(self, *, source: str | None = None) -> list[CanonicalTournament]:
        with self._lock:
            rows = list(self._rows.values())
        if source is not None:
            rows = [row for row in rows if row.source == source]
        return sorted(rows, key=lambda row: (row.start_date, row.source, row.external_ref))

    def count(self) -> int:
        with self._lock:
            return len(self._rows)


class InMemoryRunLogRepository(RunLogRepository):
    def __init__(self) -> None:
        self._rows: list[RunRecord] = []
        self._lock = Lock()

    def append(self, run: RunRecord) -> None:
        with self._lock:
            self._rows.append(run.model_copy(deep=True))

    def list_run(self, run_id: str) -> list[RunRecord]:
        with self._lock:
            return [row for row in self._rows if row.run_id == run_id]

    def recent(self, *, limit: int = 20) -> list[RunRecord]:
        with self._lock:
            return list(reversed(self._rows))[: max(limit, 0)]


class SqlTournamentRepository(TournamentRepository):
    """SQLModel-backed repository that persists tournaments to Postgres/Supabase or SQLite."""

    def __init__(self, database: DatabaseHandle) -> None:
        self._database = database
        self._metrics_tags = {"repository": database.backend}

    def ping(self) -> None:
        try:
            with self._database.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error(
                "store.ping_failed",
                extra={"backend": self._database.backend, "error": str(exc)[:300]},
            )
            raise StoreUnavailableError() from exc

    def get(self, source: str, external_ref: str) -> CanonicalTournament | None:
        try:
            with self._session() as session:
                statement = select(TournamentRecord).where(
                    TournamentRecord.source == source,
                    TournamentRecord.external_ref == external_ref,
                )
                record = session.exec(statement).first()
        except OperationalError as exc:
            raise StoreUnavailableError() from exc
        except SQLAlchemyError as exc:
            logger.exception(
                "store.read_error",
                extra={"source": source, "external_ref": external_ref, "backend": self._database.backend},
            )
            raise StorePersistenceError("Failed to load tournament.") from exc
        if record is None:
            return None
        try:
            return record.to_tournament()
        except ValueError as exc:
            # pydantic.ValidationError subclasses ValueError.
            logger.error(
                "store.row_invalid",
                extra={"source": source, "external_ref": external_ref, "error": str(exc)[:300]},
            )
            raise StorePersistenceError(
                f"Stored tournament {source}:{external_ref} is invalid.", code="STORE_ROW_INVALID"
            ) from exc

    def insert(self, tournament: CanonicalTournament) -> CanonicalTournament:
        record = TournamentRecord.from_tournament(tournament.model_copy(update={"version": 1}))
        try:
            with self._session() as session:
                session.add(record)
                session.commit()
                session.refresh(record)
                metrics.increment("store.tournament.inserted", tags=self._metrics_tags)
                return record.to_tournament()
        except IntegrityError as exc:
            logger.info(
                "store.insert_conflict",
                extra={
                    "source": tournament.source,
                    "external_ref": tournament.external_ref,
                    "backend": self._database.backend,
                },
            )
            raise StoreConflictError(f"Tournament {tournament.dedup_key} already exists.") from exc
        except SQLAlchemyError as exc:
            logger.exception(
                "store.write_error",
                extra={
                    "source": tournament.source,
                    "external_ref": tournament.external_ref,
                    "backend": self._database.backend,
                },
            )
            raise StorePersistenceError("Failed to insert tournament.") from exc

    def update(
        self, tournament: CanonicalTournament, *, expected_version: int
    ) -> CanonicalTournament:
        values = TournamentRecord.from_tournament(tournament).model_dump(
            exclude={"id", "source", "external_ref", "first_seen_at", "version"}
        )
        values["version"] = expected_version + 1
        statement = (
            update(TournamentRecord)
            .where(
                TournamentRecord.source == tournament.source,
                TournamentRecord.external_ref == tournament.external_ref,
                TournamentRecord.version == expected_version,
            )
            .values(**values)
        )
        try:
            with self._database.engine.begin() as conn:
                result = conn.execute(statement)
        except SQLAlchemyError as exc:
            logger.exception(
                "store.write_error",
                extra={
                    "source": tournament.source,
                    "external_ref": tournament.external_ref,
                    "backend": self._database.backend,
                },
            )
            raise StorePersistenceError("Failed to update tournament.") from exc
        if result.rowcount != 1:
            raise StoreConflictError(f"Version mismatch for {tournament.dedup_key}.")
        metrics.increment("store.tournament.updated", tags=self._metrics_tags)
        stored = self.get(tournament.source, tournament.external_ref)
        if stored is None:
            raise StoreConflictError(f"Tournament {tournament.dedup_key} vanished during update.")
        return stored

    def list(self, *, source: str | None = None) -> list[CanonicalTournament]:
        try:
            with self._session() as session:
                statement = select(TournamentRecord)
                if source is not None:
                    statement = statement.where(TournamentRecord.source == source)
                statement = statement.order_by(
                    TournamentRecord.start_date,
                    TournamentRecord.source,
                    TournamentRecord.external_ref,
                )
                return [record.to_tournament() for record in session.exec(statement).all()]
        except SQLAlchemyError as exc:
            raise StorePersistenceError("Failed to list tournaments.") from exc

    def count(self) -> int:
        try:
            with self._session() as session:
                return session.exec(select(func.count()).select_from(TournamentRecord)).one()
        except SQLAlchemyError as exc:
            raise StorePersistenceError("Failed to count tournaments.") from exc

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with Session(self._database.engine) as session:
            yield session


class SqlRunLogRepository(RunLogRepository):
    def __init__(self, database: DatabaseHandle) -> None:
        self._database = database

    def append(self, run: RunRecord) -> None:
        record = RunLogRecord.from_run(run)
        try:
            with Session(self._database.engine) as session:
                session.add(record)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorePersistenceError("Failed to append run log entry.") from exc

    def list_run(self, run_id: str) -> list[RunRecord]:
        with Session(self._database.engine) as session:
            statement = (
                select(RunLogRecord)
                .where(RunLogRecord.run_id == run_id)
                .order_by(RunLogRecord.logged_at)
            )
            return [record.to_run() for record in session.exec(statement).all()]

    def recent(self, *, limit: int = 20) -> list[RunRecord]:
        with Session(self._database.engine) as session:
            statement = (
                select(RunLogRecord).order_by(RunLogRecord.logged_at.desc()).limit(max(limit, 0))
            )
            return [record.to_run() for record in session.exec(statement).all()]


class SqlGeocodeCacheStore:
    """Persists geocoder successes so later runs start warm."""

    def __init__(self, database: DatabaseHandle) -> None:
        self._database = database

    def load_all(self) -> dict[str, Coordinates]:
        with Session(self._database.engine) as session:
            records = session.exec(select(GeocodeCacheRecord)).all()
            return {record.place_key: Coordinates(record.lat, record.lng) for record in records}

    def save(self, place_key: str, coordinates: Coordinates) -> None:
        with Session(self._database.engine) as session:
            if session.get(GeocodeCacheRecord, place_key) is not None:
                return
            session.add(
                GeocodeCacheRecord(
                    place_key=place_key,
                    lat=coordinates.lat,
                    lng=coordinates.lng,
                    created_at=utcnow(),
                )
            )
            try:
                session.commit()
            except IntegrityError:
                # Another worker stored the same key first.
                session.rollback()


@dataclass
class IngestRepositories:
    tournaments: TournamentRepository
    run_log: RunLogRepository
    geocode_store: SqlGeocodeCacheStore | None = None
    database: DatabaseHandle | None = None

    def close(self) -> None:
        if self.database is not None:
            self.database.dispose()


def build_repositories(database_url: str | None = None) -> IngestRepositories:
    """Instantiate repositories using DATABASE_URL when available."""
    resolved_url = database_url or settings.database_url
    if not resolved_url:
        logger.info("ingest.repository.initialized", extra={"backend": "memory"})
        return IngestRepositories(
            tournaments=InMemoryTournamentRepository(),
            run_log=InMemoryRunLogRepository(),
        )
    try:
        database = build_database(
            resolved_url,
            pool_min_size=settings.db_pool_min_size,
            pool_max_size=settings.db_pool_max_size,
        )
    except Exception:
        logger.exception("ingest.repository.init_failed", extra={"backend": "database"})
        raise
    logger.info("ingest.repository.initialized", extra={"backend": database.backend})
    return IngestRepositories(
        tournaments=SqlTournamentRepository(database),
        run_log=SqlRunLogRepository(database),
        geocode_store=SqlGeocodeCacheStore(database) if settings.geocode_cache_persist else None,
        database=database,
    )


_REPOSITORIES_INSTANCE: IngestRepositories | None = None


def get_ingest_repositories() -> IngestRepositories:
    """Singleton accessor used by API routes."""
    global _REPOSITORIES_INSTANCE  # noqa: PLW0603
    if _REPOSITORIES_INSTANCE is None:
        _REPOSITORIES_INSTANCE = build_repositories()
    return _REPOSITORIES_INSTANCE
