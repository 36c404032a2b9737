"""Idempotent insert-or-update of canonical tournaments keyed by (source, external_ref)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import Enum
from threading import Lock

from app.models.tournament import CanonicalTournament
from app.observability.metrics import metrics
from app.services.ingest.errors import StoreConflictError, StorePersistenceError
from app.services.ingest.repositories import TournamentRepository

logger = logging.getLogger("pipelines.ingest.upsert")

Clock = Callable[[], datetime]

# Overwritten from the incoming record on every update; coordinates follow the tier rule.
MUTABLE_FIELDS = (
    "name",
    "start_date",
    "end_date",
    "location_text",
    "city",
    "state",
    "country",
    "country_code",
    "venue_address",
    "category",
    "rated",
    "time_control",
    "rounds",
    "organizer",
    "source_url",
    "external_link",
    "status",
)
MIN_TIMESTAMP_STEP = timedelta(microseconds=1)


class UpsertOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def merge_tournament(
    existing: CanonicalTournament,
    incoming: CanonicalTournament,
    *,
    now: datetime,
) -> CanonicalTournament:
    """Apply an incoming record onto the stored one.

    Identity and first_seen_at are kept, coordinates are replaced only by a
    strictly better tier, and last_updated_at always moves forward.
    """
    changes = {name: getattr(incoming, name) for name in MUTABLE_FIELDS}
    if incoming.resolution_tier.is_better_than(existing.resolution_tier):
        changes.update(
            lat=incoming.lat,
            lng=incoming.lng,
            resolution_tier=incoming.resolution_tier,
        )
    previous = existing.last_updated_at
    changes["last_updated_at"] = (
        now if previous is None or now > previous else previous + MIN_TIMESTAMP_STEP
    )
    return existing.model_copy(update=changes)


class TournamentUpserter:
    """Serializes writes per key in-process; the store's version check covers other writers."""

    def __init__(
        self,
        repository: TournamentRepository,
        *,
        max_attempts: int = 3,
        clock: Clock | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._repository = repository
        self._max_attempts = max_attempts
        self._clock = clock or _utcnow
        self._key_locks: dict[tuple[str, str], Lock] = {}
        self._registry_lock = Lock()

    def upsert(self, tournament: CanonicalTournament) -> tuple[UpsertOutcome, CanonicalTournament]:
        key = tournament.dedup_key
        with self._lock_for(key):
            for attempt in range(1, self._max_attempts + 1):
                try:
                    return self._write_once(tournament)
                except StoreConflictError:
                    metrics.increment("upsert.conflict")
                    logger.info(
                        "upsert.conflict",
                        extra={"source": key[0], "external_ref": key[1], "attempt": attempt},
                    )
        raise StorePersistenceError(
            f"Gave up on {key} after {self._max_attempts} conflicting writes.",
            code="STORE_CONFLICT_EXHAUSTED",
        )

    def _write_once(
        self, tournament: CanonicalTournament
    ) -> tuple[UpsertOutcome, CanonicalTournament]:
        now = self._clock()
        existing = self._repository.get(tournament.source, tournament.external_ref)
        if existing is None:
            stored = self._repository.insert(
                tournament.model_copy(
                    update={"id": None, "first_seen_at": now, "last_updated_at": now, "version": 0}
                )
            )
            metrics.increment("upsert.written", tags={"outcome": UpsertOutcome.INSERTED.value})
            return UpsertOutcome.INSERTED, stored

        merged = merge_tournament(existing, tournament, now=now)
        stored = self._repository.update(merged, expected_version=existing.version)
        metrics.increment("upsert.written", tags={"outcome": UpsertOutcome.UPDATED.value})
        return UpsertOutcome.UPDATED, stored

    def _lock_for(self, key: tuple[str, str]) -> Lock:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = Lock()
                self._key_locks[key] = lock
            return lock
