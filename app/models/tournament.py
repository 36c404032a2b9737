"""Domain models for ingested chess tournaments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResolutionTier(str, Enum):
    """Strategy that produced a coordinate, ordered by precision."""

    EXACT = "exact"
    CITY_CACHE = "city-cache"
    GEOCODER = "geocoder"
    REGION_CENTROID = "region-centroid"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]

    def is_better_than(self, other: ResolutionTier) -> bool:
        return self.rank > other.rank


_TIER_RANKS = {
    ResolutionTier.EXACT: 4,
    ResolutionTier.CITY_CACHE: 3,
    ResolutionTier.GEOCODER: 2,
    ResolutionTier.REGION_CENTROID: 1,
    ResolutionTier.NONE: 0,
}


class TournamentStatus(str, Enum):
    PUBLISHED = "published"
    DRAFT = "draft"
    COMPLETED = "completed"


class TournamentCategory(str, Enum):
    CLASSICAL = "Classical"
    RAPID = "Rapid"
    BLITZ = "Blitz"


@dataclass(frozen=True)
class Coordinates:
    """Validated latitude/longitude pair."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of bounds: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude out of bounds: {self.lng}")


@dataclass(frozen=True)
class Resolution:
    """Outcome of the coordinate resolver."""

    coordinates: Coordinates | None
    tier: ResolutionTier

    def __post_init__(self) -> None:
        if (self.coordinates is None) != (self.tier is ResolutionTier.NONE):
            raise ValueError("Resolution tier must be 'none' exactly when coordinates are absent.")

    @classmethod
    def unresolved(cls) -> Resolution:
        return cls(coordinates=None, tier=ResolutionTier.NONE)


@dataclass(frozen=True)
class RawListing:
    """Weakly typed listing as scraped from a source page."""

    source_url: str
    name: str | None = None
    listing_id: str | None = None
    date_text: str | None = None
    location_text: str | None = None
    federation: str | None = None
    organizer: str | None = None
    time_control: str | None = None
    rounds_text: str | None = None
    venue_address: str | None = None
    external_link: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class TournamentDraft(BaseModel):
    """Normalized tournament prior to coordinate resolution and persistence."""

    source: str
    external_ref: str
    name: str
    start_date: date
    end_date: date | None = None
    location_text: str = ""
    city: str | None = None
    state: str | None = None
    country: str | None = None
    country_code: str | None = None
    venue_address: str | None = None
    category: TournamentCategory = TournamentCategory.RAPID
    rated: bool = False
    time_control: str | None = None
    rounds: int | None = None
    organizer: str | None = None
    source_url: str
    external_link: str | None = None
    status: TournamentStatus = TournamentStatus.PUBLISHED

    @model_validator(mode="after")
    def _validate_dates(self) -> TournamentDraft:
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date.")
        return self

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.source, self.external_ref)

    def with_resolution(self, resolution: Resolution) -> CanonicalTournament:
        """Attach resolver output, producing a CanonicalTournament without identity."""
        coords = resolution.coordinates
        return CanonicalTournament(
            **self.model_dump(),
            lat=coords.lat if coords else None,
            lng=coords.lng if coords else None,
            resolution_tier=resolution.tier,
        )


class CanonicalTournament(TournamentDraft):
    """Persisted unit of the tournament directory."""

    id: UUID | None = None
    lat: float | None = Field(default=None, ge=-90.0, le=90.0)
    lng: float | None = Field(default=None, ge=-180.0, le=180.0)
    resolution_tier: ResolutionTier = ResolutionTier.NONE
    first_seen_at: datetime | None = None
    last_updated_at: datetime | None = None
    version: int = 0

    @model_validator(mode="after")
    def _validate_coordinates(self) -> CanonicalTournament:
        has_coords = self.lat is not None and self.lng is not None
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together.")
        if has_coords == (self.resolution_tier is ResolutionTier.NONE):
            raise ValueError("resolution_tier must be set if and only if coordinates are present.")
        return self

    @property
    def resolution(self) -> Resolution:
        if self.lat is None or self.lng is None:
            return Resolution.unresolved()
        return Resolution(Coordinates(self.lat, self.lng), self.resolution_tier)


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunRecord(BaseModel):
    """Lifecycle and counters of one orchestrator invocation."""

    run_id: str
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    regions_processed: int = 0
    listings_found: int = 0
    tournaments_written: int = 0
    tournaments_added: int = 0
    tournaments_updated: int = 0
    errors: int = 0
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
