"""SQLModel mapping for stored tournaments."""
# ruff: noqa: UP017

from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy import Boolean, Column, Date, DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import expression
from sqlmodel import Field, SQLModel

from app.models.tournament import (
    CanonicalTournament,
    ResolutionTier,
    TournamentCategory,
    TournamentStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on read; treat naive timestamps as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class UtcNow(expression.FunctionElement):
    """Dialect-aware server default that pins timestamps to UTC."""

    type = DateTime(timezone=True)
    inherit_cache = True


@compiles(UtcNow)
def _utc_now_default(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "CURRENT_TIMESTAMP"


@compiles(UtcNow, "postgresql")
def _utc_now_default_postgres(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "timezone('utc', now())"


class TournamentRecord(SQLModel, table=True):
    """ORM model for persisted CanonicalTournament rows."""

    __tablename__ = "tournaments"
    __table_args__ = (
        sa.UniqueConstraint("source", "external_ref", name="uq_tournaments_source_ref"),
        sa.CheckConstraint("lat IS NULL OR (lat >= -90 AND lat <= 90)", name="ck_tournaments_lat"),
        sa.CheckConstraint(
            "lng IS NULL OR (lng >= -180 AND lng <= 180)", name="ck_tournaments_lng"
        ),
        sa.Index("ix_tournaments_status_start", "status", "start_date"),
        sa.Index("ix_tournaments_country_code", "country_code"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    source: str = Field(sa_column=Column(String(length=64), nullable=False))
    external_ref: str = Field(sa_column=Column(String(length=255), nullable=False))
    name: str = Field(sa_column=Column(String(length=512), nullable=False))
    start_date: date = Field(sa_column=Column(Date, nullable=False))
    end_date: date | None = Field(default=None, sa_column=Column(Date, nullable=True))
    location_text: str = Field(default="", sa_column=Column(Text, nullable=False))
    city: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    state: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    country: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    country_code: str | None = Field(
        default=None, sa_column=Column(String(length=8), nullable=True)
    )
    venue_address: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    lat: float | None = Field(default=None, sa_column=Column(Float, nullable=True))
    lng: float | None = Field(default=None, sa_column=Column(Float, nullable=True))
    resolution_tier: str = Field(
        default=ResolutionTier.NONE.value,
        sa_column=Column(String(length=32), nullable=False),
    )
    category: str = Field(sa_column=Column(String(length=32), nullable=False))
    rated: bool = Field(default=False, sa_column=Column(Boolean, nullable=False))
    time_control: str | None = Field(
        default=None, sa_column=Column(String(length=255), nullable=True)
    )
    rounds: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    organizer: str | None = Field(default=None, sa_column=Column(String(length=512), nullable=True))
    source_url: str = Field(sa_column=Column(Text, nullable=False))
    external_link: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    status: str = Field(sa_column=Column(String(length=32), nullable=False))
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False))
    first_seen_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )
    last_updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )

    @classmethod
    def from_tournament(cls, tournament: CanonicalTournament) -> TournamentRecord:
        """Convert a CanonicalTournament into a persistence row."""
        return cls(
            id=tournament.id or uuid4(),
            source=tournament.source,
            external_ref=tournament.external_ref,
            name=tournament.name,
            start_date=tournament.start_date,
            end_date=tournament.end_date,
            location_text=tournament.location_text,
            city=tournament.city,
            state=tournament.state,
            country=tournament.country,
            country_code=tournament.country_code,
            venue_address=tournament.venue_address,
            lat=tournament.lat,
            lng=tournament.lng,
            resolution_tier=tournament.resolution_tier.value,
            category=tournament.category.value,
            rated=tournament.rated,
            time_control=tournament.time_control,
            rounds=tournament.rounds,
            organizer=tournament.organizer,
            source_url=tournament.source_url,
            external_link=tournament.external_link,
            status=tournament.status.value,
            version=tournament.version or 1,
            first_seen_at=tournament.first_seen_at or utcnow(),
            last_updated_at=tournament.last_updated_at or utcnow(),
        )

    def to_tournament(self) -> CanonicalTournament:
        return CanonicalTournament(
            id=self.id,
            source=self.source,
            external_ref=self.external_ref,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            location_text=self.location_text,
            city=self.city,
            state=self.state,
            country=self.country,
            country_code=self.country_code,
            venue_address=self.venue_address,
            lat=self.lat,
            lng=self.lng,
            resolution_tier=ResolutionTier(self.resolution_tier),
            category=TournamentCategory(self.category),
            rated=self.rated,
            time_control=self.time_control,
            rounds=self.rounds,
            organizer=self.organizer,
            source_url=self.source_url,
            external_link=self.external_link,
            status=TournamentStatus(self.status),
            version=self.version,
            first_seen_at=ensure_utc(self.first_seen_at),
            last_updated_at=ensure_utc(self.last_updated_at),
        )
