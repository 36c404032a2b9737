"""SQLModel mapping for persisted geocoder results."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, String
from sqlmodel import Field, SQLModel

from app.models.tournament_record import UtcNow


class GeocodeCacheRecord(SQLModel, table=True):
    __tablename__ = "geocode_cache"

    place_key: str = Field(sa_column=Column(String(length=255), primary_key=True, nullable=False))
    lat: float = Field(sa_column=Column(Float, nullable=False))
    lng: float = Field(sa_column=Column(Float, nullable=False))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )
