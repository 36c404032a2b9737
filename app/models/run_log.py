"""SQLModel mapping for the append-only scraper run log."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from app.models.tournament import RunRecord, RunStatus
from app.models.tournament_record import UtcNow, ensure_utc, utcnow

JSON_BACKING_TYPE = sa.JSON().with_variant(JSONB(astext_type=sa.Text()), "postgresql")


class RunLogRecord(SQLModel, table=True):
    """One ledger row; a run appends a `running` row and later a terminal row."""

    __tablename__ = "scraper_logs"
    __table_args__ = (
        sa.Index("ix_scraper_logs_run_id", "run_id"),
        sa.Index("ix_scraper_logs_started_at", "started_at"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    run_id: str = Field(sa_column=Column(String(length=64), nullable=False))
    status: str = Field(sa_column=Column(String(length=16), nullable=False))
    started_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    completed_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    regions_processed: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    tournaments_found: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    tournaments_written: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    tournaments_added: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    tournaments_updated: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    errors: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    message: str = Field(default="", sa_column=Column(Text, nullable=False))
    details: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON_BACKING_TYPE, nullable=False),
    )
    logged_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )

    @classmethod
    def from_run(cls, run: RunRecord) -> RunLogRecord:
        return cls(
            run_id=run.run_id,
            status=run.status.value,
            started_at=run.started_at,
            completed_at=run.completed_at,
            regions_processed=run.regions_processed,
            tournaments_found=run.listings_found,
            tournaments_written=run.tournaments_written,
            tournaments_added=run.tournaments_added,
            tournaments_updated=run.tournaments_updated,
            errors=run.errors,
            message=run.message,
            details=dict(run.details),
        )

    def to_run(self) -> RunRecord:
        return RunRecord(
            run_id=self.run_id,
            status=RunStatus(self.status),
            started_at=ensure_utc(self.started_at),
            completed_at=ensure_utc(self.completed_at),
            regions_processed=self.regions_processed,
            listings_found=self.tournaments_found,
            tournaments_written=self.tournaments_written,
            tournaments_added=self.tournaments_added,
            tournaments_updated=self.tournaments_updated,
            errors=self.errors,
            message=self.message,
            details=dict(self.details or {}),
        )
