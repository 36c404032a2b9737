"""Create tournaments, scraper_logs and geocode_cache tables.

`uq_tournaments_source_ref` is the dedup key for upserts; `version` backs the
conditional update used by concurrent writers.
"""

from __future__ import annotations

import logging

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "4f2a9c1e7b30"
down_revision = None
branch_labels = None
depends_on = None

logger = logging.getLogger(__name__)

UTC_NOW = sa.text("timezone('utc', now())")


def upgrade() -> None:
    op.create_table(
        "tournaments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("external_ref", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("location_text", sa.Text(), nullable=False),
        sa.Column("city", sa.String(length=255), nullable=True),
        sa.Column("state", sa.String(length=255), nullable=True),
        sa.Column("country", sa.String(length=255), nullable=True),
        sa.Column("country_code", sa.String(length=8), nullable=True),
        sa.Column("venue_address", sa.Text(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("resolution_tier", sa.String(length=32), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("rated", sa.Boolean(), nullable=False),
        sa.Column("time_control", sa.String(length=255), nullable=True),
        sa.Column("rounds", sa.Integer(), nullable=True),
        sa.Column("organizer", sa.String(length=512), nullable=True),
        sa.Column("source_url", sa.Text(), nullable=False),
        sa.Column("external_link", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False, server_default=UTC_NOW),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), nullable=False, server_default=UTC_NOW),
        sa.PrimaryKeyConstraint("id", name="pk_tournaments"),
        sa.UniqueConstraint("source", "external_ref", name="uq_tournaments_source_ref"),
        sa.CheckConstraint("lat IS NULL OR (lat >= -90 AND lat <= 90)", name="ck_tournaments_lat"),
        sa.CheckConstraint("lng IS NULL OR (lng >= -180 AND lng <= 180)", name="ck_tournaments_lng"),
    )
    op.create_index("ix_tournaments_status_start", "tournaments", ["status", "start_date"], unique=False)
    op.create_index("ix_tournaments_country_code", "tournaments", ["country_code"], unique=False)

    op.create_table(
        "scraper_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("regions_processed", sa.Integer(), nullable=False),
        sa.Column("tournaments_found", sa.Integer(), nullable=False),
        sa.Column("tournaments_written", sa.Integer(), nullable=False),
        sa.Column("tournaments_added", sa.Integer(), nullable=False),
        sa.Column("tournaments_updated", sa.Integer(), nullable=False),
        sa.Column("errors", sa.Integer(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("logged_at", sa.DateTime(timezone=True), nullable=False, server_default=UTC_NOW),
        sa.PrimaryKeyConstraint("id", name="pk_scraper_logs"),
    )
    op.create_index("ix_scraper_logs_run_id", "scraper_logs", ["run_id"], unique=False)
    op.create_index("ix_scraper_logs_started_at", "scraper_logs", ["started_at"], unique=False)

    op.create_table(
        "geocode_cache",
        sa.Column("place_key", sa.String(length=255), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=UTC_NOW),
        sa.PrimaryKeyConstraint("place_key", name="pk_geocode_cache"),
    )
    logger.info("ingest.migration.applied", extra={"revision": revision})


def downgrade() -> None:
    op.drop_table("geocode_cache")
    op.drop_index("ix_scraper_logs_started_at", table_name="scraper_logs")
    op.drop_index("ix_scraper_logs_run_id", table_name="scraper_logs")
    op.drop_table("scraper_logs")
    op.drop_index("ix_tournaments_country_code", table_name="tournaments")
    op.drop_index("ix_tournaments_status_start", table_name="tournaments")
    op.drop_table("tournaments")
