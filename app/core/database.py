from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL, make_url
from sqlmodel import SQLModel, create_engine

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatabaseHandle:
    """Sync engine plus the backend tag used on metrics."""

    engine: Engine
    backend: str

    def dispose(self) -> None:
        self.engine.dispose()


def build_database(
    database_url: str,
    *,
    pool_min_size: int | None = None,
    pool_max_size: int | None = None,
    auto_create_schema: bool | None = None,
) -> DatabaseHandle:
    """Create a sync SQLAlchemy engine from DATABASE_URL (async drivers are coerced)."""
    if not database_url:
        raise ValueError("DATABASE_URL is required to build a database engine.")

    parsed_url = make_url(database_url)
    sync_url, connect_args, drivername = coerce_sync_database_url(parsed_url)
    pool_min = max(pool_min_size or settings.db_pool_min_size, 1)
    pool_max = max(pool_max_size or settings.db_pool_max_size, pool_min)
    is_sqlite = drivername.startswith("sqlite")
    engine_kwargs: dict[str, Any] = {
        "echo": settings.debug,
        "connect_args": connect_args,
        "pool_pre_ping": not is_sqlite,
    }
    if not is_sqlite:
        engine_kwargs["pool_size"] = pool_min
        engine_kwargs["max_overflow"] = max(pool_max - pool_min, 0)

    engine = create_engine(sync_url, **engine_kwargs)
    create_schema = settings.db_auto_create_schema if auto_create_schema is None else auto_create_schema
    if create_schema:
        # Registers every table on SQLModel.metadata before create_all.
        import app.models.geocode_cache  # noqa: F401
        import app.models.run_log  # noqa: F401
        import app.models.tournament_record  # noqa: F401

        SQLModel.metadata.create_all(engine)
    backend = resolve_metrics_tag(parsed_url, drivername)
    logger.info("database.initialized", extra={"backend": backend})
    return DatabaseHandle(engine=engine, backend=backend)


def coerce_sync_database_url(url: URL) -> tuple[str, dict[str, Any], str]:
    """Convert async connection strings into sync SQLAlchemy URLs."""
    drivername = url.drivername
    connect_args: dict[str, Any] = {}
    if drivername.endswith("+asyncpg"):
        drivername = drivername.replace("+asyncpg", "+psycopg2")
    elif drivername.endswith("+psycopg"):
        drivername = drivername.replace("+psycopg", "+psycopg2")
    elif drivername.endswith("+aiosqlite"):
        drivername = drivername.replace("+aiosqlite", "")
    sync_url = url.set(drivername=drivername)
    query = dict(sync_url.query) if sync_url.query else {}
    removed_ssl = False
    if "ssl" in query:
        query.pop("ssl", None)
        removed_ssl = True
    sync_url = sync_url.set(query=query)

    host = (url.host or "").lower()
    if drivername.startswith("postgresql"):
        if "sslmode" not in query and (removed_ssl or "supabase.co" in host):
            connect_args["sslmode"] = "require"
    if drivername.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)
    return sync_url.render_as_string(hide_password=False), connect_args, drivername


def resolve_metrics_tag(url: URL, drivername: str) -> str:
    host = (url.host or "").lower()
    if "supabase.co" in host:
        return "supabase"
    if drivername.startswith("sqlite"):
        return "sqlite"
    return "postgres"
