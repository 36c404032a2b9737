from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.config import settings
from app.services.ingest.errors import StoreUnavailableError
from app.services.ingest.repositories import IngestRepositories, get_ingest_repositories

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/ready")
async def readiness_check(repositories: IngestRepositories = Depends(get_ingest_repositories)):
    """Readiness check endpoint that includes store connectivity."""
    try:
        repositories.tournaments.ping()
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail="Database is not available") from exc

    return {
        "status": "ready",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected" if repositories.database is not None else "not configured",
    }
