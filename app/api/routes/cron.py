"""Scheduler-facing trigger for tournament ingestion runs."""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status

from app.config import settings
from app.models.tournament import RunStatus
from app.services.ingest.repositories import get_ingest_repositories
from pipelines.ingest.ledger import RunLedger
from pipelines.ingest.orchestrator import build_orchestrator, new_run_id

router = APIRouter()
logger = logging.getLogger(__name__)

RunLauncher = Callable[[str], None]


def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Bearer check against CRON_SECRET; an unset secret rejects every call."""
    secret = settings.cron_secret
    scheme, _, token = (authorization or "").partition(" ")
    if (
        not secret
        or scheme.lower() != "bearer"
        or not hmac.compare_digest(token.strip().encode("utf-8"), secret.encode("utf-8"))
    ):
        logger.warning("cron.unauthorized", extra={"has_header": authorization is not None})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def _launch_run(run_id: str) -> None:
    repositories = get_ingest_repositories()
    try:
        orchestrator = build_orchestrator(repositories=repositories)
    except Exception as exc:
        logger.exception("cron.run.setup_failed", extra={"run_id": run_id})
        ledger = RunLedger(repositories.run_log)
        ledger.finish(
            ledger.start(run_id), status=RunStatus.FAILED, message=f"Run setup failed: {exc}"
        )
        return
    try:
        orchestrator.run(run_id)
    finally:
        orchestrator.close()


def get_run_launcher() -> RunLauncher:
    return _launch_run


def _trigger(background_tasks: BackgroundTasks, launcher: RunLauncher) -> dict[str, object]:
    run_id = new_run_id()
    background_tasks.add_task(launcher, run_id)
    logger.info("cron.run.accepted", extra={"run_id": run_id})
    return {
        "success": True,
        "run_id": run_id,
        "message": "Tournament scrape started",
        "config": {
            "source": settings.ingest_source,
            "top_regions": len(settings.ingest_top_regions),
            "top_target": settings.ingest_top_target,
            "other_regions": len(settings.ingest_other_regions),
            "other_target": settings.ingest_other_target,
            "concurrency": settings.ingest_concurrency,
            "budget_seconds": settings.ingest_run_budget_seconds,
        },
    }


@router.get(
    "/cron/scrape-tournaments",
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_cron_secret)],
)
async def trigger_scrape_get(
    background_tasks: BackgroundTasks,
    launcher: RunLauncher = Depends(get_run_launcher),
) -> dict[str, object]:
    """Start an ingestion run in the background."""
    return _trigger(background_tasks, launcher)


@router.post(
    "/cron/scrape-tournaments",
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_cron_secret)],
)
async def trigger_scrape_post(
    background_tasks: BackgroundTasks,
    launcher: RunLauncher = Depends(get_run_launcher),
) -> dict[str, object]:
    return _trigger(background_tasks, launcher)
