"""Append-only record of ingestion runs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.models.tournament import RunRecord, RunStatus
from app.observability.metrics import metrics
from app.services.ingest.repositories import RunLogRepository

logger = logging.getLogger("pipelines.ingest.ledger")


class RunLedger:
    """Writes a `running` entry at start and a terminal entry at finish.

    Ledger failures never fail the run; they are logged and dropped.
    """

    def __init__(self, repository: RunLogRepository) -> None:
        self._repository = repository

    def start(self, run_id: str) -> RunRecord:
        run = RunRecord(run_id=run_id, status=RunStatus.RUNNING, message="Run started")
        self._append(run)
        logger.info("ledger.run.started", extra={"run_id": run_id})
        return run

    def finish(self, run: RunRecord, *, status: RunStatus, message: str) -> RunRecord:
        if status is RunStatus.RUNNING:
            raise ValueError("finish requires a terminal status.")
        closed = run.model_copy(
            update={
                "status": status,
                "message": message,
                "completed_at": datetime.now(timezone.utc),
            }
        )
        self._append(closed)
        metrics.increment("run.finished", tags={"status": status.value})
        logger.info(
            "ledger.run.finished",
            extra={
                "run_id": closed.run_id,
                "status": status.value,
                "listings_found": closed.listings_found,
                "tournaments_written": closed.tournaments_written,
                "errors": closed.errors,
            },
        )
        return closed

    def _append(self, run: RunRecord) -> None:
        try:
            self._repository.append(run)
        except Exception:
            metrics.increment("ledger.write_failed")
            logger.warning(
                "ledger.write_failed",
                extra={"run_id": run.run_id, "status": run.status.value},
                exc_info=True,
            )
