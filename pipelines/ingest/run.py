"""Command-line entrypoint for one ingestion run."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

from app.config import settings
from app.models.tournament import RunStatus
from pipelines.ingest.orchestrator import build_orchestrator

logger = logging.getLogger("pipelines.ingest.run")


def _region_list(value: str) -> list[str]:
    regions = [part.strip().upper() for part in value.split(",") if part.strip()]
    if not regions:
        raise argparse.ArgumentTypeError("--regions needs at least one ISO country code")
    return regions


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Crawl tournament listings and upsert them into the store.")
    parser.add_argument("--regions", type=_region_list, help="Comma-separated ISO codes to scan (default: all configured).")
    parser.add_argument(
        "--budget-seconds",
        type=float,
        default=settings.ingest_run_budget_seconds,
        help="Wall-clock budget; no new pages start once it is spent.",
    )
    parser.add_argument("--concurrency", type=int, default=settings.ingest_concurrency, help="Regions scanned in parallel.")
    parser.add_argument("--run-id", help="Explicit run identifier (default: generated).")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint for the ingestion pipeline."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        orchestrator = build_orchestrator(
            regions=args.regions,
            budget_seconds=args.budget_seconds,
            concurrency=args.concurrency,
        )
    except ValueError as exc:
        logger.error("ingest.cli.invalid_config", extra={"error": str(exc)})
        return 2
    try:
        record = orchestrator.run(args.run_id)
    finally:
        orchestrator.close()
    print(json.dumps(record.model_dump(mode="json"), indent=2))
    return 0 if record.status is RunStatus.COMPLETED else 1


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
