from __future__ import annotations

from app.main import app
from app.services.ingest.errors import StoreUnavailableError
from app.services.ingest.repositories import (
    IngestRepositories,
    InMemoryRunLogRepository,
    InMemoryTournamentRepository,
    get_ingest_repositories,
)


class DownRepository(InMemoryTournamentRepository):
    def ping(self) -> None:
        raise StoreUnavailableError()


def _repositories(tournaments=None) -> IngestRepositories:
    return IngestRepositories(
        tournaments=tournaments or InMemoryTournamentRepository(),
        run_log=InMemoryRunLogRepository(),
    )


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_readiness_with_reachable_store(client):
    app.dependency_overrides[get_ingest_repositories] = lambda: _repositories()
    try:
        response = client.get("/health/ready")
    finally:
        app.dependency_overrides.pop(get_ingest_repositories, None)
    assert response.status_code == 200
    assert response.json()["database"] == "not configured"


def test_readiness_with_unreachable_store(client):
    app.dependency_overrides[get_ingest_repositories] = lambda: _repositories(DownRepository())
    try:
        response = client.get("/health/ready")
    finally:
        app.dependency_overrides.pop(get_ingest_repositories, None)
    assert response.status_code == 503
