from __future__ import annotations

from contextlib import contextmanager

import pytest

from app.api.routes import cron as cron_module
from app.main import app
from app.models.tournament import RunStatus
from app.services.ingest.repositories import (
    IngestRepositories,
    InMemoryRunLogRepository,
    InMemoryTournamentRepository,
)

SECRET = "s3cret-token"


class RecordingLauncher:
    def __init__(self) -> None:
        self.run_ids: list[str] = []

    def __call__(self, run_id: str) -> None:
        self.run_ids.append(run_id)


@contextmanager
def _override_launcher(launcher: RecordingLauncher):
    app.dependency_overrides[cron_module.get_run_launcher] = lambda: launcher
    try:
        yield
    finally:
        app.dependency_overrides.pop(cron_module.get_run_launcher, None)


@pytest.fixture
def launcher(monkeypatch):
    monkeypatch.setattr(cron_module.settings, "cron_secret", SECRET)
    recorder = RecordingLauncher()
    with _override_launcher(recorder):
        yield recorder


@pytest.mark.parametrize("method", ["get", "post"])
def test_valid_token_starts_a_background_run(client, launcher, method):
    response = getattr(client, method)(
        "/api/cron/scrape-tournaments", headers={"Authorization": f"Bearer {SECRET}"}
    )

    assert response.status_code == 202
    body = response.json()
    assert body["success"] is True
    assert body["run_id"].startswith("run_")
    assert body["message"] == "Tournament scrape started"
    assert body["config"]["top_target"] == cron_module.settings.ingest_top_target
    assert launcher.run_ids == [body["run_id"]]


def test_missing_header_is_rejected_without_side_effects(client, launcher):
    response = client.post("/api/cron/scrape-tournaments")
    assert response.status_code == 401
    assert launcher.run_ids == []


@pytest.mark.parametrize(
    "header",
    ["Bearer wrong-token", f"Basic {SECRET}", SECRET, "Bearer"],
)
def test_invalid_credentials_are_rejected(client, launcher, header):
    response = client.get("/api/cron/scrape-tournaments", headers={"Authorization": header})
    assert response.status_code == 401
    assert launcher.run_ids == []


def test_unset_secret_rejects_every_call(client, launcher, monkeypatch):
    monkeypatch.setattr(cron_module.settings, "cron_secret", None)
    response = client.post(
        "/api/cron/scrape-tournaments", headers={"Authorization": "Bearer"}
    )
    assert response.status_code == 401
    response = client.post(
        "/api/cron/scrape-tournaments", headers={"Authorization": f"Bearer {SECRET}"}
    )
    assert response.status_code == 401
    assert launcher.run_ids == []


def test_setup_failure_still_records_the_run(monkeypatch):
    repositories = IngestRepositories(
        tournaments=InMemoryTournamentRepository(), run_log=InMemoryRunLogRepository()
    )

    def broken_build(**kwargs):
        raise ValueError("Unknown resolver tier: satellite")

    monkeypatch.setattr(cron_module, "get_ingest_repositories", lambda: repositories)
    monkeypatch.setattr(cron_module, "build_orchestrator", broken_build)

    cron_module._launch_run("run_setup_broken")

    rows = repositories.run_log.list_run("run_setup_broken")
    assert [row.status for row in rows] == [RunStatus.RUNNING, RunStatus.FAILED]
    assert "satellite" in rows[1].message
