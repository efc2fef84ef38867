"""Shared fixtures: a fresh SQLite database per test."""

import pytest
from fastapi.testclient import TestClient

from squad_league.api import app, get_service
from squad_league.repository import LeagueRepository
from squad_league.service import LeagueService, PlayerStatsUpdater


@pytest.fixture
def repository(tmp_path):
    repo = LeagueRepository(str(tmp_path / "league.db"))
    repo.initialize_schema()
    return repo


@pytest.fixture
def service(repository):
    updater = PlayerStatsUpdater(repository, max_attempts=10)
    return LeagueService(repository, updater, default_elo=1500, default_mu=15.0, default_sigma=4.0)


@pytest.fixture
def team(service):
    return service.create_team("Thursday Futsal")


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
