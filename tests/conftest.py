"""
Shared pytest fixtures for the account hub test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary test databases (seeded and unseeded skill catalog)
- A controllable UTC clock shared by services under test
- A wired ``AccountHub`` and FastAPI TestClient
- Factories for accounts and worlds

Every database fixture is function-scoped so tests never share state.
"""

import shutil
import tempfile
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from account_hub.api import security
from account_hub.api.password import hash_password
from account_hub.api.server import create_app
from account_hub.config import config, use_test_database
from account_hub.db import accounts_repo, schema
from account_hub.db.types import WorldDescriptor, WorldRecord, WorldTags
from account_hub.services.client_version import ClientVersionService
from account_hub.services.hub import AccountHub
from account_hub.services.tasks import BackgroundTaskRunner
from account_hub.services.world_registry import WorldHeartbeatTracker

# Import shared test constant
from tests.constants import TEST_PASSWORD  # noqa: F401 - exported for other tests

# ============================================================================
# CLOCK
# ============================================================================


class FakeClock:
    """Manually advanced aware-UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """
    Create a temporary database file for testing.

    Uses the config system's ``use_test_database`` context manager so every
    repository call in the test targets the temporary file.

    Yields:
        Path to temporary database file
    """
    temp_dir = tempfile.mkdtemp()
    temp_db = Path(temp_dir) / "test_account_hub.db"

    with use_test_database(temp_db):
        yield temp_db

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def test_db(temp_db_path: Path) -> Generator[None, None, None]:
    """Initialize a test database with schema and the seeded skill catalog."""
    schema.init_database()
    yield


@pytest.fixture(scope="function")
def unseeded_db(temp_db_path: Path) -> Generator[None, None, None]:
    """Initialize a test database whose skill catalog is empty."""
    schema.init_database(seed_skills=False)
    yield


@pytest.fixture(autouse=True)
def development_security(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test in development mode with no secrets unless it opts in."""
    monkeypatch.setattr(config.security, "environment", "development")
    for secret in ("web_secret", "game_server_secret", "world_registration_secret"):
        monkeypatch.setattr(config.security, secret, "")
    monkeypatch.setattr(config.security, "hiscores_secret", "hiscores-test-secret")
    monkeypatch.setattr(config.rate_limit, "enabled", True)
    security.reset_warnings()


# ============================================================================
# FACTORIES
# ============================================================================


@pytest.fixture(scope="function")
def make_account(test_db) -> Callable[..., int]:
    """
    Factory creating accounts directly in the repository.

    Returns:
        Callable ``(username, password=TEST_PASSWORD, **fields) -> account_id``
    """

    def _make(username: str, password: str = TEST_PASSWORD, **fields) -> int:
        account_id = accounts_repo.create_account(username, hash_password(password), **fields)
        assert account_id is not None
        return account_id

    return _make


@pytest.fixture(scope="function")
def make_world(test_db, clock: FakeClock) -> Callable[..., WorldRecord]:
    """
    Factory registering worlds whose heartbeat is stamped by ``clock``.

    Returns:
        Callable ``(world_id, persistence_id=1, **fields) -> WorldRecord``
    """
    tracker = WorldHeartbeatTracker(clock=clock)

    def _make(world_id: int, persistence_id: int | None = 1, **fields) -> WorldRecord:
        tags = fields.pop("tags", None)
        return tracker.register_world(
            WorldDescriptor(
                world_id=world_id,
                name=fields.pop("name", f"World {world_id}"),
                server_url=fields.pop("server_url", f"wss://w{world_id}.example.test"),
                persistence_id=persistence_id,
                tags=WorldTags.normalize(tags),
                **fields,
            )
        )

    return _make


# ============================================================================
# SERVICE AND API FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def hub(test_db, clock: FakeClock) -> AccountHub:
    """
    Service container with the fake clock, no manifest and no background tasks.
    """
    return AccountHub.build(
        clock=clock,
        client_versions=ClientVersionService(manifest_location=""),
        tasks=BackgroundTaskRunner(),
    )


@pytest.fixture(scope="function")
def test_client(hub: AccountHub) -> TestClient:
    """
    FastAPI TestClient bound to the ``hub`` fixture.

    Example:
        def test_health(test_client):
            response = test_client.get("/health")
            assert response.status_code == 200
    """
    return TestClient(create_app(hub))
