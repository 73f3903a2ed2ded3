"""Tests for world registration, heartbeats and liveness rules."""

from datetime import datetime, timedelta, timezone

import pytest

from account_hub.config import config
from account_hub.db import presence_repo
from account_hub.db.types import WorldDescriptor, WorldTags
from account_hub.services.world_registry import (
    InvalidWorldDescriptorError,
    WorldHeartbeatTracker,
    WorldNotFoundError,
    is_stale,
    validate_descriptor,
)


@pytest.fixture
def tracker(test_db, clock) -> WorldHeartbeatTracker:
    return WorldHeartbeatTracker(clock=clock)


@pytest.mark.unit
def test_is_stale_boundaries():
    now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert is_stale(None, 120, now=now)
    assert not is_stale(now - timedelta(seconds=120), 120, now=now)
    assert is_stale(now - timedelta(seconds=121), 120, now=now)


@pytest.mark.unit
@pytest.mark.parametrize(
    "fields",
    [
        {"world_id": 0},
        {"world_id": -4},
        {"name": "   "},
        {"server_url": ""},
        {"persistence_id": 0},
    ],
)
def test_validate_descriptor_rejects_bad_payloads(fields):
    base = {"world_id": 1, "name": "World", "server_url": "wss://w1"}
    base.update(fields)
    with pytest.raises(InvalidWorldDescriptorError):
        validate_descriptor(WorldDescriptor(**base))


@pytest.mark.unit
def test_validate_descriptor_tags_development_worlds():
    descriptor = validate_descriptor(
        WorldDescriptor(
            world_id=1,
            name=" Dev ",
            server_url="wss://dev",
            is_development=True,
            tags=WorldTags.normalize("eu"),
        )
    )
    assert descriptor.name == "Dev"
    assert descriptor.tags.values == ("eu", "development")


@pytest.mark.services
def test_register_world_twice_updates_single_row(tracker):
    """Re-registering a world id updates it rather than adding a second world."""
    tracker.register_world(WorldDescriptor(world_id=1, name="One", server_url="wss://one"))
    record = tracker.register_world(
        WorldDescriptor(world_id=1, name="Uno", server_url="wss://uno")
    )

    assert record.name == "Uno"
    assert [status.world.name for status in tracker.list_worlds()] == ["Uno"]


@pytest.mark.services
def test_heartbeat_unknown_world_raises(tracker):
    with pytest.raises(WorldNotFoundError) as exc_info:
        tracker.heartbeat(42)
    assert exc_info.value.world_id == 42


@pytest.mark.services
def test_heartbeat_refreshes_liveness(tracker, make_world, clock):
    make_world(1)
    clock.advance(config.worlds.presence_timeout_seconds + 1)
    assert tracker.is_world_stale(1)

    assert tracker.heartbeat(1) == clock.now
    assert not tracker.is_world_stale(1)


@pytest.mark.services
def test_unknown_world_counts_as_stale(tracker):
    assert tracker.is_world_stale(99)


@pytest.mark.services
def test_listing_zeroes_player_count_for_stale_worlds(tracker, make_world, clock):
    """A silent world keeps its presence rows but its count is not trusted."""
    make_world(1)
    make_world(2)
    presence_repo.upsert_anonymous_presence("alpha", 1, now=clock.now)
    presence_repo.upsert_anonymous_presence("beta", 1, now=clock.now)
    presence_repo.upsert_anonymous_presence("gamma", 2, now=clock.now)

    clock.advance(config.worlds.listing_timeout_seconds + 1)
    tracker.heartbeat(1)

    statuses = {status.world.world_id: status for status in tracker.list_worlds()}
    assert statuses[1].is_online and statuses[1].player_count == 2
    assert not statuses[2].is_online and statuses[2].player_count == 0


@pytest.mark.services
def test_development_worlds_hidden_in_production(tracker, make_world, monkeypatch):
    make_world(1)
    make_world(2, is_development=True)
    make_world(3, tags="beta,development")

    assert [s.world.world_id for s in tracker.list_worlds()] == [1, 2, 3]

    monkeypatch.setattr(config.security, "environment", "production")
    assert [s.world.world_id for s in tracker.list_worlds()] == [1]
    assert tracker.find_login_world(2) is None
    with pytest.raises(WorldNotFoundError):
        tracker.get_world(3)


@pytest.mark.services
def test_find_login_world_requires_active(tracker, make_world):
    make_world(1, is_active=False)
    make_world(2)

    assert tracker.find_login_world(1) is None
    assert tracker.find_login_world(2).world_id == 2


@pytest.mark.services
def test_resolve_persistence_id(tracker, make_world):
    make_world(1, persistence_id=4)
    make_world(2, persistence_id=9)

    assert tracker.resolve_persistence_id(persistence_id=7) == 7
    assert tracker.resolve_persistence_id(world_id=2) == 9
    # No world given: the configured default world decides.
    assert tracker.resolve_persistence_id() == 4
    assert tracker.resolve_persistence_id(world_id=77) == config.worlds.default_persistence_id
