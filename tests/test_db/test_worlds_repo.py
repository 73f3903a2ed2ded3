"""Tests for world catalog repository operations."""

from datetime import datetime, timezone

import pytest

from account_hub.db import worlds_repo
from account_hub.db.types import WorldDescriptor, WorldTags

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def _descriptor(world_id: int, **fields) -> WorldDescriptor:
    return WorldDescriptor(
        world_id=world_id,
        name=fields.pop("name", f"World {world_id}"),
        server_url=fields.pop("server_url", f"wss://w{world_id}.example.test"),
        **fields,
    )


@pytest.mark.db
def test_upsert_world_inserts_with_default_persistence_group(test_db):
    record = worlds_repo.upsert_world(_descriptor(3), default_persistence_id=1, now=NOW)

    assert record.world_id == 3
    assert record.persistence_id == 1
    assert record.last_heartbeat == NOW
    assert record.created_at == NOW


@pytest.mark.db
def test_upsert_world_updates_in_place_and_keeps_group_when_omitted(test_db):
    worlds_repo.upsert_world(_descriptor(3, persistence_id=7), default_persistence_id=1, now=NOW)
    updated = worlds_repo.upsert_world(
        _descriptor(3, name="Renamed", flag_code="DEU"), default_persistence_id=1, now=NOW
    )

    assert updated.name == "Renamed"
    assert updated.flag_code == "DEU"
    assert updated.persistence_id == 7
    assert len(worlds_repo.list_worlds()) == 1


@pytest.mark.db
def test_upsert_world_overrides_group_when_given(test_db):
    worlds_repo.upsert_world(_descriptor(3, persistence_id=7), default_persistence_id=1, now=NOW)
    updated = worlds_repo.upsert_world(
        _descriptor(3, persistence_id=2), default_persistence_id=1, now=NOW
    )
    assert updated.persistence_id == 2


@pytest.mark.db
def test_touch_heartbeat_unknown_world_returns_none(test_db):
    assert worlds_repo.touch_heartbeat(99, now=NOW) is None


@pytest.mark.db
def test_touch_heartbeat_stamps_existing_world(test_db):
    worlds_repo.upsert_world(_descriptor(1), default_persistence_id=1, now=NOW)
    later = datetime(2025, 1, 1, 12, 5, tzinfo=timezone.utc)

    assert worlds_repo.touch_heartbeat(1, now=later) == later
    assert worlds_repo.get_last_heartbeat(1) == later


@pytest.mark.db
def test_development_worlds_hidden_by_flag_or_tag(test_db):
    worlds_repo.upsert_world(_descriptor(1), default_persistence_id=1, now=NOW)
    worlds_repo.upsert_world(
        _descriptor(2, is_development=True), default_persistence_id=1, now=NOW
    )
    worlds_repo.upsert_world(
        _descriptor(3, tags=WorldTags.normalize("eu,development")),
        default_persistence_id=1,
        now=NOW,
    )
    worlds_repo.upsert_world(
        _descriptor(4, tags=WorldTags.normalize("developmentish")),
        default_persistence_id=1,
        now=NOW,
    )

    visible = [w.world_id for w in worlds_repo.list_worlds(include_development=False)]
    assert visible == [1, 4]
    assert worlds_repo.get_world(2, include_development=False) is None
    assert worlds_repo.get_world(3, include_development=False) is None
    assert worlds_repo.get_world(3).tags.values == ("eu", "development")


@pytest.mark.db
def test_inactive_worlds_filtered(test_db):
    worlds_repo.upsert_world(_descriptor(1, is_active=False), default_persistence_id=1, now=NOW)

    assert worlds_repo.list_worlds() == []
    assert [w.world_id for w in worlds_repo.list_worlds(include_inactive=True)] == [1]
    assert worlds_repo.get_world(1, active_only=True) is None
    assert worlds_repo.get_world(1) is not None


@pytest.mark.db
def test_list_worlds_orders_by_sort_order_then_id(test_db):
    worlds_repo.upsert_world(_descriptor(1, sort_order=5), default_persistence_id=1, now=NOW)
    worlds_repo.upsert_world(_descriptor(2, sort_order=0), default_persistence_id=1, now=NOW)
    worlds_repo.upsert_world(_descriptor(3, sort_order=0), default_persistence_id=1, now=NOW)

    assert [w.world_id for w in worlds_repo.list_worlds()] == [2, 3, 1]


@pytest.mark.db
def test_list_persistence_ids_distinct_sorted(test_db):
    worlds_repo.upsert_world(_descriptor(1, persistence_id=2), default_persistence_id=1, now=NOW)
    worlds_repo.upsert_world(_descriptor(2, persistence_id=1), default_persistence_id=1, now=NOW)
    worlds_repo.upsert_world(_descriptor(3, persistence_id=2), default_persistence_id=1, now=NOW)

    assert worlds_repo.list_persistence_ids() == [1, 2]
