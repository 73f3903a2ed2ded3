"""Tests for DB value types: world tags and timestamp encoding."""

from datetime import datetime, timedelta, timezone

import pytest

from account_hub.db.types import (
    AccountRecord,
    WorldTags,
    format_timestamp,
    parse_timestamp,
)


@pytest.mark.unit
def test_world_tags_normalize_dedupes_and_casefolds():
    tags = WorldTags.normalize(" Dev, PvP ,dev,, PVP ")
    assert tags.values == ("dev", "pvp")


@pytest.mark.unit
def test_world_tags_accept_iterables_and_none():
    assert WorldTags.normalize(["Beta", "beta", " EU "]).values == ("beta", "eu")
    assert WorldTags.normalize(None).values == ()
    assert len(WorldTags.from_storage(None)) == 0


@pytest.mark.unit
def test_world_tags_storage_form():
    tags = WorldTags.normalize("eu,pvp")
    assert tags.to_storage() == "eu,pvp"
    assert WorldTags.from_storage(tags.to_storage()) == tags


@pytest.mark.unit
def test_world_tags_with_tag_and_membership():
    tags = WorldTags.normalize("eu").with_tag("Development")
    assert tags.values == ("eu", "development")
    assert "DEVELOPMENT" in tags
    assert "pvp" not in tags
    assert tags.with_tag("eu") == tags


@pytest.mark.unit
def test_timestamps_sort_lexicographically():
    early = datetime(2025, 1, 1, 9, 59, 59, 999999, tzinfo=timezone.utc)
    late = early + timedelta(microseconds=1)
    assert format_timestamp(early) < format_timestamp(late)


@pytest.mark.unit
def test_timestamp_round_trip_is_aware_utc():
    naive = datetime(2025, 3, 4, 5, 6, 7, 890)
    parsed = parse_timestamp(format_timestamp(naive))
    assert parsed == naive.replace(tzinfo=timezone.utc)
    assert parsed.tzinfo is timezone.utc


@pytest.mark.unit
def test_parse_timestamp_handles_missing_fraction_and_empty():
    assert parse_timestamp("2025-01-01 00:00:00") == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


@pytest.mark.unit
def test_format_timestamp_converts_offsets_to_utc():
    plus_two = timezone(timedelta(hours=2))
    value = datetime(2025, 1, 1, 14, 0, tzinfo=plus_two)
    assert format_timestamp(value) == "2025-01-01 12:00:00.000000"


@pytest.mark.unit
def test_permanent_ban_requires_reason_without_expiry():
    base = dict(
        id=1,
        username="u",
        display_name=None,
        email=None,
        password_hash="x",
        is_admin=False,
    )
    assert AccountRecord(**base, ban_reason="cheating", banned_until=None).is_permanently_banned
    assert not AccountRecord(
        **base, ban_reason="spam", banned_until=datetime(2030, 1, 1, tzinfo=timezone.utc)
    ).is_permanently_banned
    assert not AccountRecord(**base, ban_reason=None, banned_until=None).is_permanently_banned
