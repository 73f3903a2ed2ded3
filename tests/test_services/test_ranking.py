"""Tests for the ranking engine: aggregates, ranks, hiscores and profiles."""

import pytest

from account_hub.config import config
from account_hub.db import accounts_repo, skills_repo
from account_hub.db.connection import connection_scope
from account_hub.services.bootstrap import PlayerStateBootstrapper
from account_hub.services.ranking import (
    RankingEngine,
    SkillCatalogError,
    SkillUpdate,
    UnknownSkillError,
)

GROUP = 1


def _seed_catalog(*slugs: str) -> None:
    with connection_scope(write=True) as conn:
        conn.executemany(
            "INSERT INTO skills (slug, title, display_order) VALUES (?, ?, ?)",
            [(slug, slug.title(), order) for order, slug in enumerate(slugs)],
        )


def _account(username: str) -> int:
    return accounts_repo.create_account(username, "not-a-real-hash")


@pytest.fixture
def small_catalog(unseeded_db) -> None:
    _seed_catalog("overall", "woodcutting", "mining")


@pytest.mark.services
def test_load_catalog_requires_aggregate(unseeded_db):
    _seed_catalog("mining")
    with pytest.raises(SkillCatalogError):
        RankingEngine().load_catalog()


@pytest.mark.services
def test_load_catalog_requires_regular_skills(unseeded_db):
    _seed_catalog("overall")
    with pytest.raises(SkillCatalogError):
        RankingEngine().load_catalog()


@pytest.mark.services
@pytest.mark.parametrize("use_window_functions", [True, False])
def test_skill_updates_refresh_aggregate_and_ranks(small_catalog, use_window_functions):
    """One player's updates produce an aggregate of the sums and rank 1 everywhere."""
    engine = RankingEngine(use_window_functions=use_window_functions)
    account_id = _account("alice")

    touched = engine.apply_skill_updates(
        account_id,
        GROUP,
        [SkillUpdate("woodcutting", 10, 1000), SkillUpdate("mining", 5, 200)],
    )

    catalog = engine.load_catalog()
    assert touched[-1] == catalog.overall.id
    rows = skills_repo.get_player_skill_rows(account_id, GROUP)
    assert rows[catalog.overall.id]["level"] == 15
    assert rows[catalog.overall.id]["experience"] == 1200
    assert {row["rank"] for row in rows.values()} == {1}

    page = engine.list_hiscores("overall", GROUP)
    assert page.items[0]["level"] == 15
    assert page.items[0]["experience"] == 1200
    assert page.items[0]["rank"] == 1


@pytest.mark.services
def test_skill_updates_ignore_aggregate_slug(small_catalog):
    engine = RankingEngine()
    account_id = _account("alice")

    engine.apply_skill_updates(
        account_id, GROUP, [SkillUpdate("overall", 99, 999999), SkillUpdate("mining", 5, 200)]
    )

    overall = engine.load_catalog().overall
    assert skills_repo.get_player_skill_rows(account_id, GROUP)[overall.id]["level"] == 5


@pytest.mark.services
def test_unknown_slug_rejects_whole_batch(small_catalog):
    engine = RankingEngine()
    account_id = _account("alice")

    with pytest.raises(UnknownSkillError) as exc_info:
        engine.apply_skill_updates(
            account_id, GROUP, [SkillUpdate("mining", 5, 200), SkillUpdate("sailing", 1, 0)]
        )

    assert exc_info.value.slugs == ["sailing"]
    assert skills_repo.get_player_skill_rows(account_id, GROUP) == {}


@pytest.mark.services
def test_recompute_full_group_ranks_every_account(small_catalog):
    engine = RankingEngine()
    catalog = engine.load_catalog()
    by_slug = catalog.by_slug()
    alice = _account("alice")
    bob = _account("bob")
    skills_repo.upsert_player_skills(alice, GROUP, [(by_slug["mining"].id, 3, 300)])
    skills_repo.upsert_player_skills(bob, GROUP, [(by_slug["mining"].id, 9, 900)])

    summary = engine.recompute_full_group(GROUP)

    assert summary.aggregates_recomputed == 2
    assert summary.skills_ranked == 3
    page = engine.list_hiscores("overall", GROUP)
    assert [item["username"] for item in page.items] == ["bob", "alice"]
    assert [item["rank"] for item in page.items] == [1, 2]


@pytest.mark.services
def test_hiscores_number_unranked_rows_by_position(small_catalog):
    engine = RankingEngine()
    mining = engine.load_catalog().by_slug()["mining"]
    for name, xp in (("alice", 300), ("bob", 200), ("carol", 100)):
        skills_repo.upsert_player_skills(_account(name), GROUP, [(mining.id, 2, xp)])

    page = engine.list_hiscores("mining", GROUP, limit=2, offset=1)

    assert page.total == 3
    assert page.page == 1
    assert [(item["username"], item["rank"]) for item in page.items] == [
        ("bob", 2),
        ("carol", 3),
    ]


@pytest.mark.services
def test_hiscores_page_size_is_clamped(small_catalog):
    engine = RankingEngine()

    defaults = config.hiscores
    assert engine.list_hiscores("mining", GROUP, limit=0).limit == defaults.default_page_size
    assert engine.list_hiscores("mining", GROUP, limit=10_000).limit == defaults.max_page_size
    assert engine.list_hiscores("mining", GROUP, offset=-5).offset == 0


@pytest.mark.services
def test_hiscores_unknown_skill(small_catalog):
    with pytest.raises(UnknownSkillError):
        RankingEngine().list_hiscores("sailing", GROUP)


@pytest.mark.services
def test_profile_requires_minimum_total_level(make_account):
    """A freshly bootstrapped player sits below the profile floor until they train."""
    engine = RankingEngine()
    account_id = make_account("alice", display_name="Alice")
    PlayerStateBootstrapper(engine).ensure_initialized(account_id, GROUP)

    assert engine.get_player_profile("Alice", GROUP) is None

    engine.apply_skill_updates(account_id, GROUP, [SkillUpdate("mining", 2, 83)])
    profile = engine.get_player_profile("Alice", GROUP)

    assert profile is not None
    assert profile.username == "alice"
    assert profile.stats[0]["skill"] == "overall"
    assert profile.stats[0]["level"] == config.hiscores.profile_min_total_level
    assert len(profile.stats) == len(engine.load_catalog().all)


@pytest.mark.services
def test_profile_hidden_for_permanently_banned(make_account):
    engine = RankingEngine()
    account_id = make_account("alice")
    engine.apply_skill_updates(account_id, GROUP, [SkillUpdate("mining", 99, 13_000_000)])
    with connection_scope(write=True) as conn:
        conn.execute("UPDATE accounts SET ban_reason = 'rwt' WHERE id = ?", (account_id,))

    assert engine.get_player_profile("alice", GROUP) is None


@pytest.mark.services
def test_profile_unknown_player(test_db):
    assert RankingEngine().get_player_profile("nobody", GROUP) is None
