"""
Ranking engine: aggregate skill maintenance, rank recompute and hiscores reads.

World processes write skill rows directly. Ranks stored on those rows are a
cache refreshed by coalesced passes (the trusted recompute/update endpoints,
the CLI, or the periodic task), never inline on each skill write. Read paths
therefore tolerate NULL ranks and fall back to page position.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from account_hub.config import config
from account_hub.db import accounts_repo, skills_repo
from account_hub.db.constants import OVERALL_SKILL_SLUG
from account_hub.db.types import SkillCatalog, SkillDefinition

logger = logging.getLogger(__name__)


class SkillCatalogError(RuntimeError):
    """The skill catalog is unseeded (no aggregate skill or no skills).

    This is a deployment fault; callers surface it and never retry.
    """


class UnknownSkillError(ValueError):
    """Raised when a request names skill slugs missing from the catalog."""

    def __init__(self, slugs: Sequence[str]) -> None:
        super().__init__(f"Unknown skill(s): {', '.join(slugs)}")
        self.slugs = list(slugs)


@dataclass(slots=True)
class SkillUpdate:
    slug: str
    level: int
    experience: int


@dataclass(slots=True)
class RecomputeSummary:
    persistence_id: int
    aggregates_recomputed: int
    skills_ranked: int


@dataclass(slots=True)
class HiscoresPage:
    skill: SkillDefinition
    items: list[dict[str, Any]]
    total: int
    limit: int
    offset: int

    @property
    def page(self) -> int:
        return self.offset // self.limit + 1


@dataclass(slots=True)
class PlayerProfile:
    account_id: int
    username: str
    display_name: str
    stats: list[dict[str, Any]] = field(default_factory=list)


class RankingEngine:
    """Set-based aggregate and rank maintenance over ``player_skills``.

    Args:
        use_window_functions: Force the rank strategy. ``None`` detects
            whether the linked SQLite library supports window functions.
    """

    def __init__(self, *, use_window_functions: bool | None = None) -> None:
        self.use_window_functions = use_window_functions

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def load_catalog(self) -> SkillCatalog:
        """Load the skill catalog or raise :class:`SkillCatalogError`."""
        definitions = skills_repo.load_skill_definitions()
        overall = next((s for s in definitions if s.slug == OVERALL_SKILL_SLUG), None)
        skills = [s for s in definitions if s.slug != OVERALL_SKILL_SLUG]
        if overall is None:
            raise SkillCatalogError("Overall skill is not seeded")
        if not skills:
            raise SkillCatalogError("Skill catalog is empty")
        return SkillCatalog(overall=overall, skills=skills)

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def recompute_aggregate(
        self, account_id: int, persistence_id: int, *, catalog: SkillCatalog | None = None
    ) -> None:
        """Set the aggregate row to the sums of the account's other skills."""
        catalog = catalog or self.load_catalog()
        skills_repo.recompute_aggregate(account_id, persistence_id, catalog.overall.id)

    def recompute_ranks(self, skill_id: int, persistence_id: int, is_aggregate: bool) -> None:
        skills_repo.recompute_ranks(
            skill_id,
            persistence_id,
            is_aggregate=is_aggregate,
            use_window_functions=self.use_window_functions,
        )

    def recompute_group(
        self,
        persistence_id: int,
        account_ids: Iterable[int] | None = None,
    ) -> RecomputeSummary:
        """Recompute aggregates for ``account_ids`` then ranks for every skill.

        Aggregates run first so the aggregate ranking sees fresh sums.
        """
        catalog = self.load_catalog()
        touched = list(dict.fromkeys(account_ids or ()))
        for account_id in touched:
            skills_repo.recompute_aggregate(account_id, persistence_id, catalog.overall.id)
        for skill in catalog.all:
            self.recompute_ranks(skill.id, persistence_id, skill.id == catalog.overall.id)
        logger.info(
            "Recomputed persistence group %s: %d aggregates, %d skills ranked",
            persistence_id,
            len(touched),
            len(catalog.all),
        )
        return RecomputeSummary(
            persistence_id=persistence_id,
            aggregates_recomputed=len(touched),
            skills_ranked=len(catalog.all),
        )

    def recompute_full_group(self, persistence_id: int) -> RecomputeSummary:
        """Recompute every account's aggregate and every rank in a group."""
        return self.recompute_group(
            persistence_id, skills_repo.list_accounts_in_group(persistence_id)
        )

    def apply_skill_updates(
        self,
        account_id: int,
        persistence_id: int,
        updates: Sequence[SkillUpdate],
    ) -> list[int]:
        """Upsert skill rows for one account and refresh the affected ranks.

        The aggregate slug is ignored since it is always derived. Unknown slugs
        reject the whole batch before anything is written.

        Returns:
            Skill ids whose ranks were recomputed (always includes the aggregate).
        """
        catalog = self.load_catalog()
        by_slug = catalog.by_slug()
        unknown = [u.slug for u in updates if u.slug not in by_slug]
        if unknown:
            raise UnknownSkillError(unknown)

        rows: dict[int, tuple[int, int, int]] = {}
        for update in updates:
            if update.slug == OVERALL_SKILL_SLUG:
                continue
            skill_id = by_slug[update.slug].id
            rows[skill_id] = (skill_id, update.level, update.experience)

        if rows:
            skills_repo.upsert_player_skills(account_id, persistence_id, rows.values())
        skills_repo.recompute_aggregate(account_id, persistence_id, catalog.overall.id)

        touched = [*rows.keys(), catalog.overall.id]
        for skill_id in touched:
            self.recompute_ranks(skill_id, persistence_id, skill_id == catalog.overall.id)
        return touched

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_hiscores(
        self,
        skill_slug: str,
        persistence_id: int,
        *,
        limit: int | None = None,
        offset: int = 0,
        min_level: int | None = None,
        exclude_username: str | None = None,
    ) -> HiscoresPage:
        """Return one page of a skill's hiscores.

        Rows without a stored rank are numbered by page position
        (``offset + index + 1``).
        """
        catalog = self.load_catalog()
        skill = catalog.by_slug().get(skill_slug)
        if skill is None:
            raise UnknownSkillError([skill_slug])

        page_size = limit if limit and limit > 0 else config.hiscores.default_page_size
        page_size = min(page_size, config.hiscores.max_page_size)
        offset = max(0, offset)
        exclude = exclude_username.strip() if exclude_username else None
        is_aggregate = skill.id == catalog.overall.id

        total = skills_repo.count_hiscores(
            skill.id,
            persistence_id,
            is_aggregate=is_aggregate,
            min_level=min_level,
            exclude_username=exclude,
        )
        rows = skills_repo.list_hiscores(
            skill.id,
            persistence_id,
            limit=page_size,
            offset=offset,
            is_aggregate=is_aggregate,
            min_level=min_level,
            exclude_username=exclude,
        )
        for index, row in enumerate(rows):
            if row["rank"] is None:
                row["rank"] = offset + index + 1
        return HiscoresPage(skill=skill, items=rows, total=total, limit=page_size, offset=offset)

    def get_player_profile(self, name: str, persistence_id: int) -> PlayerProfile | None:
        """Return all skills for a player whose aggregate level clears the floor."""
        catalog = self.load_catalog()
        account = accounts_repo.find_public_account(name)
        if account is None:
            return None

        rows = skills_repo.get_player_skill_rows(account["id"], persistence_id)
        aggregate = rows.get(catalog.overall.id)
        if aggregate is None or aggregate["level"] < config.hiscores.profile_min_total_level:
            return None

        stats = []
        for skill in catalog.all:
            row = rows.get(skill.id)
            stats.append(
                {
                    "skill": skill.slug,
                    "rank": row["rank"] if row else None,
                    "level": row["level"] if row else None,
                    "experience": row["experience"] if row else None,
                }
            )
        return PlayerProfile(
            account_id=account["id"],
            username=account["username"],
            display_name=account["display_name"],
            stats=stats,
        )
