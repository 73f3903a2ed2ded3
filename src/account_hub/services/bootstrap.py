"""
Per-world player state bootstrapping.

Each step is an independent "create if absent" insert, so a partially applied
bootstrap is safe and re-running it fills the gaps without touching progress
a world process has already written.
"""

from __future__ import annotations

import logging

from account_hub.config import config
from account_hub.db import player_state_repo, worlds_repo
from account_hub.db.constants import (
    DEFAULT_APPEARANCE,
    DEFAULT_PLAYER_ABILITIES,
    DEFAULT_PLAYER_SETTINGS,
    DEFAULT_SKILL_EXPERIENCE,
    DEFAULT_SKILL_LEVEL,
    DEFAULT_SPAWN_MAP_LEVEL,
    DEFAULT_SPAWN_X,
    DEFAULT_SPAWN_Y,
    EQUIPMENT_SLOTS,
    HITPOINTS_SKILL_SLUG,
    HITPOINTS_START_EXPERIENCE,
    HITPOINTS_START_LEVEL,
    STARTER_INVENTORY,
)
from account_hub.services.ranking import RankingEngine

logger = logging.getLogger(__name__)


class PlayerStateBootstrapper:
    """Seeds default player rows for an (account, persistence group) pair."""

    def __init__(self, ranking: RankingEngine | None = None) -> None:
        self.ranking = ranking or RankingEngine()

    def needs_initialization(self, account_id: int, persistence_id: int) -> bool:
        """True when the location row is missing or still at the origin."""
        location = player_state_repo.get_location(account_id, persistence_id)
        return location is None or (location[1] == 0 and location[2] == 0)

    def ensure_initialized(self, account_id: int, persistence_id: int) -> None:
        catalog = self.ranking.load_catalog()
        skill_rows = [
            (
                (skill.id, HITPOINTS_START_LEVEL, HITPOINTS_START_EXPERIENCE)
                if skill.slug == HITPOINTS_SKILL_SLUG
                else (skill.id, DEFAULT_SKILL_LEVEL, DEFAULT_SKILL_EXPERIENCE)
            )
            for skill in catalog.skills
        ]
        player_state_repo.insert_skills_if_absent(account_id, persistence_id, skill_rows)
        self.ranking.recompute_aggregate(account_id, persistence_id, catalog=catalog)

        player_state_repo.insert_equipment_if_absent(account_id, persistence_id, EQUIPMENT_SLOTS)
        player_state_repo.insert_inventory_if_absent(account_id, persistence_id, STARTER_INVENTORY)
        player_state_repo.insert_abilities_if_absent(
            account_id, persistence_id, DEFAULT_PLAYER_ABILITIES
        )
        player_state_repo.insert_settings_if_absent(
            account_id, persistence_id, DEFAULT_PLAYER_SETTINGS
        )
        player_state_repo.insert_appearance_if_absent(
            account_id, persistence_id, DEFAULT_APPEARANCE
        )
        # Location goes last: login only re-runs the bootstrap while it is missing.
        player_state_repo.insert_location_if_absent(
            account_id, persistence_id, DEFAULT_SPAWN_MAP_LEVEL, DEFAULT_SPAWN_X, DEFAULT_SPAWN_Y
        )
        logger.debug(
            "Ensured player state for account %s in persistence group %s",
            account_id,
            persistence_id,
        )

    def ensure_initialized_for_all_groups(self, account_id: int) -> list[int]:
        """Bootstrap every persistence group known to the world table.

        Falls back to the configured default group while no world is registered.

        Returns:
            The persistence group ids that were processed.
        """
        groups = worlds_repo.list_persistence_ids() or [config.worlds.default_persistence_id]
        for persistence_id in groups:
            self.ensure_initialized(account_id, persistence_id)
        return groups
