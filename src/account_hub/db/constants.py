"""Shared database constants for the DB package.

This module centralizes the static skill catalog and the default per-world
player state so schema seeding, the bootstrapper and tests never diverge.
"""

from __future__ import annotations

# Slug of the synthetic aggregate skill. Its level/experience are derived sums
# over every other skill and are never written directly.
OVERALL_SKILL_SLUG = "overall"

# Skill seeded above the baseline for new players.
HITPOINTS_SKILL_SLUG = "hitpoints"
HITPOINTS_START_LEVEL = 10
HITPOINTS_START_EXPERIENCE = 1414

DEFAULT_SKILL_LEVEL = 1
DEFAULT_SKILL_EXPERIENCE = 0

# (slug, title, icon_position, display_order, client_reference)
SKILL_CATALOG: tuple[tuple[str, str, str, int, int | None], ...] = (
    ("overall", "Overall", "-256px 0", 0, None),
    ("hitpoints", "Hitpoints", "0 0", 1, 0),
    ("accuracy", "Accuracy", "-16px 0", 2, 1),
    ("strength", "Strength", "-32px 0", 3, 2),
    ("defense", "Defense", "-48px 0", 4, 3),
    ("magic", "Magic", "-64px 0", 5, 4),
    ("range", "Range", "-240px 0", 6, 5),
    ("fishing", "Fishing", "-80px 0", 7, 6),
    ("cooking", "Cooking", "-96px 0", 8, 7),
    ("forestry", "Forestry", "-112px 0", 9, 8),
    ("mining", "Mining", "-128px 0", 10, 9),
    ("smithing", "Smithing", "-192px 0", 11, 10),
    ("crafting", "Crafting", "-144px 0", 12, 11),
    ("harvesting", "Harvesting", "-208px 0", 13, 12),
    ("crime", "Crime", "-160px 0", 14, 13),
    ("potionmaking", "Potionmaking", "-176px 0", 15, 14),
    ("enchanting", "Enchanting", "-224px 0", 16, 15),
    ("athletics", "Athletics", "-272px 0", 17, 16),
)

# Default spawn: overworld, Middlefern spawn house.
DEFAULT_SPAWN_MAP_LEVEL = 1
DEFAULT_SPAWN_X = 78
DEFAULT_SPAWN_Y = -93

EQUIPMENT_SLOTS: tuple[str, ...] = (
    "helmet",
    "chest",
    "legs",
    "boots",
    "neck",
    "weapon",
    "shield",
    "back",
    "gloves",
    "projectile",
)

# (slot, item_id, amount, is_iou)
STARTER_INVENTORY: tuple[tuple[int, int, int, int], ...] = (
    (0, 240, 1, 0),
    (1, 52, 1, 0),
    (2, 58, 1, 0),
    (3, 7, 1, 0),
)

DEFAULT_PLAYER_ABILITIES: tuple[int, ...] = (1000, 1000)
DEFAULT_PLAYER_SETTINGS: tuple[int, ...] = (0, 1, 7, 1, 1)

# (hair_style_id, beard_style_id, shirt_id, body_type_id, legs_id)
DEFAULT_APPEARANCE: tuple[int, int, int, int, int] = (1, 1, 1, 0, 5)

# Tag that hides a world outside development environments.
DEVELOPMENT_TAG = "development"

# Upper bound on rows returned by presence listings.
PRESENCE_LIST_LIMIT = 100
