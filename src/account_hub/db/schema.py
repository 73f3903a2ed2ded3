"""Schema creation and catalog seeding for the SQLite backend.

The schema layer is isolated from query code so schema changes are reviewable
without wading through unrelated repository logic. Every per-world player
table is keyed by ``(account_id, persistence_id[, slot | skill_id])``; that
composite key is the contract world processes write against.
"""

from __future__ import annotations

import logging
import sqlite3

from account_hub.db.connection import connection_scope
from account_hub.db.constants import SKILL_CATALOG

logger = logging.getLogger(__name__)

TABLE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        display_name TEXT,
        email TEXT UNIQUE,
        password_hash TEXT NOT NULL,
        is_admin INTEGER NOT NULL DEFAULT 0,
        ban_reason TEXT,
        banned_until TEXT,
        muted_until TEXT,
        created_at TEXT NOT NULL,
        last_login TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS worlds (
        world_id INTEGER PRIMARY KEY CHECK (world_id > 0),
        name TEXT NOT NULL,
        location_name TEXT NOT NULL DEFAULT 'Unknown',
        flag_code TEXT NOT NULL DEFAULT 'USA',
        server_url TEXT NOT NULL,
        persistence_id INTEGER NOT NULL DEFAULT 1 CHECK (persistence_id > 0),
        is_active INTEGER NOT NULL DEFAULT 1,
        is_development INTEGER NOT NULL DEFAULT 0,
        tags TEXT NOT NULL DEFAULT '',
        sort_order INTEGER NOT NULL DEFAULT 0,
        last_heartbeat TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS presence (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id INTEGER UNIQUE REFERENCES accounts(id) ON DELETE CASCADE,
        username TEXT,
        world_id INTEGER NOT NULL,
        last_seen TEXT NOT NULL,
        CHECK (account_id IS NOT NULL OR username IS NOT NULL)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS login_tokens (
        token TEXT PRIMARY KEY,
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        world_id INTEGER NOT NULL,
        client_version INTEGER NOT NULL,
        ip TEXT,
        user_agent TEXT,
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        used_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS skills (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        slug TEXT UNIQUE NOT NULL,
        title TEXT NOT NULL,
        icon_position TEXT,
        display_order INTEGER NOT NULL DEFAULT 0,
        client_reference INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS player_skills (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        persistence_id INTEGER NOT NULL,
        skill_id INTEGER NOT NULL REFERENCES skills(id),
        level INTEGER NOT NULL DEFAULT 1,
        boosted_level INTEGER NOT NULL DEFAULT 1,
        experience INTEGER NOT NULL DEFAULT 0,
        rank INTEGER,
        updated_at TEXT NOT NULL,
        UNIQUE (account_id, persistence_id, skill_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS player_locations (
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        persistence_id INTEGER NOT NULL,
        map_level INTEGER NOT NULL,
        x INTEGER NOT NULL,
        y INTEGER NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (account_id, persistence_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS player_equipment (
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        persistence_id INTEGER NOT NULL,
        slot TEXT NOT NULL,
        item_def_id INTEGER,
        amount INTEGER,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (account_id, persistence_id, slot)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS player_inventory (
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        persistence_id INTEGER NOT NULL,
        slot INTEGER NOT NULL CHECK (slot >= 0 AND slot < 28),
        item_id INTEGER NOT NULL,
        amount INTEGER NOT NULL,
        is_iou INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (account_id, persistence_id, slot)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS player_abilities (
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        persistence_id INTEGER NOT NULL,
        values_json TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (account_id, persistence_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS player_settings (
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        persistence_id INTEGER NOT NULL,
        data_json TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (account_id, persistence_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS player_appearances (
        account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        persistence_id INTEGER NOT NULL,
        hair_style_id INTEGER NOT NULL DEFAULT 1,
        beard_style_id INTEGER NOT NULL DEFAULT 1,
        shirt_id INTEGER NOT NULL DEFAULT 1,
        body_type_id INTEGER NOT NULL DEFAULT 0,
        legs_id INTEGER NOT NULL DEFAULT 5,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (account_id, persistence_id)
    )
    """,
)

# Hot-path index rationale:
# 1. rank recompute and hiscores pages filter on (skill, group) and order by
#    rank or experience.
# 2. presence listings order by last_seen; anonymous presence is unique per
#    username only while it is not bound to an account.
# 3. token cleanup scans by expiry and by owning account.
HOT_PATH_INDEX_STATEMENTS = (
    (
        "CREATE INDEX IF NOT EXISTS idx_player_skills_skill_group_rank "
        "ON player_skills(skill_id, persistence_id, rank)"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_player_skills_skill_group_experience "
        "ON player_skills(skill_id, persistence_id, experience DESC)"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_player_skills_account_group "
        "ON player_skills(account_id, persistence_id)"
    ),
    "CREATE INDEX IF NOT EXISTS idx_presence_last_seen ON presence(last_seen DESC)",
    "CREATE INDEX IF NOT EXISTS idx_presence_world ON presence(world_id)",
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_presence_anonymous_username "
        "ON presence(username) WHERE account_id IS NULL"
    ),
    "CREATE INDEX IF NOT EXISTS idx_login_tokens_expires_at ON login_tokens(expires_at)",
    "CREATE INDEX IF NOT EXISTS idx_login_tokens_account ON login_tokens(account_id, used_at)",
    "CREATE INDEX IF NOT EXISTS idx_worlds_persistence ON worlds(persistence_id)",
)


def seed_skill_catalog(cursor: sqlite3.Cursor) -> int:
    """Insert or refresh the static skill catalog and return rows touched."""
    cursor.executemany(
        """
        INSERT INTO skills (slug, title, icon_position, display_order, client_reference)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(slug) DO UPDATE SET
            title = excluded.title,
            icon_position = excluded.icon_position,
            display_order = excluded.display_order,
            client_reference = excluded.client_reference
        """,
        SKILL_CATALOG,
    )
    return len(SKILL_CATALOG)


def init_database(*, seed_skills: bool = True) -> None:
    """Initialize the SQLite database schema.

    Behavior:
    - Creates required tables and indexes if missing.
    - Seeds (or refreshes) the skill catalog unless ``seed_skills`` is False.

    Args:
        seed_skills: When False, leave the skills table empty. Tests use this to
            exercise the unseeded-catalog failure path.
    """
    with connection_scope(write=True) as conn:
        cursor = conn.cursor()
        for statement in TABLE_STATEMENTS:
            cursor.execute(statement)
        for statement in HOT_PATH_INDEX_STATEMENTS:
            cursor.execute(statement)
        if seed_skills:
            seeded = seed_skill_catalog(cursor)
            logger.debug("Seeded %d skill catalog rows", seeded)

    logger.info("Database schema initialized")
