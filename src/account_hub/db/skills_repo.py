"""Skill catalog, player skill and rank repository operations.

Aggregate and rank maintenance are expressed as set-based statements so their
cost does not depend on how many callers touched the population. When the
linked SQLite library predates window functions, rank assignment falls back to
an ordered fetch plus one ``executemany`` write inside the same transaction.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from typing import Any

from account_hub.db.accounts_repo import NOT_PERMANENTLY_BANNED_SQL
from account_hub.db.connection import connection_scope, supports_window_functions
from account_hub.db.errors import raise_read_error, raise_write_error
from account_hub.db.types import SkillDefinition, format_timestamp, utc_now

logger = logging.getLogger(__name__)


def _row_to_skill(row: sqlite3.Row) -> SkillDefinition:
    return SkillDefinition(
        id=int(row["id"]),
        slug=row["slug"],
        title=row["title"],
        icon_position=row["icon_position"],
        display_order=int(row["display_order"]),
        client_reference=(
            int(row["client_reference"]) if row["client_reference"] is not None else None
        ),
    )


def _ranked_predicate(is_aggregate: bool) -> str:
    return "level > 0" if is_aggregate else "experience > 0"


def _rank_order(is_aggregate: bool) -> str:
    if is_aggregate:
        return "level DESC, experience DESC, account_id ASC"
    return "experience DESC, account_id ASC"


# ============================================================================
# CATALOG
# ============================================================================


def load_skill_definitions() -> list[SkillDefinition]:
    """Return every catalog row ordered by display order."""
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                """
                SELECT id, slug, title, icon_position, display_order, client_reference
                FROM skills
                ORDER BY display_order, id
                """
            ).fetchall()
        return [_row_to_skill(row) for row in rows]
    except Exception as exc:
        raise_read_error("skills.load_skill_definitions", exc)


# ============================================================================
# AGGREGATE AND RANKS
# ============================================================================


def recompute_aggregate(account_id: int, persistence_id: int, aggregate_skill_id: int) -> None:
    """Write the aggregate row as sums over the account's other skills.

    One ``INSERT .. SELECT .. ON CONFLICT DO UPDATE`` statement; an account with
    no skills gets an aggregate of level 0 / experience 0.
    """
    try:
        with connection_scope(write=True) as conn:
            # The WHERE clause is required: SQLite cannot parse an upsert
            # directly after a bare SELECT .. FROM.
            conn.execute(
                """
                INSERT INTO player_skills (
                    account_id, persistence_id, skill_id, level, boosted_level,
                    experience, updated_at
                )
                SELECT ?, ?, ?,
                       COALESCE(SUM(level), 0),
                       COALESCE(SUM(level), 0),
                       COALESCE(SUM(experience), 0),
                       ?
                FROM player_skills
                WHERE account_id = ? AND persistence_id = ? AND skill_id <> ?
                ON CONFLICT(account_id, persistence_id, skill_id) DO UPDATE SET
                    level = excluded.level,
                    boosted_level = excluded.boosted_level,
                    experience = excluded.experience,
                    updated_at = excluded.updated_at
                WHERE player_skills.level IS NOT excluded.level
                   OR player_skills.boosted_level IS NOT excluded.boosted_level
                   OR player_skills.experience IS NOT excluded.experience
                """,
                (
                    account_id,
                    persistence_id,
                    aggregate_skill_id,
                    format_timestamp(utc_now()),
                    account_id,
                    persistence_id,
                    aggregate_skill_id,
                ),
            )
    except Exception as exc:
        raise_write_error(
            "skills.recompute_aggregate",
            exc,
            details=f"account_id={account_id}, persistence_id={persistence_id}",
        )


def _assign_ranks_with_window(
    conn: sqlite3.Connection, skill_id: int, persistence_id: int, is_aggregate: bool
) -> None:
    predicate = _ranked_predicate(is_aggregate)
    conn.execute(
        f"""
        WITH ranked AS (
            SELECT id, ROW_NUMBER() OVER (ORDER BY {_rank_order(is_aggregate)}) AS position
            FROM player_skills
            WHERE skill_id = ? AND persistence_id = ? AND {predicate}
        )
        UPDATE player_skills
        SET rank = (SELECT position FROM ranked WHERE ranked.id = player_skills.id)
        WHERE skill_id = ? AND persistence_id = ? AND {predicate}
        """,  # nosec B608
        (skill_id, persistence_id, skill_id, persistence_id),
    )


def _assign_ranks_in_memory(
    conn: sqlite3.Connection, skill_id: int, persistence_id: int, is_aggregate: bool
) -> None:
    rows = conn.execute(
        f"""
        SELECT id
        FROM player_skills
        WHERE skill_id = ? AND persistence_id = ? AND {_ranked_predicate(is_aggregate)}
        ORDER BY {_rank_order(is_aggregate)}
        """,  # nosec B608
        (skill_id, persistence_id),
    ).fetchall()
    conn.executemany(
        "UPDATE player_skills SET rank = ? WHERE id = ?",
        [(position, int(row["id"])) for position, row in enumerate(rows, start=1)],
    )


def recompute_ranks(
    skill_id: int,
    persistence_id: int,
    *,
    is_aggregate: bool,
    use_window_functions: bool | None = None,
) -> None:
    """Recompute stored ranks for one (skill, persistence group) population.

    Phase one clears ranks for unranked rows (zero experience, or zero level
    for the aggregate). Phase two numbers every remaining row 1..N.

    Args:
        skill_id: Skill whose population is ranked.
        persistence_id: Persistence group.
        is_aggregate: Rank by level then experience instead of experience.
        use_window_functions: Force a strategy; ``None`` detects library support.
    """
    if use_window_functions is None:
        use_window_functions = supports_window_functions()
    unranked = "level <= 0" if is_aggregate else "experience <= 0"
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                f"""
                UPDATE player_skills
                SET rank = NULL
                WHERE skill_id = ? AND persistence_id = ? AND {unranked}
                """,  # nosec B608
                (skill_id, persistence_id),
            )
            if use_window_functions:
                _assign_ranks_with_window(conn, skill_id, persistence_id, is_aggregate)
            else:
                _assign_ranks_in_memory(conn, skill_id, persistence_id, is_aggregate)
    except Exception as exc:
        raise_write_error(
            "skills.recompute_ranks",
            exc,
            details=f"skill_id={skill_id}, persistence_id={persistence_id}",
        )


# ============================================================================
# PLAYER SKILL WRITES
# ============================================================================


def upsert_player_skills(
    account_id: int,
    persistence_id: int,
    rows: Iterable[tuple[int, int, int]],
) -> int:
    """Insert or overwrite ``(skill_id, level, experience)`` rows in one transaction."""
    stamp = format_timestamp(utc_now())
    params = [
        (account_id, persistence_id, skill_id, level, level, experience, stamp)
        for skill_id, level, experience in rows
    ]
    try:
        with connection_scope(write=True) as conn:
            conn.executemany(
                """
                INSERT INTO player_skills (
                    account_id, persistence_id, skill_id, level, boosted_level,
                    experience, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(account_id, persistence_id, skill_id) DO UPDATE SET
                    level = excluded.level,
                    experience = excluded.experience,
                    updated_at = excluded.updated_at
                """,
                params,
            )
        return len(params)
    except Exception as exc:
        raise_write_error(
            "skills.upsert_player_skills",
            exc,
            details=f"account_id={account_id}, persistence_id={persistence_id}",
        )


# ============================================================================
# READS
# ============================================================================


def _hiscores_filters(
    skill_id: int,
    persistence_id: int,
    is_aggregate: bool,
    min_level: int | None,
    exclude_username: str | None,
) -> tuple[str, list[Any]]:
    clauses = [
        "ps.skill_id = ?",
        "ps.persistence_id = ?",
        f"ps.{_ranked_predicate(is_aggregate)}",
        NOT_PERMANENTLY_BANNED_SQL,
    ]
    params: list[Any] = [skill_id, persistence_id]
    if min_level is not None:
        clauses.append("ps.level > ?")
        params.append(min_level)
    if exclude_username:
        clauses.append("LOWER(a.username) <> LOWER(?)")
        params.append(exclude_username)
    return " AND ".join(clauses), params


def count_hiscores(
    skill_id: int,
    persistence_id: int,
    *,
    is_aggregate: bool = False,
    min_level: int | None = None,
    exclude_username: str | None = None,
) -> int:
    """Count rows a hiscores page would paginate over."""
    where, params = _hiscores_filters(
        skill_id, persistence_id, is_aggregate, min_level, exclude_username
    )
    try:
        with connection_scope() as conn:
            row = conn.execute(
                f"""
                SELECT COUNT(*) AS total
                FROM player_skills ps
                JOIN accounts a ON a.id = ps.account_id
                WHERE {where}
                """,  # nosec B608
                params,
            ).fetchone()
        return int(row["total"])
    except Exception as exc:
        raise_read_error("skills.count_hiscores", exc, details=f"skill_id={skill_id}")


def list_hiscores(
    skill_id: int,
    persistence_id: int,
    *,
    limit: int,
    offset: int = 0,
    is_aggregate: bool = False,
    min_level: int | None = None,
    exclude_username: str | None = None,
) -> list[dict[str, Any]]:
    """Return one hiscores page ordered by stored rank.

    SQLite sorts NULL first in ascending order, so rows without a stored rank
    are pushed behind ranked rows explicitly.
    """
    where, params = _hiscores_filters(
        skill_id, persistence_id, is_aggregate, min_level, exclude_username
    )
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                f"""
                SELECT ps.account_id, ps.level, ps.experience, ps.rank,
                       a.username, a.display_name
                FROM player_skills ps
                JOIN accounts a ON a.id = ps.account_id
                WHERE {where}
                ORDER BY ps.rank IS NULL, ps.rank ASC, ps.experience DESC, ps.account_id ASC
                LIMIT ? OFFSET ?
                """,  # nosec B608
                [*params, limit, offset],
            ).fetchall()
        return [
            {
                "account_id": int(row["account_id"]),
                "username": row["username"],
                "display_name": row["display_name"] or row["username"],
                "level": int(row["level"]),
                "experience": int(row["experience"]),
                "rank": int(row["rank"]) if row["rank"] is not None else None,
            }
            for row in rows
        ]
    except Exception as exc:
        raise_read_error("skills.list_hiscores", exc, details=f"skill_id={skill_id}")


def get_player_skill_rows(account_id: int, persistence_id: int) -> dict[int, dict[str, Any]]:
    """Return ``{skill_id: {level, boosted_level, experience, rank}}`` for one account."""
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                """
                SELECT skill_id, level, boosted_level, experience, rank
                FROM player_skills
                WHERE account_id = ? AND persistence_id = ?
                """,
                (account_id, persistence_id),
            ).fetchall()
        return {
            int(row["skill_id"]): {
                "level": int(row["level"]),
                "boosted_level": int(row["boosted_level"]),
                "experience": int(row["experience"]),
                "rank": int(row["rank"]) if row["rank"] is not None else None,
            }
            for row in rows
        }
    except Exception as exc:
        raise_read_error(
            "skills.get_player_skill_rows",
            exc,
            details=f"account_id={account_id}, persistence_id={persistence_id}",
        )


def list_accounts_in_group(persistence_id: int) -> list[int]:
    """Return every account id holding skill rows in a persistence group."""
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT account_id
                FROM player_skills
                WHERE persistence_id = ?
                ORDER BY account_id
                """,
                (persistence_id,),
            ).fetchall()
        return [int(row["account_id"]) for row in rows]
    except Exception as exc:
        raise_read_error(
            "skills.list_accounts_in_group", exc, details=f"persistence_id={persistence_id}"
        )
