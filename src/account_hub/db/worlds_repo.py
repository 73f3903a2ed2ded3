"""World catalog and heartbeat repository operations."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from account_hub.db.connection import connection_scope
from account_hub.db.constants import DEVELOPMENT_TAG
from account_hub.db.errors import raise_read_error, raise_write_error
from account_hub.db.types import (
    WorldDescriptor,
    WorldRecord,
    WorldTags,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

_WORLD_COLUMNS = """
    world_id, name, location_name, flag_code, server_url, persistence_id,
    is_active, is_development, tags, sort_order, last_heartbeat, created_at
"""

# Development worlds are hidden by flag or by tag. The tag check runs on the
# storage form; tags are normalized on write so a bounded LIKE is exact.
_NON_DEVELOPMENT_SQL = (
    "is_development = 0 AND (',' || tags || ',') NOT LIKE '%,' || ? || ',%'"
)


def _row_to_world(row: sqlite3.Row) -> WorldRecord:
    return WorldRecord(
        world_id=int(row["world_id"]),
        name=row["name"],
        location_name=row["location_name"],
        flag_code=row["flag_code"],
        server_url=row["server_url"],
        persistence_id=int(row["persistence_id"]),
        is_active=bool(row["is_active"]),
        is_development=bool(row["is_development"]),
        tags=WorldTags.from_storage(row["tags"]),
        sort_order=int(row["sort_order"]),
        last_heartbeat=parse_timestamp(row["last_heartbeat"]),
        created_at=parse_timestamp(row["created_at"]),
    )


def upsert_world(
    descriptor: WorldDescriptor,
    *,
    default_persistence_id: int,
    now: datetime | None = None,
) -> WorldRecord:
    """Insert or update a world row and stamp its heartbeat.

    An omitted ``persistence_id`` keeps the stored group on update and falls
    back to ``default_persistence_id`` on insert.
    """
    stamp = format_timestamp(now or utc_now())
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                INSERT INTO worlds (
                    world_id, name, location_name, flag_code, server_url, persistence_id,
                    is_active, is_development, tags, sort_order, last_heartbeat, created_at
                )
                VALUES (?, ?, ?, ?, ?, COALESCE(?, ?), ?, ?, ?, ?, ?, ?)
                ON CONFLICT(world_id) DO UPDATE SET
                    name = excluded.name,
                    location_name = excluded.location_name,
                    flag_code = excluded.flag_code,
                    server_url = excluded.server_url,
                    persistence_id = COALESCE(?, worlds.persistence_id),
                    is_active = excluded.is_active,
                    is_development = excluded.is_development,
                    tags = excluded.tags,
                    sort_order = excluded.sort_order,
                    last_heartbeat = excluded.last_heartbeat
                """,
                (
                    descriptor.world_id,
                    descriptor.name,
                    descriptor.location_name,
                    descriptor.flag_code,
                    descriptor.server_url,
                    descriptor.persistence_id,
                    default_persistence_id,
                    int(descriptor.is_active),
                    int(descriptor.is_development),
                    descriptor.tags.to_storage(),
                    descriptor.sort_order,
                    stamp,
                    stamp,
                    descriptor.persistence_id,
                ),
            )
            row = conn.execute(
                f"SELECT {_WORLD_COLUMNS} FROM worlds WHERE world_id = ?",  # nosec B608
                (descriptor.world_id,),
            ).fetchone()
        return _row_to_world(row)
    except Exception as exc:
        raise_write_error(
            "worlds.upsert_world", exc, details=f"world_id={descriptor.world_id}"
        )


def touch_heartbeat(world_id: int, *, now: datetime | None = None) -> datetime | None:
    """Stamp ``last_heartbeat`` for a world.

    Returns:
        The stored heartbeat, or ``None`` when the world does not exist.
    """
    moment = now or utc_now()
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                "UPDATE worlds SET last_heartbeat = ? WHERE world_id = ?",
                (format_timestamp(moment), world_id),
            )
            if int(cursor.rowcount or 0) == 0:
                return None
        return parse_timestamp(format_timestamp(moment))
    except Exception as exc:
        raise_write_error("worlds.touch_heartbeat", exc, details=f"world_id={world_id}")


def get_world(
    world_id: int,
    *,
    include_development: bool = True,
    active_only: bool = False,
) -> WorldRecord | None:
    """Return one world, optionally hiding development or inactive worlds."""
    clauses = ["world_id = ?"]
    params: list[object] = [world_id]
    if active_only:
        clauses.append("is_active = 1")
    if not include_development:
        clauses.append(_NON_DEVELOPMENT_SQL)
        params.append(DEVELOPMENT_TAG)
    try:
        with connection_scope() as conn:
            row = conn.execute(
                f"SELECT {_WORLD_COLUMNS} FROM worlds WHERE {' AND '.join(clauses)}",  # nosec B608
                params,
            ).fetchone()
        return _row_to_world(row) if row else None
    except Exception as exc:
        raise_read_error("worlds.get_world", exc, details=f"world_id={world_id}")


def list_worlds(
    *,
    include_development: bool = True,
    include_inactive: bool = False,
) -> list[WorldRecord]:
    """Return worlds ordered by ``sort_order`` then id."""
    clauses: list[str] = []
    params: list[object] = []
    if not include_inactive:
        clauses.append("is_active = 1")
    if not include_development:
        clauses.append(_NON_DEVELOPMENT_SQL)
        params.append(DEVELOPMENT_TAG)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                f"SELECT {_WORLD_COLUMNS} FROM worlds {where} "  # nosec B608
                "ORDER BY sort_order, world_id",
                params,
            ).fetchall()
        return [_row_to_world(row) for row in rows]
    except Exception as exc:
        raise_read_error(
            "worlds.list_worlds",
            exc,
            details=f"include_inactive={include_inactive}",
        )


def get_last_heartbeat(world_id: int) -> datetime | None:
    """Return the world's last heartbeat, or ``None`` when missing/unknown."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                "SELECT last_heartbeat FROM worlds WHERE world_id = ?", (world_id,)
            ).fetchone()
        return parse_timestamp(row["last_heartbeat"]) if row else None
    except Exception as exc:
        raise_read_error("worlds.get_last_heartbeat", exc, details=f"world_id={world_id}")


def list_persistence_ids() -> list[int]:
    """Return every distinct positive persistence group id, ascending."""
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT persistence_id
                FROM worlds
                WHERE persistence_id > 0
                ORDER BY persistence_id
                """
            ).fetchall()
        return [int(row["persistence_id"]) for row in rows]
    except Exception as exc:
        raise_read_error("worlds.list_persistence_ids", exc)
