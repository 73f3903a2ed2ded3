"""Per-world player state inserts used by the bootstrapper.

Every insert here is "create if absent, never overwrite": conflicts on the
``(account_id, persistence_id[, slot | skill_id])`` key are ignored so the
statements can be replayed at any time without touching progress a world
process already wrote.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence

from account_hub.db.connection import connection_scope
from account_hub.db.errors import raise_read_error, raise_write_error
from account_hub.db.types import format_timestamp, utc_now


def _details(account_id: int, persistence_id: int) -> str:
    return f"account_id={account_id}, persistence_id={persistence_id}"


def insert_skills_if_absent(
    account_id: int,
    persistence_id: int,
    rows: Iterable[tuple[int, int, int]],
) -> int:
    """Insert ``(skill_id, level, experience)`` rows that do not exist yet."""
    stamp = format_timestamp(utc_now())
    params = [
        (account_id, persistence_id, skill_id, level, level, experience, stamp)
        for skill_id, level, experience in rows
    ]
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.executemany(
                """
                INSERT INTO player_skills (
                    account_id, persistence_id, skill_id, level, boosted_level,
                    experience, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(account_id, persistence_id, skill_id) DO NOTHING
                """,
                params,
            )
            return int(cursor.rowcount or 0)
    except Exception as exc:
        raise_write_error(
            "player_state.insert_skills_if_absent",
            exc,
            details=_details(account_id, persistence_id),
        )


def insert_location_if_absent(
    account_id: int, persistence_id: int, map_level: int, x: int, y: int
) -> bool:
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                """
                INSERT INTO player_locations (
                    account_id, persistence_id, map_level, x, y, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(account_id, persistence_id) DO NOTHING
                """,
                (account_id, persistence_id, map_level, x, y, format_timestamp(utc_now())),
            )
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error(
            "player_state.insert_location_if_absent",
            exc,
            details=_details(account_id, persistence_id),
        )


def insert_equipment_if_absent(
    account_id: int, persistence_id: int, slots: Sequence[str]
) -> int:
    """Insert empty equipment slots that do not exist yet."""
    stamp = format_timestamp(utc_now())
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.executemany(
                """
                INSERT INTO player_equipment (
                    account_id, persistence_id, slot, item_def_id, amount, updated_at
                )
                VALUES (?, ?, ?, NULL, NULL, ?)
                ON CONFLICT(account_id, persistence_id, slot) DO NOTHING
                """,
                [(account_id, persistence_id, slot, stamp) for slot in slots],
            )
            return int(cursor.rowcount or 0)
    except Exception as exc:
        raise_write_error(
            "player_state.insert_equipment_if_absent",
            exc,
            details=_details(account_id, persistence_id),
        )


def insert_inventory_if_absent(
    account_id: int,
    persistence_id: int,
    items: Sequence[tuple[int, int, int, int]],
) -> int:
    """Insert ``(slot, item_id, amount, is_iou)`` rows into empty slots."""
    stamp = format_timestamp(utc_now())
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.executemany(
                """
                INSERT INTO player_inventory (
                    account_id, persistence_id, slot, item_id, amount, is_iou, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(account_id, persistence_id, slot) DO NOTHING
                """,
                [
                    (account_id, persistence_id, slot, item_id, amount, is_iou, stamp)
                    for slot, item_id, amount, is_iou in items
                ],
            )
            return int(cursor.rowcount or 0)
    except Exception as exc:
        raise_write_error(
            "player_state.insert_inventory_if_absent",
            exc,
            details=_details(account_id, persistence_id),
        )


def insert_abilities_if_absent(
    account_id: int, persistence_id: int, values: Sequence[int]
) -> bool:
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                """
                INSERT INTO player_abilities (account_id, persistence_id, values_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(account_id, persistence_id) DO NOTHING
                """,
                (account_id, persistence_id, json.dumps(list(values)), format_timestamp(utc_now())),
            )
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error(
            "player_state.insert_abilities_if_absent",
            exc,
            details=_details(account_id, persistence_id),
        )


def insert_settings_if_absent(
    account_id: int, persistence_id: int, values: Sequence[int]
) -> bool:
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                """
                INSERT INTO player_settings (account_id, persistence_id, data_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(account_id, persistence_id) DO NOTHING
                """,
                (account_id, persistence_id, json.dumps(list(values)), format_timestamp(utc_now())),
            )
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error(
            "player_state.insert_settings_if_absent",
            exc,
            details=_details(account_id, persistence_id),
        )


def insert_appearance_if_absent(
    account_id: int, persistence_id: int, appearance: Sequence[int]
) -> bool:
    """Insert ``(hair, beard, shirt, body_type, legs)`` appearance defaults."""
    hair, beard, shirt, body_type, legs = appearance
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                """
                INSERT INTO player_appearances (
                    account_id, persistence_id, hair_style_id, beard_style_id,
                    shirt_id, body_type_id, legs_id, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(account_id, persistence_id) DO NOTHING
                """,
                (
                    account_id,
                    persistence_id,
                    hair,
                    beard,
                    shirt,
                    body_type,
                    legs,
                    format_timestamp(utc_now()),
                ),
            )
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error(
            "player_state.insert_appearance_if_absent",
            exc,
            details=_details(account_id, persistence_id),
        )


def get_location(account_id: int, persistence_id: int) -> tuple[int, int, int] | None:
    """Return ``(map_level, x, y)`` or ``None`` when no row exists."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                """
                SELECT map_level, x, y
                FROM player_locations
                WHERE account_id = ? AND persistence_id = ?
                """,
                (account_id, persistence_id),
            ).fetchone()
        if not row:
            return None
        return int(row["map_level"]), int(row["x"]), int(row["y"])
    except Exception as exc:
        raise_read_error(
            "player_state.get_location", exc, details=_details(account_id, persistence_id)
        )
