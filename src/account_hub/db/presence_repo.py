"""Presence repository operations for the SQLite backend.

Presence rows are written concurrently by every world process, so every
mutation here is a single statement guarded by a unique key or a predicate on
the observed row. Nothing holds a lock across statements.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta

from account_hub.db.connection import connection_scope
from account_hub.db.errors import raise_read_error, raise_write_error
from account_hub.db.types import PresenceEntry, format_timestamp, parse_timestamp, utc_now


def _row_to_entry(row: sqlite3.Row) -> PresenceEntry:
    return PresenceEntry(
        id=int(row["id"]),
        account_id=int(row["account_id"]) if row["account_id"] is not None else None,
        username=row["username"],
        world_id=int(row["world_id"]),
        last_seen=parse_timestamp(row["last_seen"]),
    )


def get_presence_for_account(account_id: int) -> PresenceEntry | None:
    """Return the presence row for an account, if any."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                """
                SELECT id, account_id, username, world_id, last_seen
                FROM presence
                WHERE account_id = ?
                """,
                (account_id,),
            ).fetchone()
        return _row_to_entry(row) if row else None
    except Exception as exc:
        raise_read_error(
            "presence.get_presence_for_account", exc, details=f"account_id={account_id}"
        )


def delete_presence_if_matches(entry_id: int, world_id: int) -> bool:
    """Delete one presence row only if it still points at ``world_id``.

    The predicate makes the delete a no-op when another world refreshed the
    entry after it was observed.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                "DELETE FROM presence WHERE id = ? AND world_id = ?",
                (entry_id, world_id),
            )
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error(
            "presence.delete_presence_if_matches",
            exc,
            details=f"id={entry_id}, world_id={world_id}",
        )


def upsert_account_presence(
    account_id: int,
    world_id: int,
    *,
    username: str | None = None,
    now: datetime | None = None,
) -> None:
    """Insert or move an account's presence row in one statement."""
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                INSERT INTO presence (account_id, username, world_id, last_seen)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(account_id) DO UPDATE SET
                    username = COALESCE(excluded.username, presence.username),
                    world_id = excluded.world_id,
                    last_seen = excluded.last_seen
                """,
                (account_id, username, world_id, format_timestamp(now or utc_now())),
            )
    except Exception as exc:
        raise_write_error(
            "presence.upsert_account_presence",
            exc,
            details=f"account_id={account_id}, world_id={world_id}",
        )


def upsert_anonymous_presence(
    username: str, world_id: int, *, now: datetime | None = None
) -> None:
    """Insert or move a legacy presence row keyed only by username."""
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                INSERT INTO presence (account_id, username, world_id, last_seen)
                VALUES (NULL, ?, ?, ?)
                ON CONFLICT(username) WHERE account_id IS NULL DO UPDATE SET
                    world_id = excluded.world_id,
                    last_seen = excluded.last_seen
                """,
                (username, world_id, format_timestamp(now or utc_now())),
            )
    except Exception as exc:
        raise_write_error(
            "presence.upsert_anonymous_presence",
            exc,
            details=f"username={username!r}, world_id={world_id}",
        )


def delete_presence_for_account(account_id: int) -> bool:
    """Remove an account's presence row. Returns ``True`` if one existed."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute("DELETE FROM presence WHERE account_id = ?", (account_id,))
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error(
            "presence.delete_presence_for_account", exc, details=f"account_id={account_id}"
        )


def delete_anonymous_presence(username: str) -> bool:
    """Remove a legacy anonymous presence row by username."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                "DELETE FROM presence WHERE account_id IS NULL AND username = ?",
                (username,),
            )
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error(
            "presence.delete_anonymous_presence", exc, details=f"username={username!r}"
        )


def count_presence() -> int:
    """Return the number of presence rows."""
    try:
        with connection_scope() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM presence").fetchone()
        return int(row["total"])
    except Exception as exc:
        raise_read_error("presence.count_presence", exc)


def list_recent_presence(
    window_seconds: int, limit: int, *, now: datetime | None = None
) -> list[dict]:
    """Return presence rows seen within the window, most recent first.

    Rows carry the account's display name when one is linked so listings can
    show a public name for both account-bound and anonymous entries.
    """
    cutoff = (now or utc_now()) - timedelta(seconds=window_seconds)
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                """
                SELECT p.id, p.account_id, p.username, p.world_id, p.last_seen,
                       a.username AS account_username, a.display_name
                FROM presence p
                LEFT JOIN accounts a ON a.id = p.account_id
                WHERE p.last_seen >= ?
                ORDER BY p.last_seen DESC, p.id DESC
                LIMIT ?
                """,
                (format_timestamp(cutoff), limit),
            ).fetchall()
        return [
            {
                "account_id": int(row["account_id"]) if row["account_id"] is not None else None,
                "username": row["account_username"] or row["username"],
                "display_name": row["display_name"] or row["account_username"] or row["username"],
                "world_id": int(row["world_id"]),
                "last_seen": parse_timestamp(row["last_seen"]),
            }
            for row in rows
        ]
    except Exception as exc:
        raise_read_error(
            "presence.list_recent_presence", exc, details=f"window_seconds={window_seconds}"
        )


def counts_by_world() -> dict[int, int]:
    """Return ``{world_id: presence_rows}`` for every world with players."""
    try:
        with connection_scope() as conn:
            rows = conn.execute(
                "SELECT world_id, COUNT(*) AS total FROM presence GROUP BY world_id"
            ).fetchall()
        return {int(row["world_id"]): int(row["total"]) for row in rows}
    except Exception as exc:
        raise_read_error("presence.counts_by_world", exc)
