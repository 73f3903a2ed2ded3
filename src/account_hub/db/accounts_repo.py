"""Account repository operations for the SQLite backend.

Only the account fields the session and hiscores core consults live here;
administrative mutations (bans, mutes, searches) belong to external tooling.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from account_hub.db.connection import connection_scope
from account_hub.db.errors import raise_read_error, raise_write_error
from account_hub.db.types import AccountRecord, format_timestamp, parse_timestamp, utc_now

_ACCOUNT_COLUMNS = """
    id, username, display_name, email, password_hash, is_admin, ban_reason, banned_until
"""

# Permanent ban = a ban reason with no expiry.
NOT_PERMANENTLY_BANNED_SQL = "NOT (a.ban_reason IS NOT NULL AND a.banned_until IS NULL)"


def _row_to_account(row: sqlite3.Row) -> AccountRecord:
    return AccountRecord(
        id=int(row["id"]),
        username=row["username"],
        display_name=row["display_name"],
        email=row["email"],
        password_hash=row["password_hash"],
        is_admin=bool(row["is_admin"]),
        ban_reason=row["ban_reason"],
        banned_until=parse_timestamp(row["banned_until"]),
    )


def create_account(
    username: str,
    password_hash: str,
    *,
    email: str | None = None,
    display_name: str | None = None,
    is_admin: bool = False,
) -> int | None:
    """Insert an account row.

    Returns:
        New account id, or ``None`` when the username or email is taken.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO accounts (
                    username, display_name, email, password_hash, is_admin, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    username,
                    display_name,
                    email,
                    password_hash,
                    int(is_admin),
                    format_timestamp(utc_now()),
                ),
            )
            return int(cursor.lastrowid) if cursor.lastrowid is not None else None
    except sqlite3.IntegrityError:
        return None
    except Exception as exc:
        raise_write_error("accounts.create_account", exc, details=f"username={username!r}")


def get_account_by_username(username: str) -> AccountRecord | None:
    """Return the account for an exact (already normalized) username."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE username = ?",  # nosec B608
                (username,),
            ).fetchone()
        return _row_to_account(row) if row else None
    except Exception as exc:
        raise_read_error(
            "accounts.get_account_by_username", exc, details=f"username={username!r}"
        )


def get_account_by_id(account_id: int) -> AccountRecord | None:
    """Return the account for ``account_id`` or ``None``."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = ?",  # nosec B608
                (account_id,),
            ).fetchone()
        return _row_to_account(row) if row else None
    except Exception as exc:
        raise_read_error("accounts.get_account_by_id", exc, details=f"account_id={account_id}")


def username_exists(username: str) -> bool:
    """Return ``True`` when an account uses ``username``."""
    try:
        with connection_scope() as conn:
            row = conn.execute("SELECT 1 FROM accounts WHERE username = ?", (username,)).fetchone()
        return row is not None
    except Exception as exc:
        raise_read_error("accounts.username_exists", exc, details=f"username={username!r}")


def email_exists(email: str) -> bool:
    """Return ``True`` when an account uses the normalized ``email``."""
    try:
        with connection_scope() as conn:
            row = conn.execute("SELECT 1 FROM accounts WHERE email = ?", (email,)).fetchone()
        return row is not None
    except Exception as exc:
        raise_read_error("accounts.email_exists", exc)


def find_public_account(name: str) -> dict[str, Any] | None:
    """Find a non-permanently-banned account by display name or username."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                f"""
                SELECT a.id, a.username, a.display_name
                FROM accounts a
                WHERE (a.display_name = ? OR a.username = ?)
                  AND {NOT_PERMANENTLY_BANNED_SQL}
                ORDER BY a.id
                LIMIT 1
                """,  # nosec B608
                (name, name.strip().lower()),
            ).fetchone()
        if not row:
            return None
        return {
            "id": int(row["id"]),
            "username": row["username"],
            "display_name": row["display_name"] or row["username"],
        }
    except Exception as exc:
        raise_read_error("accounts.find_public_account", exc, details=f"name={name!r}")


def touch_last_login(account_id: int) -> bool:
    """Stamp ``last_login`` for an account."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                "UPDATE accounts SET last_login = ? WHERE id = ?",
                (format_timestamp(utc_now()), account_id),
            )
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error("accounts.touch_last_login", exc, details=f"account_id={account_id}")
