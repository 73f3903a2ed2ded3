"""Login token repository operations for the SQLite backend."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from account_hub.db.connection import connection_scope
from account_hub.db.errors import raise_read_error, raise_write_error
from account_hub.db.types import LoginTokenRecord, format_timestamp, parse_timestamp, utc_now


def _row_to_token(row: sqlite3.Row) -> LoginTokenRecord:
    return LoginTokenRecord(
        token=row["token"],
        account_id=int(row["account_id"]),
        world_id=int(row["world_id"]),
        client_version=int(row["client_version"]),
        expires_at=parse_timestamp(row["expires_at"]),
        used_at=parse_timestamp(row["used_at"]),
        created_at=parse_timestamp(row["created_at"]),
        ip=row["ip"],
        user_agent=row["user_agent"],
    )


def create_token(
    token: str,
    *,
    account_id: int,
    world_id: int,
    client_version: int,
    expires_at: datetime,
    ip: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> None:
    """Persist a freshly minted login token."""
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                INSERT INTO login_tokens (
                    token, account_id, world_id, client_version, ip, user_agent,
                    created_at, expires_at, used_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL)
                """,
                (
                    token,
                    account_id,
                    world_id,
                    client_version,
                    ip,
                    user_agent,
                    format_timestamp(now or utc_now()),
                    format_timestamp(expires_at),
                ),
            )
    except Exception as exc:
        raise_write_error(
            "login_tokens.create_token",
            exc,
            details=f"account_id={account_id}, world_id={world_id}",
        )


def get_token(token: str) -> LoginTokenRecord | None:
    """Return a stored token row or ``None``."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                """
                SELECT token, account_id, world_id, client_version, ip, user_agent,
                       created_at, expires_at, used_at
                FROM login_tokens
                WHERE token = ?
                """,
                (token,),
            ).fetchone()
        return _row_to_token(row) if row else None
    except Exception as exc:
        raise_read_error("login_tokens.get_token", exc, details=f"token={token[:8]}...")


def mark_token_used(token: str, *, now: datetime | None = None) -> bool:
    """Mark a token used if and only if it is still unused and unexpired.

    Returns:
        ``True`` when this call won the redemption.
    """
    stamp = format_timestamp(now or utc_now())
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                """
                UPDATE login_tokens
                SET used_at = ?
                WHERE token = ? AND used_at IS NULL AND expires_at > ?
                """,
                (stamp, token, stamp),
            )
            return int(cursor.rowcount or 0) == 1
    except Exception as exc:
        raise_write_error("login_tokens.mark_token_used", exc, details=f"token={token[:8]}...")


def delete_unused_for_account(account_id: int) -> int:
    """Delete an account's unredeemed tokens and return the count."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                "DELETE FROM login_tokens WHERE account_id = ? AND used_at IS NULL",
                (account_id,),
            )
            return int(cursor.rowcount or 0)
    except Exception as exc:
        raise_write_error(
            "login_tokens.delete_unused_for_account", exc, details=f"account_id={account_id}"
        )


def delete_expired_or_used(limit: int, *, now: datetime | None = None) -> int:
    """Delete at most ``limit`` expired or redeemed tokens."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                """
                DELETE FROM login_tokens
                WHERE token IN (
                    SELECT token FROM login_tokens
                    WHERE expires_at <= ? OR used_at IS NOT NULL
                    LIMIT ?
                )
                """,
                (format_timestamp(now or utc_now()), limit),
            )
            return int(cursor.rowcount or 0)
    except Exception as exc:
        raise_write_error("login_tokens.delete_expired_or_used", exc, details=f"limit={limit}")
