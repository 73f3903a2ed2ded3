"""
One-time login tokens bridging web authentication and world logins.

The game client asks the hub for a token with its credentials, then hands the
token to a world process, which redeems it here exactly once. Failure outcomes
carry the numeric codes the game client already understands; ``reason`` keys
stay stable for logs and callers that need to tell the -303 cases apart.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from account_hub.api.password import DUMMY_PASSWORD_HASH, verify_password
from account_hub.config import config
from account_hub.db import accounts_repo, tokens_repo
from account_hub.db.errors import DatabaseError, DatabaseOperationError
from account_hub.db.types import utc_now
from account_hub.services.bootstrap import PlayerStateBootstrapper
from account_hub.services.client_version import ClientVersionService
from account_hub.services.presence import PresenceRegistry
from account_hub.services.ranking import SkillCatalogError
from account_hub.services.world_registry import WorldHeartbeatTracker

logger = logging.getLogger(__name__)

LOGIN_OK_CODE = 1
MIN_TOKEN_LENGTH = 32

# reason -> (client code, message)
LOGIN_FAILURES: dict[str, tuple[int, str]] = {
    "missing_credentials": (-400, "Username and password are required"),
    "invalid_world_id": (-401, "Invalid serverId"),
    "invalid_client_version": (-402, "Invalid currentClientVersion"),
    "world_not_found": (-303, "World not found"),
    "client_out_of_date": (-304, "Client out of date"),
    "username_not_found": (-301, "Username not found"),
    "password_incorrect": (-302, "Password incorrect"),
    "already_online": (
        -303,
        "Your account is currently logged in, please try again in about a minute",
    ),
    "database_not_migrated": (-500, "Database not migrated"),
    "internal_error": (-999, "Internal server error"),
}

CONSUME_FAILURES: dict[str, str] = {
    "invalid_token": "token is required",
    "invalid_world_id": "serverId is required (positive integer)",
    "token_not_found": "Token not found",
    "world_mismatch": "Token server mismatch",
    "already_used": "Token already used",
    "expired": "Token expired",
    "database_not_migrated": "Database not migrated",
    "internal_error": "Internal server error",
}


def coerce_positive_int(value: Any) -> int | None:
    """Return ``value`` as a positive int, or ``None`` if it is not one."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit() and int(text) > 0:
            return int(text)
    return None


@dataclass(slots=True)
class LoginTokenRequest:
    """
    Raw credentials submitted by the game client.

    ``world_id`` and ``client_version`` are left unvalidated here; the issuer
    maps bad values to the client's numeric codes instead of rejecting the
    request shape.
    """

    username: str | None
    password: str | None
    world_id: Any
    client_version: Any
    ip: str | None = None
    user_agent: str | None = None


@dataclass(slots=True)
class LoginTokenResult:
    success: bool
    reason: str
    code: int
    message: str
    token: str | None = None
    account_id: int | None = None
    expires_at: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        """Render the response body the game client expects."""
        if self.success:
            return {"code": self.code, "msg": self.message, "data": {"token": self.token}}
        return {"code": self.code, "msg": self.message}


@dataclass(slots=True)
class ConsumeResult:
    success: bool
    reason: str
    message: str
    account: dict[str, Any] | None = None
    world_id: int | None = None
    client_version: int | None = None


def _failure(reason: str, message: str | None = None) -> LoginTokenResult:
    code, default_message = LOGIN_FAILURES[reason]
    return LoginTokenResult(
        success=False, reason=reason, code=code, message=message or default_message
    )


def _consume_failure(reason: str) -> ConsumeResult:
    return ConsumeResult(success=False, reason=reason, message=CONSUME_FAILURES[reason])


def _storage_reason(exc: DatabaseError) -> str:
    if isinstance(exc, DatabaseOperationError) and exc.is_schema_missing:
        return "database_not_migrated"
    return "internal_error"


class LoginTokenIssuer:
    """Validates credentials and mints single-use login tokens.

    Collaborators default to production instances and are injectable so tests
    can substitute clocks, manifests and liveness.
    """

    def __init__(
        self,
        *,
        tracker: WorldHeartbeatTracker | None = None,
        presence: PresenceRegistry | None = None,
        bootstrapper: PlayerStateBootstrapper | None = None,
        client_versions: ClientVersionService | None = None,
        clock: Callable[[], datetime] = utc_now,
        token_factory: Callable[[], str] = lambda: secrets.token_hex(32),
    ) -> None:
        self._clock = clock
        self.tracker = tracker or WorldHeartbeatTracker(clock=clock)
        self.presence = presence or PresenceRegistry(self.tracker, clock=clock)
        self.bootstrapper = bootstrapper or PlayerStateBootstrapper()
        self.client_versions = client_versions or ClientVersionService()
        self._token_factory = token_factory

    def issue(self, request: LoginTokenRequest) -> LoginTokenResult:
        """Run the login checks in order and mint a token on success.

        Storage failures never escape: they map to ``internal_error`` (or
        ``database_not_migrated`` when the schema is missing).
        """
        try:
            return self._issue(request)
        except DatabaseError as exc:
            reason = _storage_reason(exc)
            logger.exception("Login token issue failed (%s)", reason)
            return _failure(reason)
        except SkillCatalogError:
            logger.exception("Login token issue failed: skill catalog unseeded")
            return _failure("internal_error")

    def _issue(self, request: LoginTokenRequest) -> LoginTokenResult:
        username = (request.username or "").strip().lower()
        password = request.password or ""
        if not username or not password:
            return _failure("missing_credentials")

        world_id = coerce_positive_int(request.world_id)
        if world_id is None:
            return _failure("invalid_world_id")
        client_version = coerce_positive_int(request.client_version)
        if client_version is None:
            return _failure("invalid_client_version")

        world = self.tracker.find_login_world(world_id)
        if world is None:
            return _failure("world_not_found")

        latest = self.client_versions.get_latest()
        if latest is not None and client_version != latest:
            return _failure(
                "client_out_of_date",
                f"Client out of date (current={client_version}, latest={latest})",
            )

        account = accounts_repo.get_account_by_username(username)
        if account is None:
            verify_password(password, DUMMY_PASSWORD_HASH)
            return _failure("username_not_found")
        if not verify_password(password, account.password_hash):
            return _failure("password_incorrect")

        check = self.presence.check_and_reclaim(account.id)
        if not check.allowed:
            logger.info(
                "Login for account %s blocked: online on world %s", account.id, check.world_id
            )
            return _failure("already_online")

        if self.bootstrapper.needs_initialization(account.id, world.persistence_id):
            logger.info(
                "Initializing account %s for persistence group %s",
                account.id,
                world.persistence_id,
            )
            self.bootstrapper.ensure_initialized(account.id, world.persistence_id)

        self._cleanup_tokens(account.id)

        now = self._clock()
        expires_at = now + timedelta(seconds=config.login_tokens.effective_ttl_seconds)
        token = self._token_factory()
        tokens_repo.create_token(
            token,
            account_id=account.id,
            world_id=world_id,
            client_version=client_version,
            expires_at=expires_at,
            ip=request.ip,
            user_agent=request.user_agent,
            now=now,
        )
        accounts_repo.touch_last_login(account.id)
        logger.info("Issued login token %s... for account %s", token[:8], account.id)
        return LoginTokenResult(
            success=True,
            reason="ok",
            code=LOGIN_OK_CODE,
            message="ok",
            token=token,
            account_id=account.id,
            expires_at=expires_at,
        )

    def _cleanup_tokens(self, account_id: int) -> None:
        """Best-effort token housekeeping; failures never block the issue."""
        try:
            tokens_repo.delete_expired_or_used(
                config.login_tokens.cleanup_batch_size, now=self._clock()
            )
            tokens_repo.delete_unused_for_account(account_id)
        except DatabaseError:
            logger.warning("Login token cleanup failed for account %s", account_id, exc_info=True)


class LoginTokenConsumer:
    """Redeems login tokens on behalf of world processes."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    def consume(self, token: Any, world_id: Any) -> ConsumeResult:
        try:
            return self._consume(token, world_id)
        except DatabaseError as exc:
            reason = _storage_reason(exc)
            logger.exception("Login token consume failed (%s)", reason)
            return _consume_failure(reason)

    def _consume(self, token: Any, world_id: Any) -> ConsumeResult:
        token = token.strip() if isinstance(token, str) else ""
        if len(token) < MIN_TOKEN_LENGTH:
            return _consume_failure("invalid_token")
        target_world = coerce_positive_int(world_id)
        if target_world is None:
            return _consume_failure("invalid_world_id")

        record = tokens_repo.get_token(token)
        if record is None:
            return _consume_failure("token_not_found")
        if record.world_id != target_world:
            return _consume_failure("world_mismatch")
        if record.used_at is not None:
            return _consume_failure("already_used")
        now = self._clock()
        if now >= record.expires_at:
            return _consume_failure("expired")

        if not tokens_repo.mark_token_used(token, now=now):
            # Lost the redemption race, or the token expired in between.
            current = tokens_repo.get_token(token)
            if current is not None and current.used_at is None:
                return _consume_failure("expired")
            return _consume_failure("already_used")

        account = accounts_repo.get_account_by_id(record.account_id)
        if account is None:
            return _consume_failure("token_not_found")
        return ConsumeResult(
            success=True,
            reason="ok",
            message="ok",
            account={
                "id": account.id,
                "username": account.username,
                "displayName": account.display_name,
            },
            world_id=record.world_id,
            client_version=record.client_version,
        )
