"""
Account registration.

Creates the account row and bootstraps player state in every persistence
group the world table knows about, so a new player can log into any world
without waiting for lazy initialization.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from account_hub.api.password import hash_password
from account_hub.db import accounts_repo
from account_hub.services.bootstrap import PlayerStateBootstrapper

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[a-z0-9_]{2,20}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8
# bcrypt only reads the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72
GMAIL_DOMAINS = frozenset({"gmail.com", "googlemail.com"})


@dataclass(slots=True)
class RegistrationResult:
    """
    Result payload for account registration.

    Attributes:
        success: True when the account row was created.
        reason: Stable reason key (``ok``, ``invalid_username``,
            ``invalid_password``, ``invalid_email``, ``username_taken``,
            ``email_taken``).
        message: Human-readable status message.
        account_id: New account id on success.
        persistence_ids: Groups bootstrapped for the new account.
    """

    success: bool
    reason: str
    message: str
    account_id: int | None = None
    persistence_ids: list[int] | None = None


def normalize_username(username: str) -> str:
    return username.strip().lower()


def normalize_email(email: str) -> str | None:
    """Lower-case an address and fold Gmail aliases onto the mailbox.

    Returns ``None`` when the address is not well formed.
    """
    candidate = email.strip().lower()
    if not EMAIL_PATTERN.match(candidate):
        return None
    local, _, domain = candidate.rpartition("@")
    if domain in GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
        if not local:
            return None
    return f"{local}@{domain}"


def register_account(
    username: str,
    password: str,
    *,
    email: str | None = None,
    display_name: str | None = None,
    bootstrapper: PlayerStateBootstrapper | None = None,
) -> RegistrationResult:
    normalized = normalize_username(username)
    if not USERNAME_PATTERN.match(normalized):
        return RegistrationResult(
            success=False,
            reason="invalid_username",
            message="Username must be 2-20 characters of letters, digits or underscores.",
        )
    if len(password) < MIN_PASSWORD_LENGTH:
        return RegistrationResult(
            success=False,
            reason="invalid_password",
            message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return RegistrationResult(
            success=False,
            reason="invalid_password",
            message=f"Password must be at most {MAX_PASSWORD_BYTES} bytes.",
        )

    normalized_email = None
    if email is not None and email.strip():
        normalized_email = normalize_email(email)
        if normalized_email is None:
            return RegistrationResult(
                success=False, reason="invalid_email", message="Email address is invalid."
            )

    if accounts_repo.username_exists(normalized):
        return RegistrationResult(
            success=False, reason="username_taken", message="Username already exists."
        )
    if normalized_email and accounts_repo.email_exists(normalized_email):
        return RegistrationResult(
            success=False, reason="email_taken", message="Email already registered."
        )

    account_id = accounts_repo.create_account(
        normalized,
        hash_password(password),
        email=normalized_email,
        display_name=(display_name or "").strip() or normalized,
    )
    if account_id is None:
        # Lost a race with a concurrent registration.
        return RegistrationResult(
            success=False, reason="username_taken", message="Username already exists."
        )

    groups = (bootstrapper or PlayerStateBootstrapper()).ensure_initialized_for_all_groups(
        account_id
    )
    logger.info("Registered account %s (%s) in groups %s", account_id, normalized, groups)
    return RegistrationResult(
        success=True,
        reason="ok",
        message="Account created.",
        account_id=account_id,
        persistence_ids=groups,
    )
