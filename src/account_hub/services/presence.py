"""
Presence registry: at most one live session per account across all worlds.

A presence entry is trusted only while its owning world keeps heartbeating.
Entries left behind by a crashed world are reclaimed by the next login rather
than by a sweeper, so liveness never depends on the crashed process.

Known race:
    ``check_and_reclaim`` and the world-side ``record_online`` are separate
    statements. Two logins for the same account that both pass the check
    before either world records presence each receive a token. The unique
    account key still collapses them into one presence row, and every issue
    deletes the account's earlier unused tokens, so at most the most recent
    token remains redeemable once both issues complete.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from account_hub.db import presence_repo
from account_hub.db.constants import PRESENCE_LIST_LIMIT
from account_hub.db.types import utc_now
from account_hub.services.world_registry import WorldHeartbeatTracker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PresenceCheck:
    """
    Outcome of a presence check on the login path.

    Attributes:
        allowed: True when the account may log in.
        reason: ``"no_presence"``, ``"reclaimed"`` or ``"already_online"``.
        world_id: World holding the blocking or reclaimed entry.
    """

    allowed: bool
    reason: str
    world_id: int | None = None


class PresenceRegistry:
    """Reads and writes presence entries.

    Args:
        tracker: Liveness source for the world that owns an entry.
        clock: Returns the current aware UTC time; injectable for tests.
    """

    def __init__(
        self,
        tracker: WorldHeartbeatTracker | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clock = clock
        self._tracker = tracker or WorldHeartbeatTracker(clock=clock)

    def check_and_reclaim(self, account_id: int) -> PresenceCheck:
        """Decide whether ``account_id`` may start a new session.

        A stale entry (owning world silent past the presence timeout, or no
        longer registered) is deleted with a predicate on the observed row so
        a concurrent refresh from a live world is never discarded.
        """
        entry = presence_repo.get_presence_for_account(account_id)
        if entry is None:
            return PresenceCheck(allowed=True, reason="no_presence")

        if not self._tracker.is_world_stale(entry.world_id):
            return PresenceCheck(allowed=False, reason="already_online", world_id=entry.world_id)

        reclaimed = presence_repo.delete_presence_if_matches(entry.id, entry.world_id)
        if reclaimed:
            logger.info(
                "Reclaimed stale presence for account %s on world %s",
                account_id,
                entry.world_id,
            )
            return PresenceCheck(allowed=True, reason="reclaimed", world_id=entry.world_id)

        # The observed row moved or vanished between read and delete.
        current = presence_repo.get_presence_for_account(account_id)
        if current is None or self._tracker.is_world_stale(current.world_id):
            return PresenceCheck(allowed=True, reason="reclaimed", world_id=entry.world_id)
        return PresenceCheck(allowed=False, reason="already_online", world_id=current.world_id)

    def record_online(
        self,
        *,
        world_id: int,
        account_id: int | None = None,
        username: str | None = None,
    ) -> None:
        """Record that an account (or legacy username) is on ``world_id``."""
        if account_id is None and not (username and username.strip()):
            raise ValueError("account_id or username is required")
        if account_id is not None:
            presence_repo.upsert_account_presence(
                account_id, world_id, username=username, now=self._clock()
            )
        else:
            presence_repo.upsert_anonymous_presence(
                username.strip().lower(), world_id, now=self._clock()
            )

    def record_offline(
        self, *, account_id: int | None = None, username: str | None = None
    ) -> bool:
        """Remove a presence entry on logout. Returns True if one existed."""
        if account_id is not None:
            return presence_repo.delete_presence_for_account(account_id)
        if username and username.strip():
            return presence_repo.delete_anonymous_presence(username.strip().lower())
        raise ValueError("account_id or username is required")

    def count(self) -> int:
        return presence_repo.count_presence()

    def list(self, window_seconds: int) -> list[dict]:
        """Entries seen within ``window_seconds``, most recent first."""
        return presence_repo.list_recent_presence(
            window_seconds, PRESENCE_LIST_LIMIT, now=self._clock()
        )
