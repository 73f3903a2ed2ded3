"""
Service container handed to every router.

Routes receive one ``AccountHub`` instead of constructing services themselves,
so tests can swap in collaborators with injected clocks or manifests.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from account_hub.config import config
from account_hub.db.types import utc_now
from account_hub.services.bootstrap import PlayerStateBootstrapper
from account_hub.services.client_version import ClientVersionService
from account_hub.services.login_tokens import LoginTokenConsumer, LoginTokenIssuer
from account_hub.services.presence import PresenceRegistry
from account_hub.services.ranking import RankingEngine
from account_hub.services.rate_limit import SlidingWindowRateLimiter
from account_hub.services.tasks import BackgroundTaskRunner, build_default_runner
from account_hub.services.world_registry import WorldHeartbeatTracker


@dataclass
class AccountHub:
    """Wired set of services sharing one clock."""

    tracker: WorldHeartbeatTracker
    presence: PresenceRegistry
    ranking: RankingEngine
    bootstrapper: PlayerStateBootstrapper
    client_versions: ClientVersionService
    issuer: LoginTokenIssuer
    consumer: LoginTokenConsumer
    login_limiter: SlidingWindowRateLimiter
    tasks: BackgroundTaskRunner = field(default_factory=BackgroundTaskRunner)

    @classmethod
    def build(
        cls,
        *,
        clock: Callable[[], datetime] = utc_now,
        client_versions: ClientVersionService | None = None,
        ranking: RankingEngine | None = None,
        tasks: BackgroundTaskRunner | None = None,
    ) -> AccountHub:
        tracker = WorldHeartbeatTracker(clock=clock)
        presence = PresenceRegistry(tracker, clock=clock)
        ranking = ranking or RankingEngine()
        bootstrapper = PlayerStateBootstrapper(ranking)
        client_versions = client_versions or ClientVersionService()
        issuer = LoginTokenIssuer(
            tracker=tracker,
            presence=presence,
            bootstrapper=bootstrapper,
            client_versions=client_versions,
            clock=clock,
        )
        login_limiter = SlidingWindowRateLimiter(
            window_seconds=config.rate_limit.login_window_seconds,
            max_requests=config.rate_limit.login_max_requests,
        )
        return cls(
            tracker=tracker,
            presence=presence,
            ranking=ranking,
            bootstrapper=bootstrapper,
            client_versions=client_versions,
            issuer=issuer,
            consumer=LoginTokenConsumer(clock=clock),
            login_limiter=login_limiter,
            tasks=tasks if tasks is not None else build_default_runner(login_limiter),
        )
