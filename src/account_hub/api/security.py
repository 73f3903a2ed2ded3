"""
Shared-secret guards for trusted callers.

Each trusted caller class (web frontend, world processes, world registration
tooling, hiscores writers) presents its own secret in a request header. A
guard whose secret is not configured refuses service in production (503) and,
in development, logs one warning and lets the call through. The hiscores
write guard never runs unsecured.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable

from fastapi import Header, HTTPException, Request

from account_hub.config import config
from account_hub.services.rate_limit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

WEB_SECRET_HEADER = "X-Web-Secret"
GAME_SERVER_SECRET_HEADER = "X-Game-Server-Secret"
WORLD_SECRET_HEADER = "X-World-Secret"
HISCORES_SECRET_HEADER = "X-Hiscores-Secret"

_warned_unsecured: set[str] = set()


def _secret_guard(
    name: str,
    setting: str,
    header: str,
    *,
    always_required: bool = False,
) -> Callable[..., None]:
    """Build a FastAPI dependency comparing ``header`` to ``config.security.<setting>``."""

    def guard(provided: str | None = Header(default=None, alias=header)) -> None:
        expected = getattr(config.security, setting)
        if not expected:
            if always_required or config.is_production:
                logger.error("%s secret is not configured; refusing request", name)
                raise HTTPException(status_code=503, detail=f"{name} secret is not configured")
            if name not in _warned_unsecured:
                _warned_unsecured.add(name)
                logger.warning(
                    "%s secret is not set; %s endpoints are unsecured (development only)",
                    name,
                    name,
                )
            return
        if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
            raise HTTPException(status_code=401, detail="Unauthorized")

    return guard


require_web_secret = _secret_guard("Web", "web_secret", WEB_SECRET_HEADER)
require_game_server_secret = _secret_guard(
    "Game server", "game_server_secret", GAME_SERVER_SECRET_HEADER
)
require_world_secret = _secret_guard(
    "World registration", "world_registration_secret", WORLD_SECRET_HEADER
)
require_hiscores_secret = _secret_guard(
    "Hiscores", "hiscores_secret", HISCORES_SECRET_HEADER, always_required=True
)


def reset_warnings() -> None:
    """Forget which unsecured-guard warnings were already logged."""
    _warned_unsecured.clear()


def client_ip(request: Request) -> str:
    """Caller address for rate limiting and token audit columns.

    Proxy headers are resolved by uvicorn (``--forwarded-allow-ips``), not here.
    """
    return request.client.host if request.client else "unknown"


def login_rate_limit(limiter: SlidingWindowRateLimiter) -> Callable[[Request], None]:
    """Build a dependency enforcing ``limiter`` per caller IP."""

    def guard(request: Request) -> None:
        if not config.rate_limit.enabled:
            return
        decision = limiter.hit(client_ip(request))
        if not decision.allowed:
            logger.warning("Login rate limit exceeded for %s", client_ip(request))
            raise HTTPException(
                status_code=429,
                detail={
                    "error": "Too many login attempts, please try again later.",
                    "retryAfter": decision.retry_after_seconds,
                },
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )

    return guard
