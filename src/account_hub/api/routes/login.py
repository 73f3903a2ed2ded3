"""Login token endpoints: issued to game clients, redeemed by world processes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from account_hub.api.models import (
    ConsumeLoginTokenRequest,
    ConsumeLoginTokenResponse,
    LoginTokenRequestBody,
)
from account_hub.api.security import client_ip, login_rate_limit, require_game_server_secret
from account_hub.services.hub import AccountHub
from account_hub.services.login_tokens import LoginTokenRequest

logger = logging.getLogger(__name__)

CONSUME_STATUS = {
    "invalid_token": 400,
    "invalid_world_id": 400,
    "token_not_found": 404,
    "world_mismatch": 401,
    "already_used": 401,
    "expired": 401,
    "database_not_migrated": 503,
    "internal_error": 500,
}


def router(hub: AccountHub) -> APIRouter:
    """Build the login router."""
    api = APIRouter()

    @api.post("/getLoginToken", dependencies=[Depends(login_rate_limit(hub.login_limiter))])
    def get_login_token(body: LoginTokenRequestBody, http_request: Request):
        """
        Issue a one-time login token for the game client.

        Failures keep HTTP 200 and report ``{code, msg}``; the game client
        branches on the numeric code.
        """
        result = hub.issuer.issue(
            LoginTokenRequest(
                username=body.username,
                password=body.password,
                world_id=body.server_id,
                client_version=body.current_client_version,
                ip=client_ip(http_request),
                user_agent=http_request.headers.get("user-agent"),
            )
        )
        if not result.success:
            logger.info("Login token refused: %s (%s)", result.reason, result.code)
        return result.to_payload()

    @api.post(
        "/api/game/consumeLoginToken",
        response_model=ConsumeLoginTokenResponse,
        dependencies=[Depends(require_game_server_secret)],
    )
    def consume_login_token(body: ConsumeLoginTokenRequest):
        """Redeem a login token exactly once for the world that requested it."""
        result = hub.consumer.consume(body.token, body.server_id)
        if not result.success:
            raise HTTPException(status_code=CONSUME_STATUS[result.reason], detail=result.message)
        return ConsumeLoginTokenResponse(
            user=result.account,
            server_id=result.world_id,
            client_version=result.client_version,
        )

    return api
