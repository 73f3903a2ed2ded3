"""Online presence endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from account_hub.api.models import (
    OnlineCountResponse,
    OnlineUser,
    OnlineUsersResponse,
    PresenceRemoveRequest,
    PresenceUpdateRequest,
    SuccessResponse,
)
from account_hub.api.security import require_game_server_secret, require_web_secret
from account_hub.db.errors import DatabaseError
from account_hub.db.types import format_timestamp
from account_hub.services.hub import AccountHub

logger = logging.getLogger(__name__)

# Listings only show players seen in the last five minutes.
ONLINE_LIST_WINDOW_SECONDS = 300


def router(hub: AccountHub) -> APIRouter:
    """Build the presence router."""
    api = APIRouter(prefix="/api/online")

    @api.get(
        "/count",
        response_model=OnlineCountResponse,
        dependencies=[Depends(require_web_secret)],
    )
    def online_count():
        try:
            return OnlineCountResponse(count=hub.presence.count())
        except DatabaseError as exc:
            logger.exception("Failed to count online players")
            raise HTTPException(status_code=500, detail="Internal server error") from exc

    @api.get(
        "/users",
        response_model=OnlineUsersResponse,
        dependencies=[Depends(require_web_secret)],
    )
    def online_users(
        window_seconds: int = Query(
            default=ONLINE_LIST_WINDOW_SECONDS, alias="windowSeconds", gt=0, le=86400
        ),
    ):
        """Players seen recently, most recent first (at most 100)."""
        try:
            rows = hub.presence.list(window_seconds)
        except DatabaseError as exc:
            logger.exception("Failed to list online players")
            raise HTTPException(status_code=500, detail="Internal server error") from exc
        return OnlineUsersResponse(
            users=[
                OnlineUser(
                    user_id=row["account_id"],
                    username=row["username"],
                    display_name=row["display_name"],
                    server_id=row["world_id"],
                    last_seen=format_timestamp(row["last_seen"]) if row["last_seen"] else None,
                )
                for row in rows
            ]
        )

    @api.post(
        "/update",
        response_model=SuccessResponse,
        dependencies=[Depends(require_game_server_secret)],
    )
    def update_presence(body: PresenceUpdateRequest):
        """Record that a player is online on a world (login or periodic refresh)."""
        try:
            hub.presence.record_online(
                world_id=body.world_id,
                account_id=body.account_id,
                username=body.username,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DatabaseError as exc:
            logger.exception("Failed to record presence on world %s", body.world_id)
            raise HTTPException(status_code=500, detail="Internal server error") from exc
        return SuccessResponse()

    @api.post(
        "/remove",
        response_model=SuccessResponse,
        dependencies=[Depends(require_game_server_secret)],
    )
    def remove_presence(body: PresenceRemoveRequest):
        """Remove a player's presence on logout."""
        try:
            removed = hub.presence.record_offline(
                account_id=body.account_id, username=body.username
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DatabaseError as exc:
            logger.exception("Failed to remove presence")
            raise HTTPException(status_code=500, detail="Internal server error") from exc
        return SuccessResponse(message=None if removed else "No presence entry")

    return api
