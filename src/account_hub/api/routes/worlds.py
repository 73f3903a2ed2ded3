"""World catalog, registration and heartbeat endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from account_hub.api.models import (
    HeartbeatResponse,
    WorldHeartbeatRequest,
    WorldListResponse,
    WorldRegisterRequest,
    WorldResponse,
)
from account_hub.api.security import (
    require_game_server_secret,
    require_web_secret,
    require_world_secret,
)
from account_hub.db.errors import DatabaseError
from account_hub.db.types import WorldDescriptor, WorldRecord, WorldTags, format_timestamp
from account_hub.services.hub import AccountHub
from account_hub.services.world_registry import (
    InvalidWorldDescriptorError,
    WorldNotFoundError,
    WorldStatus,
)

logger = logging.getLogger(__name__)


def _world_response(world: WorldRecord, *, is_online: bool, player_count: int) -> WorldResponse:
    return WorldResponse(
        server_id=world.world_id,
        name=world.name,
        location_name=world.location_name,
        flag_code=world.flag_code,
        server_url=world.server_url,
        persistence_id=world.persistence_id,
        is_active=world.is_active,
        is_development=world.is_development,
        tags=list(world.tags),
        sort_order=world.sort_order,
        is_online=is_online,
        player_count=player_count,
        last_heartbeat=format_timestamp(world.last_heartbeat) if world.last_heartbeat else None,
    )


def _status_response(status: WorldStatus) -> WorldResponse:
    return _world_response(
        status.world, is_online=status.is_online, player_count=status.player_count
    )


def router(hub: AccountHub) -> APIRouter:
    """Build the worlds router."""
    api = APIRouter(prefix="/api/worlds")

    @api.get(
        "",
        response_model=WorldListResponse,
        dependencies=[Depends(require_web_secret)],
    )
    def list_worlds(include_inactive: bool = Query(default=False, alias="includeInactive")):
        """List worlds visible in this environment with liveness applied."""
        try:
            statuses = hub.tracker.list_worlds(include_inactive=include_inactive)
        except DatabaseError as exc:
            logger.exception("Failed to list worlds")
            raise HTTPException(status_code=500, detail="Internal server error") from exc
        return WorldListResponse(worlds=[_status_response(status) for status in statuses])

    @api.post(
        "/register",
        response_model=WorldResponse,
        dependencies=[Depends(require_world_secret)],
    )
    def register_world(body: WorldRegisterRequest):
        """Register or update a world and stamp its heartbeat."""
        descriptor = WorldDescriptor(
            world_id=body.world_id,
            name=body.name,
            server_url=body.server_url,
            location_name=body.location_name,
            flag_code=body.flag_code,
            persistence_id=body.persistence_id,
            is_active=body.is_active,
            is_development=body.is_development,
            tags=WorldTags.normalize(body.tags),
            sort_order=body.sort_order,
        )
        try:
            record = hub.tracker.register_world(descriptor)
        except InvalidWorldDescriptorError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DatabaseError as exc:
            logger.exception("Failed to register world %s", body.world_id)
            raise HTTPException(status_code=500, detail="Internal server error") from exc
        return _world_response(record, is_online=True, player_count=0)

    @api.post(
        "/heartbeat",
        response_model=HeartbeatResponse,
        dependencies=[Depends(require_game_server_secret)],
    )
    def heartbeat(body: WorldHeartbeatRequest):
        """Record a liveness heartbeat from a world process."""
        try:
            stamped = hub.tracker.heartbeat(body.world_id)
        except WorldNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except DatabaseError as exc:
            logger.exception("Failed to record heartbeat for world %s", body.world_id)
            raise HTTPException(status_code=500, detail="Internal server error") from exc
        return HeartbeatResponse(server_id=body.world_id, last_heartbeat=format_timestamp(stamped))

    @api.get(
        "/{world_id}",
        response_model=WorldResponse,
        dependencies=[Depends(require_web_secret)],
    )
    def get_world(world_id: int):
        try:
            status = hub.tracker.get_world(world_id)
        except WorldNotFoundError as exc:
            raise HTTPException(status_code=404, detail="World not found") from exc
        except DatabaseError as exc:
            logger.exception("Failed to load world %s", world_id)
            raise HTTPException(status_code=500, detail="Internal server error") from exc
        return _status_response(status)

    return api
