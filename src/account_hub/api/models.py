"""
Pydantic models for API requests and responses.

Request models reject unknown fields so malformed callers fail at the
boundary. Field aliases match the camelCase names the game client and world
processes already send (``serverId``, ``currentClientVersion``, ...); Python
code uses the snake_case attribute names.

Models are organized into two categories:
1. Request models: data sent by clients, world processes and ops tooling
2. Response models: data returned by the hub
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RequestModel(BaseModel):
    """Base for request bodies: unknown fields rejected, aliases or names accepted."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# ============================================================================
# REQUEST MODELS
# ============================================================================


class LoginTokenRequestBody(RequestModel):
    """
    Game client request for a one-time login token.

    ``server_id`` and ``current_client_version`` accept loose values because
    the client expects numeric error codes (-401, -402) for bad values rather
    than a schema validation error.
    """

    username: str | None = None
    password: str | None = None
    server_id: int | float | str | None = Field(default=None, alias="serverId")
    current_client_version: int | float | str | None = Field(
        default=None, alias="currentClientVersion"
    )


class ConsumeLoginTokenRequest(RequestModel):
    """World process request to redeem a login token."""

    token: str | None = None
    server_id: int | float | str | None = Field(default=None, alias="serverId")


class WorldRegisterRequest(RequestModel):
    """
    Ops request to register or update a world.

    Attributes:
        world_id: Stable positive world id.
        name: Display name.
        server_url: Public endpoint of the world process.
        location_name: Hosting region label.
        flag_code: Region flag code.
        persistence_id: Persistence group; omitted keeps the stored group.
        is_active: Whether the world accepts logins.
        is_development: Hidden from production listings and logins.
        tags: Free-form tags, as a list or a comma-joined string.
        sort_order: Listing order.
    """

    world_id: int = Field(alias="serverId", gt=0)
    name: str = Field(min_length=1, max_length=100)
    server_url: str = Field(alias="serverUrl", min_length=1, max_length=500)
    location_name: str = Field(default="Unknown", alias="locationName", max_length=100)
    flag_code: str = Field(default="USA", alias="flagCode", max_length=8)
    persistence_id: int | None = Field(default=None, alias="persistenceId", gt=0)
    is_active: bool = Field(default=True, alias="isActive")
    is_development: bool = Field(default=False, alias="isDevelopment")
    tags: list[str] | str | None = None
    sort_order: int = Field(default=0, alias="sortOrder")


class WorldHeartbeatRequest(RequestModel):
    world_id: int = Field(alias="serverId", gt=0)


class PresenceUpdateRequest(RequestModel):
    """World process report that a player is online on a world."""

    world_id: int = Field(alias="serverId", gt=0)
    account_id: int | None = Field(default=None, alias="userId", gt=0)
    username: str | None = Field(default=None, max_length=64)


class PresenceRemoveRequest(RequestModel):
    account_id: int | None = Field(default=None, alias="userId", gt=0)
    username: str | None = Field(default=None, max_length=64)


class RegisterRequest(RequestModel):
    """
    Web request to create an account.

    Attributes:
        username: Desired username (2-20 of ``a-z 0-9 _``, lower-cased).
        password: Desired password (minimum 8 characters).
        email: Optional email; normalized before uniqueness checks.
        display_name: Optional public name; defaults to the username.
    """

    username: str
    password: str
    email: str | None = None
    display_name: str | None = Field(default=None, alias="displayName", max_length=32)


class HiscoresRecomputeRequest(RequestModel):
    """Trusted request to recompute aggregates for accounts and ranks for a group."""

    account_ids: list[int] = Field(default_factory=list, alias="userIds")
    persistence_id: int | None = Field(default=None, alias="persistenceId")
    world_id: int | None = Field(default=None, alias="serverId")


class SkillUpdateItem(RequestModel):
    slug: str = Field(min_length=1)
    level: int = Field(ge=0)
    experience: int = Field(ge=0)


class HiscoresUpdateRequest(RequestModel):
    """Trusted bulk skill upsert for one account, followed by rank refresh."""

    account_id: int = Field(alias="userId", gt=0)
    skills: list[SkillUpdateItem]
    persistence_id: int | None = Field(default=None, alias="persistenceId")
    world_id: int | None = Field(default=None, alias="serverId")


# ============================================================================
# RESPONSE MODELS
# ============================================================================


class ResponseModel(BaseModel):
    """Base for response bodies: built from field names, serialized by alias."""

    model_config = ConfigDict(populate_by_name=True)


class ConsumeLoginTokenResponse(ResponseModel):
    success: bool = True
    user: dict[str, Any]
    server_id: int = Field(alias="serverId")
    client_version: int = Field(alias="clientVersion")


class WorldResponse(ResponseModel):
    """One world as shown to web clients."""

    server_id: int = Field(alias="serverId")
    name: str
    location_name: str = Field(alias="locationName")
    flag_code: str = Field(alias="flagCode")
    server_url: str = Field(alias="serverUrl")
    persistence_id: int = Field(alias="persistenceId")
    is_active: bool = Field(alias="isActive")
    is_development: bool = Field(alias="isDevelopment")
    tags: list[str]
    sort_order: int = Field(alias="sortOrder")
    is_online: bool = Field(alias="isOnline")
    player_count: int = Field(alias="playerCount")
    last_heartbeat: str | None = Field(default=None, alias="lastHeartbeat")


class WorldListResponse(ResponseModel):
    worlds: list[WorldResponse]


class HeartbeatResponse(ResponseModel):
    success: bool = True
    server_id: int = Field(alias="serverId")
    last_heartbeat: str = Field(alias="lastHeartbeat")


class OnlineCountResponse(ResponseModel):
    count: int


class OnlineUser(ResponseModel):
    user_id: int | None = Field(alias="userId")
    username: str | None
    display_name: str | None = Field(alias="displayName")
    server_id: int = Field(alias="serverId")
    last_seen: str | None = Field(alias="lastSeen")


class OnlineUsersResponse(ResponseModel):
    users: list[OnlineUser]


class SuccessResponse(ResponseModel):
    success: bool = True
    message: str | None = None


class RegisterResponse(ResponseModel):
    success: bool
    message: str
    user_id: int | None = Field(default=None, alias="userId")


class SkillResponse(ResponseModel):
    id: int
    slug: str
    title: str
    icon_position: str | None = Field(alias="iconPosition")
    display_order: int = Field(alias="displayOrder")


class SkillListResponse(ResponseModel):
    skills: list[SkillResponse]


class HiscoresEntry(ResponseModel):
    rank: int
    user_id: int = Field(alias="userId")
    username: str
    display_name: str = Field(alias="displayName")
    level: int
    experience: str


class HiscoresPageResponse(ResponseModel):
    items: list[HiscoresEntry]
    total: int
    page: int
    limit: int


class PlayerStat(ResponseModel):
    skill: str
    rank: int | None
    level: int | None
    experience: str | None


class PlayerProfileResponse(ResponseModel):
    player: dict[str, Any]
    stats: list[PlayerStat]


class HiscoresRecomputeResponse(ResponseModel):
    success: bool = True
    overall_recomputed: int = Field(alias="overallRecomputed")
    skills_ranked: int = Field(alias="skillsRanked")
