"""Hiscores read endpoints and trusted rank maintenance endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from account_hub.api.models import (
    HiscoresEntry,
    HiscoresPageResponse,
    HiscoresRecomputeRequest,
    HiscoresRecomputeResponse,
    HiscoresUpdateRequest,
    PlayerProfileResponse,
    PlayerStat,
    SkillListResponse,
    SkillResponse,
    SuccessResponse,
)
from account_hub.api.security import require_hiscores_secret, require_web_secret
from account_hub.db.errors import DatabaseError
from account_hub.services.hub import AccountHub
from account_hub.services.ranking import SkillCatalogError, SkillUpdate, UnknownSkillError

logger = logging.getLogger(__name__)

# The catalog is static; let callers cache it.
SKILLS_CACHE_CONTROL = "public, max-age=300"


def _internal_error(exc: Exception, message: str) -> HTTPException:
    if isinstance(exc, SkillCatalogError):
        logger.error("%s: %s", message, exc)
        return HTTPException(status_code=500, detail=str(exc))
    logger.exception(message)
    return HTTPException(status_code=500, detail="Internal server error")


def router(hub: AccountHub) -> APIRouter:
    """Build the hiscores router."""
    api = APIRouter(prefix="/api/hiscores")

    def resolve_group(world_id: int | None, persistence_id: int | None) -> int:
        return hub.tracker.resolve_persistence_id(
            world_id=world_id, persistence_id=persistence_id
        )

    @api.get(
        "/skills",
        response_model=SkillListResponse,
        dependencies=[Depends(require_web_secret)],
    )
    def list_skills(response: Response):
        try:
            catalog = hub.ranking.load_catalog()
        except (DatabaseError, SkillCatalogError) as exc:
            raise _internal_error(exc, "Failed to load skill catalog") from exc
        response.headers["Cache-Control"] = SKILLS_CACHE_CONTROL
        return SkillListResponse(
            skills=[
                SkillResponse(
                    id=skill.id,
                    slug=skill.slug,
                    title=skill.title,
                    icon_position=skill.icon_position,
                    display_order=skill.display_order,
                )
                for skill in catalog.all
            ]
        )

    @api.get(
        "/player/{name}",
        response_model=PlayerProfileResponse,
        dependencies=[Depends(require_web_secret)],
    )
    def player_profile(
        name: str,
        world_id: int | None = Query(default=None, alias="serverId", gt=0),
        persistence_id: int | None = Query(default=None, alias="persistenceId", gt=0),
    ):
        """All skills for one player, if their total level clears the visibility floor."""
        try:
            profile = hub.ranking.get_player_profile(name, resolve_group(world_id, persistence_id))
        except (DatabaseError, SkillCatalogError) as exc:
            raise _internal_error(exc, "Failed to load player profile") from exc
        if profile is None:
            raise HTTPException(status_code=404, detail="Player not found")
        return PlayerProfileResponse(
            player={
                "id": profile.account_id,
                "username": profile.username,
                "displayName": profile.display_name,
            },
            stats=[
                PlayerStat(
                    skill=stat["skill"],
                    rank=stat["rank"],
                    level=stat["level"],
                    experience=str(stat["experience"]) if stat["experience"] is not None else None,
                )
                for stat in profile.stats
            ],
        )

    @api.get(
        "/{skill}",
        response_model=HiscoresPageResponse,
        dependencies=[Depends(require_web_secret)],
    )
    def skill_hiscores(
        skill: str,
        limit: int | None = Query(default=None, gt=0),
        offset: int = Query(default=0, ge=0),
        min_level: int | None = Query(default=None, alias="minLevel"),
        exclude_username: str | None = Query(default=None, alias="excludeUsername"),
        world_id: int | None = Query(default=None, alias="serverId", gt=0),
        persistence_id: int | None = Query(default=None, alias="persistenceId", gt=0),
    ):
        """One page of a skill's hiscores, ordered by stored rank."""
        try:
            page = hub.ranking.list_hiscores(
                skill,
                resolve_group(world_id, persistence_id),
                limit=limit,
                offset=offset,
                min_level=min_level,
                exclude_username=exclude_username,
            )
        except UnknownSkillError as exc:
            raise HTTPException(status_code=404, detail="Skill not found") from exc
        except (DatabaseError, SkillCatalogError) as exc:
            raise _internal_error(exc, "Failed to load hiscores") from exc
        return HiscoresPageResponse(
            items=[
                HiscoresEntry(
                    rank=row["rank"],
                    user_id=row["account_id"],
                    username=row["username"],
                    display_name=row["display_name"],
                    level=row["level"],
                    experience=str(row["experience"]),
                )
                for row in page.items
            ],
            total=page.total,
            page=page.page,
            limit=page.limit,
        )

    @api.post(
        "/recompute",
        response_model=HiscoresRecomputeResponse,
        dependencies=[Depends(require_hiscores_secret)],
    )
    def recompute(body: HiscoresRecomputeRequest):
        """Recompute aggregates for the listed accounts, then every skill's ranks."""
        try:
            summary = hub.ranking.recompute_group(
                resolve_group(body.world_id, body.persistence_id), body.account_ids
            )
        except (DatabaseError, SkillCatalogError) as exc:
            raise _internal_error(exc, "Hiscores recompute failed") from exc
        return HiscoresRecomputeResponse(
            overall_recomputed=summary.aggregates_recomputed,
            skills_ranked=summary.skills_ranked,
        )

    @api.post(
        "/update",
        response_model=SuccessResponse,
        dependencies=[Depends(require_hiscores_secret)],
    )
    def update(body: HiscoresUpdateRequest):
        """Upsert one account's skills and refresh the touched ranks."""
        updates = [
            SkillUpdate(slug=item.slug, level=item.level, experience=item.experience)
            for item in body.skills
        ]
        try:
            hub.ranking.apply_skill_updates(
                body.account_id, resolve_group(body.world_id, body.persistence_id), updates
            )
        except UnknownSkillError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except (DatabaseError, SkillCatalogError) as exc:
            raise _internal_error(exc, "Hiscores update failed") from exc
        return SuccessResponse()

    return api
