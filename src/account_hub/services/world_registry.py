"""
World heartbeat tracking and world catalog reads.

World processes crash without notice, so the only liveness signal the hub
trusts is heartbeat recency. Two consumers read that signal with separate
timeouts: presence reclaim on the login path, and world listings shown to web
clients.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from account_hub.config import config
from account_hub.db import presence_repo, worlds_repo
from account_hub.db.constants import DEVELOPMENT_TAG
from account_hub.db.types import WorldDescriptor, WorldRecord, utc_now

logger = logging.getLogger(__name__)


class WorldNotFoundError(LookupError):
    """Raised when an operation targets a world id that is not registered."""

    def __init__(self, world_id: int) -> None:
        super().__init__(f"World {world_id} not found")
        self.world_id = world_id


class InvalidWorldDescriptorError(ValueError):
    """Raised when a registration payload fails validation."""


@dataclass(slots=True)
class WorldStatus:
    """A world as shown to listings, with liveness applied."""

    world: WorldRecord
    is_online: bool
    player_count: int


def is_stale(
    last_heartbeat: datetime | None,
    timeout_seconds: int,
    *,
    now: datetime | None = None,
) -> bool:
    """Return True when a heartbeat is missing or older than ``timeout_seconds``."""
    if last_heartbeat is None:
        return True
    return (now or utc_now()) - last_heartbeat > timedelta(seconds=timeout_seconds)


def validate_descriptor(descriptor: WorldDescriptor) -> WorldDescriptor:
    """Validate a registration payload and return it with normalized tags.

    Development worlds always carry the development tag so tag-based filters
    and flag-based filters agree.
    """
    if descriptor.world_id <= 0:
        raise InvalidWorldDescriptorError("world_id must be a positive integer")
    if not descriptor.name.strip():
        raise InvalidWorldDescriptorError("name is required")
    if not descriptor.server_url.strip():
        raise InvalidWorldDescriptorError("server_url is required")
    if descriptor.persistence_id is not None and descriptor.persistence_id <= 0:
        raise InvalidWorldDescriptorError("persistence_id must be a positive integer")

    tags = descriptor.tags
    if descriptor.is_development:
        tags = tags.with_tag(DEVELOPMENT_TAG)
    return replace(
        descriptor,
        name=descriptor.name.strip(),
        server_url=descriptor.server_url.strip(),
        tags=tags,
    )


class WorldHeartbeatTracker:
    """Registers worlds, records heartbeats and answers liveness questions.

    Args:
        clock: Returns the current aware UTC time; injectable for tests.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    def register_world(self, descriptor: WorldDescriptor) -> WorldRecord:
        """Upsert a world and stamp its heartbeat."""
        descriptor = validate_descriptor(descriptor)
        record = worlds_repo.upsert_world(
            descriptor,
            default_persistence_id=config.worlds.default_persistence_id,
            now=self._clock(),
        )
        logger.info(
            "World %s registered (persistence_id=%s, development=%s)",
            record.world_id,
            record.persistence_id,
            record.is_development,
        )
        return record

    def heartbeat(self, world_id: int) -> datetime:
        """Stamp a world's heartbeat and return the stored timestamp."""
        stamped = worlds_repo.touch_heartbeat(world_id, now=self._clock())
        if stamped is None:
            raise WorldNotFoundError(world_id)
        logger.debug("Heartbeat from world %s", world_id)
        return stamped

    def is_stale(self, last_heartbeat: datetime | None, timeout_seconds: int) -> bool:
        return is_stale(last_heartbeat, timeout_seconds, now=self._clock())

    def is_world_stale(self, world_id: int) -> bool:
        """Apply the presence-reclaim timeout to a world; unknown worlds are stale."""
        return self.is_stale(
            worlds_repo.get_last_heartbeat(world_id),
            config.worlds.presence_timeout_seconds,
        )

    def list_worlds(self, *, include_inactive: bool = False) -> list[WorldStatus]:
        """List worlds visible in the current environment.

        Player counts of worlds whose heartbeat is older than the listing
        timeout are reported as 0 because their presence rows can no longer be
        trusted.
        """
        worlds = worlds_repo.list_worlds(
            include_development=config.include_development_worlds,
            include_inactive=include_inactive,
        )
        counts = presence_repo.counts_by_world()
        return [self._status(world, counts) for world in worlds]

    def get_world(self, world_id: int) -> WorldStatus:
        """Return one world visible in the current environment."""
        world = worlds_repo.get_world(
            world_id, include_development=config.include_development_worlds
        )
        if world is None:
            raise WorldNotFoundError(world_id)
        return self._status(world, presence_repo.counts_by_world())

    def find_login_world(self, world_id: int) -> WorldRecord | None:
        """Return an active world a player may log into, or ``None``."""
        return worlds_repo.get_world(
            world_id,
            include_development=config.include_development_worlds,
            active_only=True,
        )

    def resolve_persistence_id(
        self,
        *,
        world_id: int | None = None,
        persistence_id: int | None = None,
    ) -> int:
        """Resolve the persistence group for a request.

        An explicit positive ``persistence_id`` wins. Otherwise the group of
        ``world_id`` (or the configured default world) is used, and the
        configured default group when that world is unknown.
        """
        if persistence_id is not None and persistence_id > 0:
            return persistence_id
        if world_id is None or world_id <= 0:
            world_id = config.worlds.default_world_id
        world = worlds_repo.get_world(world_id)
        if world is None:
            return config.worlds.default_persistence_id
        return world.persistence_id

    def _status(self, world: WorldRecord, counts: dict[int, int]) -> WorldStatus:
        online = not self.is_stale(world.last_heartbeat, config.worlds.listing_timeout_seconds)
        return WorldStatus(
            world=world,
            is_online=online,
            player_count=counts.get(world.world_id, 0) if online else 0,
        )
