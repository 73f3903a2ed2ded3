"""Shared DB-layer dataclasses and value types for repository contracts."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime to the fixed-width UTC text stored in SQLite.

    Naive datetimes are assumed to already be UTC. The fixed width keeps
    lexicographic comparison in SQL equivalent to chronological comparison.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse stored timestamp text back into an aware UTC datetime."""
    if not value:
        return None
    try:
        parsed = datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        # Rows written by SQLite's CURRENT_TIMESTAMP carry no fractional part.
        parsed = datetime.strptime(value, "%Y-%m-%d %H:%M:%S")
    return parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class WorldTags:
    """
    Normalized set of world tags.

    Tags are trimmed, case-folded and de-duplicated while preserving first-seen
    order. Storage uses a comma-joined string; that encoding is confined to
    :meth:`from_storage` and :meth:`to_storage`.
    """

    values: tuple[str, ...] = ()

    @classmethod
    def normalize(cls, raw: str | Iterable[str] | None) -> WorldTags:
        """Build tags from a comma-joined string, an iterable, or ``None``."""
        if raw is None:
            items: Iterable[str] = ()
        elif isinstance(raw, str):
            items = raw.split(",")
        else:
            items = (str(item) for item in raw)

        seen: list[str] = []
        for item in items:
            tag = item.strip().casefold()
            if tag and tag not in seen:
                seen.append(tag)
        return cls(tuple(seen))

    @classmethod
    def from_storage(cls, stored: str | None) -> WorldTags:
        return cls.normalize(stored or "")

    def to_storage(self) -> str:
        return ",".join(self.values)

    def with_tag(self, tag: str) -> WorldTags:
        """Return a copy that also carries ``tag``."""
        return WorldTags.normalize((*self.values, tag))

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and tag.strip().casefold() in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


@dataclass(slots=True)
class WorldRecord:
    """One row of the world catalog."""

    world_id: int
    name: str
    location_name: str
    flag_code: str
    server_url: str
    persistence_id: int
    is_active: bool
    is_development: bool
    tags: WorldTags
    sort_order: int
    last_heartbeat: datetime | None
    created_at: datetime | None = None


@dataclass(slots=True)
class WorldDescriptor:
    """
    Registration payload for a world.

    Attributes:
        world_id: Stable positive world identifier.
        name: Display name.
        server_url: Public websocket/http endpoint of the world process.
        location_name: Human-readable hosting region.
        flag_code: Region flag code shown by clients.
        persistence_id: Persistence group; ``None`` keeps the stored value
            (or the configured default for new worlds).
        is_active: Whether the world accepts logins.
        is_development: Development worlds are hidden in production.
        tags: Free-form tags; normalized on registration.
        sort_order: Listing order.
    """

    world_id: int
    name: str
    server_url: str
    location_name: str = "Unknown"
    flag_code: str = "USA"
    persistence_id: int | None = None
    is_active: bool = True
    is_development: bool = False
    tags: WorldTags = field(default_factory=WorldTags)
    sort_order: int = 0


@dataclass(slots=True)
class PresenceEntry:
    """Record asserting an account (or legacy username) is connected to a world."""

    id: int
    account_id: int | None
    username: str | None
    world_id: int
    last_seen: datetime | None


@dataclass(slots=True)
class LoginTokenRecord:
    """Stored single-use login token."""

    token: str
    account_id: int
    world_id: int
    client_version: int
    expires_at: datetime
    used_at: datetime | None
    created_at: datetime | None = None
    ip: str | None = None
    user_agent: str | None = None


@dataclass(slots=True)
class AccountRecord:
    """Account identity and the flags the core consults."""

    id: int
    username: str
    display_name: str | None
    email: str | None
    password_hash: str
    is_admin: bool
    ban_reason: str | None
    banned_until: datetime | None

    @property
    def is_permanently_banned(self) -> bool:
        return self.ban_reason is not None and self.banned_until is None


@dataclass(frozen=True, slots=True)
class SkillDefinition:
    """Static catalog entry for one skill."""

    id: int
    slug: str
    title: str
    icon_position: str | None
    display_order: int
    client_reference: int | None = None


@dataclass(slots=True)
class SkillCatalog:
    """Loaded skill catalog split into the aggregate and the regular skills."""

    overall: SkillDefinition
    skills: list[SkillDefinition]

    @property
    def all(self) -> list[SkillDefinition]:
        return sorted([self.overall, *self.skills], key=lambda skill: skill.display_order)

    def by_slug(self) -> dict[str, SkillDefinition]:
        return {skill.slug: skill for skill in self.all}
