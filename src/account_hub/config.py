"""
Server configuration management.

This module handles loading and accessing server configuration from multiple sources
with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The HubConfig
dataclass provides typed access to all settings.

Usage:
    from account_hub.config import config

    print(config.server.port)
    print(config.worlds.presence_timeout_seconds)
    print(config.is_production)

Environment Variable Mapping:
    HUB_HOST                      -> server.host
    HUB_PORT                      -> server.port
    HUB_ENVIRONMENT               -> security.environment
    HUB_CORS_ORIGINS              -> security.cors_origins
    HUB_WEB_SECRET                -> security.web_secret
    HUB_GAME_SERVER_SECRET        -> security.game_server_secret
    HUB_WORLD_REGISTRATION_SECRET -> security.world_registration_secret
    HUB_HISCORES_SECRET           -> security.hiscores_secret
    HUB_DB_PATH                   -> database.path
    HUB_LOG_LEVEL                 -> logging.level
    HUB_WORLD_HEARTBEAT_TIMEOUT   -> worlds.presence_timeout_seconds
    HUB_LOGIN_TOKEN_TTL           -> login_tokens.ttl_seconds
    HUB_ASSETS_MANIFEST           -> client_version.manifest_location
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"

# Hard bounds for login token lifetimes regardless of configuration.
LOGIN_TOKEN_TTL_MIN_SECONDS = 5
LOGIN_TOKEN_TTL_MAX_SECONDS = 600


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 3002


@dataclass
class SecuritySettings:
    """Security-related configuration.

    Secrets left empty are treated as "not configured". Trusted endpoints refuse
    service in production when their secret is missing and log a single warning
    in development.
    """

    environment: Literal["development", "production"] = "development"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:8887"])
    web_secret: str = ""
    game_server_secret: str = ""
    world_registration_secret: str = ""
    hiscores_secret: str = ""


@dataclass
class DatabaseSettings:
    """Database configuration."""

    path: str = "data/account_hub.db"

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to database file."""
        p = Path(self.path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed"] = "detailed"


@dataclass
class WorldSettings:
    """World liveness configuration.

    ``presence_timeout_seconds`` decides when a presence entry may be reclaimed
    by a new login; ``listing_timeout_seconds`` decides when world listings stop
    trusting a world's player count.
    """

    presence_timeout_seconds: int = 120
    listing_timeout_seconds: int = 120
    default_world_id: int = 1
    default_persistence_id: int = 1


@dataclass
class LoginTokenSettings:
    """Login token issuance configuration."""

    ttl_seconds: int = 60
    cleanup_batch_size: int = 500
    cleanup_interval_seconds: int = 300

    @property
    def effective_ttl_seconds(self) -> int:
        """TTL clamped to the supported range."""
        return max(LOGIN_TOKEN_TTL_MIN_SECONDS, min(LOGIN_TOKEN_TTL_MAX_SECONDS, self.ttl_seconds))


@dataclass
class ClientVersionSettings:
    """Published client version source."""

    manifest_location: str = "data/assetsClient.json"
    cache_ttl_seconds: int = 30
    request_timeout_seconds: float = 5.0


@dataclass
class RateLimitSettings:
    """Rate limiting configuration for the public login-token endpoint."""

    enabled: bool = True
    login_window_seconds: int = 900
    login_max_requests: int = 15


@dataclass
class HiscoresSettings:
    """Hiscores read and recompute configuration."""

    default_page_size: int = 25
    max_page_size: int = 100
    profile_min_total_level: int = 27
    recompute_interval_seconds: int = 0  # 0 = periodic recompute disabled


@dataclass
class HubConfig:
    """
    Complete server configuration.

    This is the main configuration object that aggregates all settings sections.
    Access via the module-level `config` singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    worlds: WorldSettings = field(default_factory=WorldSettings)
    login_tokens: LoginTokenSettings = field(default_factory=LoginTokenSettings)
    client_version: ClientVersionSettings = field(default_factory=ClientVersionSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    hiscores: HiscoresSettings = field(default_factory=HiscoresSettings)

    @property
    def is_production(self) -> bool:
        """Convenience property for production mode check."""
        return self.security.environment == "production"

    @property
    def include_development_worlds(self) -> bool:
        """Development worlds are only visible outside production."""
        return not self.is_production


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bool(value: str) -> bool:
    """Parse a string value to boolean."""
    return value.lower() in ("true", "yes", "1", "on", "enabled")


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string to list, stripping whitespace."""
    if not value or value.strip() == "":
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_environment(value: str) -> Literal["development", "production"] | None:
    """Map an environment label to a supported value, or None when unknown."""
    val = value.strip().lower()
    if val in ("production", "prod"):
        return "production"
    if val in ("development", "dev"):
        return "development"
    return None


def _load_from_ini(parser: configparser.ConfigParser, cfg: HubConfig) -> None:
    """Load configuration from parsed INI file into HubConfig."""
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    if parser.has_section("security"):
        if parser.has_option("security", "environment"):
            env = _parse_environment(parser.get("security", "environment"))
            if env:
                cfg.security.environment = env
        if parser.has_option("security", "cors_origins"):
            cfg.security.cors_origins = _parse_list(parser.get("security", "cors_origins"))
        for secret in (
            "web_secret",
            "game_server_secret",
            "world_registration_secret",
            "hiscores_secret",
        ):
            if parser.has_option("security", secret):
                setattr(cfg.security, secret, parser.get("security", secret).strip())

    if parser.has_section("database"):
        if parser.has_option("database", "path"):
            cfg.database.path = parser.get("database", "path")

    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed"):
                cfg.logging.format = val  # type: ignore[assignment]

    if parser.has_section("worlds"):
        for option in (
            "presence_timeout_seconds",
            "listing_timeout_seconds",
            "default_world_id",
            "default_persistence_id",
        ):
            if parser.has_option("worlds", option):
                setattr(cfg.worlds, option, parser.getint("worlds", option))

    if parser.has_section("login_tokens"):
        for option in ("ttl_seconds", "cleanup_batch_size", "cleanup_interval_seconds"):
            if parser.has_option("login_tokens", option):
                setattr(cfg.login_tokens, option, parser.getint("login_tokens", option))

    if parser.has_section("client_version"):
        if parser.has_option("client_version", "manifest_location"):
            cfg.client_version.manifest_location = parser.get(
                "client_version", "manifest_location"
            ).strip()
        if parser.has_option("client_version", "cache_ttl_seconds"):
            cfg.client_version.cache_ttl_seconds = parser.getint(
                "client_version", "cache_ttl_seconds"
            )
        if parser.has_option("client_version", "request_timeout_seconds"):
            cfg.client_version.request_timeout_seconds = parser.getfloat(
                "client_version", "request_timeout_seconds"
            )

    if parser.has_section("rate_limit"):
        if parser.has_option("rate_limit", "enabled"):
            cfg.rate_limit.enabled = _parse_bool(parser.get("rate_limit", "enabled"))
        if parser.has_option("rate_limit", "login_window_seconds"):
            cfg.rate_limit.login_window_seconds = parser.getint(
                "rate_limit", "login_window_seconds"
            )
        if parser.has_option("rate_limit", "login_max_requests"):
            cfg.rate_limit.login_max_requests = parser.getint("rate_limit", "login_max_requests")

    if parser.has_section("hiscores"):
        for option in (
            "default_page_size",
            "max_page_size",
            "profile_min_total_level",
            "recompute_interval_seconds",
        ):
            if parser.has_option("hiscores", option):
                setattr(cfg.hiscores, option, parser.getint("hiscores", option))


def _apply_env_overrides(cfg: HubConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_host := os.getenv("HUB_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("HUB_PORT"):
        cfg.server.port = int(env_port)

    if env_environment := os.getenv("HUB_ENVIRONMENT"):
        env = _parse_environment(env_environment)
        if env:
            cfg.security.environment = env
    if env_cors := os.getenv("HUB_CORS_ORIGINS"):
        cfg.security.cors_origins = _parse_list(env_cors)
    if env_web_secret := os.getenv("HUB_WEB_SECRET"):
        cfg.security.web_secret = env_web_secret
    if env_game_secret := os.getenv("HUB_GAME_SERVER_SECRET"):
        cfg.security.game_server_secret = env_game_secret
    if env_world_secret := os.getenv("HUB_WORLD_REGISTRATION_SECRET"):
        cfg.security.world_registration_secret = env_world_secret
    if env_hiscores_secret := os.getenv("HUB_HISCORES_SECRET"):
        cfg.security.hiscores_secret = env_hiscores_secret

    if env_db := os.getenv("HUB_DB_PATH"):
        cfg.database.path = env_db

    if env_log := os.getenv("HUB_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()

    if env_timeout := os.getenv("HUB_WORLD_HEARTBEAT_TIMEOUT"):
        cfg.worlds.presence_timeout_seconds = int(env_timeout)
        cfg.worlds.listing_timeout_seconds = int(env_timeout)
    if env_ttl := os.getenv("HUB_LOGIN_TOKEN_TTL"):
        cfg.login_tokens.ttl_seconds = int(env_ttl)
    if env_manifest := os.getenv("HUB_ASSETS_MANIFEST"):
        cfg.client_version.manifest_location = env_manifest


def load_config() -> HubConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        HubConfig: Fully populated configuration object.
    """
    cfg = HubConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "HubConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton in place so modules that
    imported ``config`` keep observing current values.

    Returns:
        HubConfig: The reloaded configuration.
    """
    fresh = load_config()
    for name in fresh.__dataclass_fields__:
        setattr(config, name, getattr(fresh, name))
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Secrets are reported only as configured/not configured.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "environment": config.security.environment,
        "database_path": str(config.database.absolute_path),
        "secrets_configured": {
            "web": bool(config.security.web_secret),
            "game_server": bool(config.security.game_server_secret),
            "world_registration": bool(config.security.world_registration_secret),
            "hiscores": bool(config.security.hiscores_secret),
        },
    }


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_database:
    """
    Context manager for using a temporary test database.

    Usage:
        from account_hub.config import use_test_database

        def test_something(tmp_path):
            with use_test_database(tmp_path / "test.db"):
                schema.init_database()

    Args:
        db_path: Path to the test database file
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        """Set up test database path."""
        self.original_path = config.database.path
        config.database.path = str(self.db_path)
        return self.db_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore original database path."""
        if self.original_path is not None:
            config.database.path = self.original_path
        return None
