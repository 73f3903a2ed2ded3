"""
Latest published client version, read from the asset manifest.

The manifest is either a local JSON file or an ``http(s)`` URL. The value is
cached for a short TTL; callers racing on an expired cache share one load.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import requests

from account_hub.config import PROJECT_ROOT, config

logger = logging.getLogger(__name__)


def parse_latest_client_version(manifest: Any) -> int | None:
    """Extract ``data.latestClientVersion`` as a positive int, else ``None``."""
    if not isinstance(manifest, dict):
        return None
    data = manifest.get("data")
    if not isinstance(data, dict):
        return None
    value = data.get("latestClientVersion")
    if isinstance(value, bool):
        return None
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, str) and value.strip().isdigit() and int(value) > 0:
        return int(value)
    return None


class ClientVersionService:
    """TTL-cached accessor for the latest published client version.

    Args:
        manifest_location: Path or URL of the manifest. Relative paths resolve
            against the project root.
        cache_ttl_seconds: How long a loaded value (including ``None``) is reused.
        request_timeout_seconds: Timeout for remote manifests.
        clock: Monotonic clock; injectable for tests.
    """

    def __init__(
        self,
        manifest_location: str | None = None,
        *,
        cache_ttl_seconds: float | None = None,
        request_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.manifest_location = (
            manifest_location
            if manifest_location is not None
            else config.client_version.manifest_location
        )
        self.cache_ttl_seconds = (
            cache_ttl_seconds
            if cache_ttl_seconds is not None
            else config.client_version.cache_ttl_seconds
        )
        self.request_timeout_seconds = (
            request_timeout_seconds
            if request_timeout_seconds is not None
            else config.client_version.request_timeout_seconds
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: int | None = None
        self._loaded_at: float | None = None

    def get_latest(self) -> int | None:
        """Return the latest client version, or ``None`` when unavailable."""
        with self._lock:
            now = self._clock()
            if self._loaded_at is not None and now - self._loaded_at < self.cache_ttl_seconds:
                return self._cached
            self._cached = self._load()
            self._loaded_at = now
            return self._cached

    def invalidate(self) -> None:
        with self._lock:
            self._loaded_at = None
            self._cached = None

    def _load(self) -> int | None:
        location = (self.manifest_location or "").strip()
        if not location:
            return None
        if location.startswith(("http://", "https://")):
            return self._load_remote(location)
        return self._load_local(location)

    def _load_remote(self, url: str) -> int | None:
        try:
            response = requests.get(url, timeout=self.request_timeout_seconds)
            if response.status_code != 200:
                logger.warning("Asset manifest returned HTTP %s", response.status_code)
                return None
            return parse_latest_client_version(response.json())
        except requests.exceptions.RequestException as exc:
            logger.warning("Asset manifest request failed: %s", exc)
            return None
        except ValueError:
            logger.warning("Asset manifest returned invalid JSON")
            return None

    def _load_local(self, location: str) -> int | None:
        path = Path(location)
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        try:
            with path.open(encoding="utf-8") as handle:
                return parse_latest_client_version(json.load(handle))
        except FileNotFoundError:
            logger.debug("Asset manifest %s not found; client version check disabled", path)
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read asset manifest %s: %s", path, exc)
            return None
