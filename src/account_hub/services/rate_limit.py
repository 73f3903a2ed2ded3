"""In-memory sliding-window rate limiter for the public login endpoint."""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per identifier in any ``window_seconds`` span.

    State is per process; multiple server workers each enforce their own
    window.
    """

    def __init__(
        self,
        *,
        window_seconds: float,
        max_requests: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0 or max_requests <= 0:
            raise ValueError("window_seconds and max_requests must be positive")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, identifier: str) -> RateLimitDecision:
        """Record one request for ``identifier`` unless it is over the limit."""
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(identifier, deque())
            while hits and now - hits[0] >= self.window_seconds:
                hits.popleft()
            if len(hits) >= self.max_requests:
                retry_after = math.ceil(self.window_seconds - (now - hits[0]))
                return RateLimitDecision(
                    allowed=False, remaining=0, retry_after_seconds=max(1, retry_after)
                )
            hits.append(now)
            return RateLimitDecision(allowed=True, remaining=self.max_requests - len(hits))

    def prune(self) -> int:
        """Drop identifiers with no hits inside the window; returns how many."""
        now = self._clock()
        with self._lock:
            expired = [
                key
                for key, hits in self._hits.items()
                if not hits or now - hits[-1] >= self.window_seconds
            ]
            for key in expired:
                del self._hits[key]
            return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
