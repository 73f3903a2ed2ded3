"""
Background periodic tasks with an explicit start/stop lifecycle.

The runner is owned by the FastAPI lifespan; nothing here starts on import.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from account_hub.config import config
from account_hub.db import tokens_repo, worlds_repo
from account_hub.services.ranking import RankingEngine
from account_hub.services.rate_limit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class PeriodicTask:
    """
    A callback run every ``interval_seconds`` on a daemon thread.

    Exceptions raised by the callback are logged and the loop continues.
    ``interval_seconds <= 0`` disables the task.
    """

    name: str
    interval_seconds: float
    callback: Callable[[], object]
    _stop: threading.Event = field(default_factory=threading.Event, repr=False)
    _thread: threading.Thread | None = field(default=None, repr=False)
    runs: int = 0

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> None:
        try:
            self.callback()
        except Exception:
            logger.exception("Periodic task %s failed", self.name)
        finally:
            self.runs += 1

    def start(self) -> None:
        if not self.enabled or self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"task-{self.name}", daemon=True)
        self._thread.start()
        logger.info("Started periodic task %s (every %ss)", self.name, self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.run_once()


class BackgroundTaskRunner:
    """Holds periodic tasks and starts or stops them together."""

    def __init__(self, tasks: list[PeriodicTask] | None = None) -> None:
        self.tasks: list[PeriodicTask] = list(tasks or [])

    def add(self, task: PeriodicTask) -> None:
        self.tasks.append(task)

    def start(self) -> None:
        for task in self.tasks:
            task.start()

    def stop(self) -> None:
        for task in self.tasks:
            task.stop()


def cleanup_login_tokens() -> int:
    """Delete one batch of expired or redeemed tokens."""
    deleted = tokens_repo.delete_expired_or_used(config.login_tokens.cleanup_batch_size)
    if deleted:
        logger.info("Deleted %d expired or used login tokens", deleted)
    return deleted


def recompute_all_groups() -> int:
    """Recompute aggregates and ranks for every persistence group."""
    engine = RankingEngine()
    groups = worlds_repo.list_persistence_ids()
    for persistence_id in groups:
        engine.recompute_full_group(persistence_id)
    return len(groups)


def build_default_runner(
    login_limiter: SlidingWindowRateLimiter | None = None,
) -> BackgroundTaskRunner:
    """Build the runner with the configured housekeeping tasks.

    When ``login_limiter`` is given, idle identifiers are pruned once per
    rate-limit window so the limiter does not grow with every new caller.
    """
    runner = BackgroundTaskRunner(
        [
            PeriodicTask(
                name="login-token-cleanup",
                interval_seconds=config.login_tokens.cleanup_interval_seconds,
                callback=cleanup_login_tokens,
            ),
            PeriodicTask(
                name="rank-recompute",
                interval_seconds=config.hiscores.recompute_interval_seconds,
                callback=recompute_all_groups,
            ),
        ]
    )
    if login_limiter is not None:
        runner.add(
            PeriodicTask(
                name="rate-limit-prune",
                interval_seconds=login_limiter.window_seconds,
                callback=login_limiter.prune,
            )
        )
    return runner
