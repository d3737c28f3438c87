"""Redis liveness tracking for the worker process health endpoint.

A background thread pings Redis every `ping_interval_seconds` and remembers
the last successful ping. The process reports unhealthy once that ping is
older than `stale_after_seconds`, so an orchestrator restarts a worker that
lost its queue.
"""
from __future__ import annotations

import threading
import time
from typing import Optional

import redis

from sources_jobs.config import HEALTH_SETTINGS, QUEUE_SETTINGS
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


class RedisHealthChecker:
    def __init__(
        self,
        redis_url: Optional[str] = None,
        interval: Optional[float] = None,
        stale_after: Optional[float] = None,
    ) -> None:
        self.redis_url = redis_url or str(QUEUE_SETTINGS.get("redis_url", "redis://localhost:6379/0"))
        self.interval = float(interval if interval is not None else HEALTH_SETTINGS["ping_interval_seconds"])
        self.stale_after = float(stale_after if stale_after is not None else HEALTH_SETTINGS["stale_after_seconds"])
        self._client: Optional[redis.Redis] = None
        self._last_success: Optional[float] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def last_success(self) -> Optional[float]:
        return self._last_success

    def check_once(self) -> bool:
        try:
            if self._client is None:
                timeout = float(QUEUE_SETTINGS.get("redis_health_check_timeout", 2.0))  # type: ignore[arg-type]
                self._client = redis.from_url(self.redis_url, socket_connect_timeout=timeout)
            self._client.ping()
        except redis.RedisError as e:
            logger.warning("Redis ping failed", error=str(e))
            return False
        self._last_success = time.monotonic()
        return True

    def is_healthy(self) -> bool:
        if self._last_success is None:
            return False
        return time.monotonic() - self._last_success <= self.stale_after

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():  # pragma: no cover
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="redis-health", daemon=True)
        self._thread.start()
        logger.info("Redis health checker started", interval=self.interval, stale_after=self.stale_after)

    def stop(self) -> None:
        self._stop_event.set()

    def _run(self) -> None:
        self.check_once()
        while not self._stop_event.wait(self.interval):
            self.check_once()


__all__ = ["RedisHealthChecker"]
