"""Redis-backed durable job queue.

Features:
- FIFO: producers RPUSH dispatch envelopes onto the tail of a Redis list,
  consumers BLPOP from its head.
- Persistence across worker restarts. A redelivered job restarts its delay
  from zero; the delay is applied by the consuming worker, not stored here.
- Thread-safe operations.
- Fallback to the in-process delay queue if Redis is unavailable at enqueue time.

Data structures in Redis:
 1. List: QUEUE_SETTINGS["work_queue"] (default `sources_api_jobs`) of
    serialized DispatchEnvelope documents.

Redis health check is performed before operations with fallback to the
in-memory queue.
"""
from __future__ import annotations

import threading
from typing import Any, Optional
import redis

from sources_jobs.config import QUEUE_SETTINGS
from sources_jobs.jobs.base import Job
from sources_jobs.jobs.envelope import DispatchEnvelope
from sources_jobs.jobs.queue import DelayQueue
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


class RedisJobQueue:
    def __init__(self, fallback_queue: Optional[DelayQueue] = None) -> None:
        self._redis_url: str = str(QUEUE_SETTINGS.get("redis_url", "redis://localhost:6379/0"))
        self._work_key: str = str(QUEUE_SETTINGS.get("work_queue", "sources_api_jobs"))
        self._health_check_timeout = float(QUEUE_SETTINGS.get("redis_health_check_timeout", 2.0))  # type: ignore[arg-type]
        self._warn_depth = int(QUEUE_SETTINGS.get("warn_depth", 1000))  # type: ignore[arg-type]

        # In-process fallback; the worker drains it exactly like its local queue
        self._fallback_queue = fallback_queue if fallback_queue is not None else DelayQueue()

        self._redis_client: Optional[redis.Redis] = None
        self._lock = threading.RLock()
        self._is_redis_active = False
        self._shutdown = False
        self._init_redis_client()

    @property
    def work_key(self) -> str:
        return self._work_key

    @property
    def fallback_queue(self) -> DelayQueue:
        return self._fallback_queue

    def _init_redis_client(self) -> None:
        """Initialize Redis client and test connection."""
        try:
            self._redis_client = redis.from_url(
                self._redis_url, socket_connect_timeout=self._health_check_timeout
            )
            self._redis_client.ping()
            self._is_redis_active = True
            logger.info("Connected to Redis successfully", url=self._redis_url, queue=self._work_key)
        except (redis.RedisError, ConnectionError) as e:
            self._is_redis_active = False
            self._redis_client = None
            logger.warning("Failed to connect to Redis, using in-memory fallback queue", error=str(e))

    def health_check(self) -> bool:
        """Check if Redis is available and update status accordingly."""
        with self._lock:
            if self._redis_client is None:
                self._init_redis_client()
                return self._is_redis_active

            try:
                self._redis_client.ping()
                if not self._is_redis_active:
                    logger.info("Redis connection restored")
                self._is_redis_active = True
                return True
            except (redis.RedisError, ConnectionError) as e:
                if self._is_redis_active:
                    logger.warning("Redis connection lost, using in-memory fallback queue", error=str(e))
                self._is_redis_active = False
                return False

    def enqueue(self, job: Job) -> bool:
        """Push a job onto the durable list.

        Returns True when the job landed in Redis, False when it was placed on
        the in-process fallback queue instead.
        """
        with self._lock:
            if self._shutdown:
                raise RuntimeError("Queue shutdown")

            envelope = DispatchEnvelope.for_job(job)
            if not self.health_check() or self._redis_client is None:
                logger.warning("Redis unavailable, falling back to in-memory queue", job=job.name)
                self._fallback_queue.enqueue(job, delay_seconds=job.delay())
                return False

            try:
                self._redis_client.rpush(self._work_key, envelope.to_bytes())
                logger.info("Submitted job to redis", job=job.name, args=job.arguments(), queue=self._work_key)
                queue_depth = self.depth()
                if queue_depth >= self._warn_depth:
                    logger.warning("Queue depth warning", depth=queue_depth)
                return True
            except redis.RedisError as e:
                logger.error("Redis error during enqueue", job=job.name, error=str(e))
                self._is_redis_active = False
                self._fallback_queue.enqueue(job, delay_seconds=job.delay())
                return False

    def requeue_raw(self, raw: bytes) -> None:
        """Put an already-serialized envelope back on the tail of the list."""
        if self._redis_client is None:
            raise redis.ConnectionError("Redis client not initialized")
        self._redis_client.rpush(self._work_key, raw)

    def pop(self, *, block: bool = True, timeout: Optional[float] = None) -> Optional[bytes]:
        """Pop the next raw envelope, or None on timeout / empty list.

        Raises redis.RedisError so the consumer loop can log and back off.
        """
        if self._redis_client is None and not self.health_check():
            raise redis.ConnectionError("Redis unavailable")
        client = self._redis_client
        if client is None:
            raise redis.ConnectionError("Redis client not initialized")
        if block:
            wait = int(timeout if timeout is not None else QUEUE_SETTINGS.get("redis_pop_timeout", 5))  # type: ignore[arg-type]
            result = client.blpop([self._work_key], timeout=max(wait, 1))
            if result is None:
                return None
            if not isinstance(result, (list, tuple)) or len(result) != 2:
                logger.warning("Unexpected result type from blpop", result_type=type(result).__name__)
                return None
            _, value = result
        else:
            value = client.lpop(self._work_key)
            if value is None:
                return None
        return value if isinstance(value, bytes) else str(value).encode("utf-8")

    def shutdown(self) -> None:
        with self._lock:
            self._shutdown = True

    def purge(self) -> None:
        """Remove all queued jobs (for testing)."""
        with self._lock:
            self._fallback_queue.purge()
            if not self.health_check() or self._redis_client is None:
                return
            try:
                self._redis_client.delete(self._work_key)
                logger.info("Redis queue purged", queue=self._work_key)
            except redis.RedisError as e:
                logger.error("Error purging Redis queue", error=str(e))
                self._is_redis_active = False

    @staticmethod
    def _safe_int_conversion(value: Any) -> int:
        if value is None:
            return 0
        try:
            if isinstance(value, bytes):
                value = value.decode('utf-8')
            return int(value)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Failed to convert redis reply to int", reply_type=type(value).__name__, error=str(e))
            return 0

    def depth(self) -> int:
        """Number of envelopes waiting in Redis (fallback queue when Redis is down)."""
        with self._lock:
            if not self._is_redis_active or self._redis_client is None:
                return self._fallback_queue.depth()
            try:
                return self._safe_int_conversion(self._redis_client.llen(self._work_key))
            except redis.RedisError as e:
                logger.error("Error getting queue depth", error=str(e))
                self._is_redis_active = False
                return self._fallback_queue.depth()

    def __len__(self) -> int:
        return self.depth()

    def snapshot(self) -> dict:
        with self._lock:
            if not self.health_check() or self._redis_client is None:
                snapshot = self._fallback_queue.snapshot()
                snapshot["redis_active"] = False
                return snapshot
            return {
                "depth": self.depth(),
                "queue": self._work_key,
                "shutdown": self._shutdown,
                "redis_active": True,
                "redis_url": self._redis_url,
                "fallback_depth": self._fallback_queue.depth(),
            }


__all__ = ["RedisJobQueue"]
