"""Background worker pool for processing jobs.

A fixed number of worker threads drain the local DelayQueue, which only hands
out jobs whose delay has elapsed. In Redis mode one extra consumer thread pops
envelopes off the durable list, rebuilds the job through the registry and
feeds it into the local queue with the job's delay; unknown or unreadable
envelopes are logged and dropped.
"""
from __future__ import annotations

import threading
import time
from typing import Optional

import redis

from sources_jobs.config import QUEUE_SETTINGS
from sources_jobs.jobs import async_destroy, superkey_destroy  # noqa: F401  registers job variants
from sources_jobs.jobs.dispatcher import JobDispatcher
from sources_jobs.jobs.envelope import DispatchEnvelope
from sources_jobs.jobs.errors import FatalJobError, QueueFullError
from sources_jobs.jobs.queue import DelayQueue
from sources_jobs.jobs.redis_queue import RedisJobQueue
from sources_jobs.jobs.runner import JobRunner
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


class JobWorker:
    def __init__(
        self,
        queue: DelayQueue,
        runner: JobRunner,
        *,
        durable_queue: Optional[RedisJobQueue] = None,
        pool_size: Optional[int] = None,
        poll_timeout: Optional[float] = None,
    ):
        self.queue = queue
        self.runner = runner
        self.durable_queue = durable_queue
        self.pool_size = int(pool_size or QUEUE_SETTINGS.get("worker_pool_size", 4))  # type: ignore[arg-type]
        self.poll_timeout = float(poll_timeout if poll_timeout is not None else QUEUE_SETTINGS.get("poll_timeout", 1.0))  # type: ignore[arg-type]
        self._threads: list[threading.Thread] = []
        self._stop_event = threading.Event()

    def start(self) -> None:
        if any(t.is_alive() for t in self._threads):  # pragma: no cover
            return
        self._stop_event.clear()
        self._threads = [
            threading.Thread(target=self._loop, name=f"job-worker-{i}", daemon=True)
            for i in range(self.pool_size)
        ]
        if self.durable_queue is not None:
            self._threads.append(
                threading.Thread(target=self._consume_durable, name="job-redis-consumer", daemon=True)
            )
        for thread in self._threads:
            thread.start()
        logger.info(
            "Job worker started",
            pool_size=self.pool_size,
            durable_queue=self.durable_queue.work_key if self.durable_queue else None,
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        logger.info("Job worker stop requested")
        if timeout is not None:
            for thread in self._threads:
                thread.join(timeout=timeout)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                job = self.queue.dequeue(timeout=self.poll_timeout)
                if job is None:
                    continue
                self.runner.execute(job)
            except Exception as e:  # pragma: no cover - keeps the pool thread alive
                logger.error("Worker loop error", error=str(e), exc_info=True)
                time.sleep(1)

    def _consume_durable(self) -> None:
        assert self.durable_queue is not None
        logger.info("Listening to redis queue", queue=self.durable_queue.work_key)
        while not self._stop_event.is_set():
            try:
                raw = self.durable_queue.pop(timeout=QUEUE_SETTINGS.get("redis_pop_timeout", 5))  # type: ignore[arg-type]
            except redis.RedisError as e:
                logger.warning("Failed to pop job from queue", error=str(e))
                time.sleep(1)
                continue
            if raw is None:
                continue
            self.handle_envelope(raw)

    def handle_envelope(self, raw: bytes) -> bool:
        """Parse one raw envelope and schedule it locally. Returns True if scheduled."""
        try:
            job = DispatchEnvelope.from_bytes(raw).parse()
        except FatalJobError as e:
            logger.warning("Failed to unmarshal job from redis, dropping", error=str(e))
            return False
        try:
            # Redelivered jobs restart their delay from zero
            self.queue.enqueue(job, delay_seconds=job.delay())
        except QueueFullError as e:
            logger.error("Local queue full, returning job to redis", job=job.name, error=str(e))
            if self.durable_queue is not None:
                try:
                    self.durable_queue.requeue_raw(raw)
                except redis.RedisError as re:
                    logger.error("Failed to return job to redis, job lost", job=job.name, error=str(re))
            return False
        logger.info("Scheduled job from redis", job=job.name, args=job.arguments(), delay=job.delay())
        return True


def create_dispatcher() -> JobDispatcher:
    """Create the process-wide dispatcher based on configuration."""
    local_queue = DelayQueue()
    use_redis = bool(QUEUE_SETTINGS.get("use_redis", False))

    if use_redis:
        # Kept while Redis is down; pop() reconnects
        durable_queue = RedisJobQueue(fallback_queue=local_queue)
        if not durable_queue.health_check():
            logger.warning("Redis unreachable at startup, consumer will keep retrying", queue=durable_queue.work_key)
        logger.info("Using Redis-backed job queue", queue=durable_queue.work_key)
        return JobDispatcher(local_queue, durable_queue)

    logger.info("Using in-memory job queue")
    return JobDispatcher(local_queue)


__all__ = ["JobWorker", "create_dispatcher"]
