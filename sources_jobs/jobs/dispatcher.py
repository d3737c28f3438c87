"""Job dispatch: where producers hand jobs off.

Two enqueue paths:
 (a) in-process: straight onto the local DelayQueue, drained by this process's
     worker pool (lost on restart).
 (b) durable: serialized into a DispatchEnvelope and RPUSHed onto the Redis
     work list, so any worker process can pick it up, even after a restart.

One dispatcher is built at startup and passed by reference to every producer
(API layer, scheduler, jobs through their JobContext).
"""
from __future__ import annotations

from typing import Optional

from sources_jobs.jobs.base import Job
from sources_jobs.jobs.queue import DelayQueue
from sources_jobs.jobs.redis_queue import RedisJobQueue
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


class JobDispatcher:
    def __init__(self, local_queue: DelayQueue, durable_queue: Optional[RedisJobQueue] = None) -> None:
        self.local_queue = local_queue
        self.durable_queue = durable_queue

    @property
    def mode(self) -> str:
        return "redis" if self.durable_queue is not None else "memory"

    def enqueue(self, job: Job) -> None:
        """Submit a job for background execution after its delay."""
        if self.durable_queue is not None:
            self.durable_queue.enqueue(job)
            return
        self.local_queue.enqueue(job, delay_seconds=job.delay())
        logger.info("Enqueued job in-process", job=job.name, args=job.arguments(), delay=job.delay())

    def snapshot(self) -> dict:
        snap = {"mode": self.mode, "local": self.local_queue.snapshot()}
        if self.durable_queue is not None:
            snap["durable"] = self.durable_queue.snapshot()
        return snap


__all__ = ["JobDispatcher"]
