"""Executes a single job and records the outcome.

Failures are logged, never retried: the runner has no backoff and no
dead-letter list. A bounded history of recent failures is kept for the
detailed health endpoint and for tests.
"""
from __future__ import annotations

import threading
import time
from collections import deque

from sources_jobs.config import QUEUE_SETTINGS
from sources_jobs.jobs.base import Job, JobContext
from sources_jobs.jobs.errors import FatalJobError
from sources_jobs.utils import get_logger, log_performance, elapsed_ms

logger = get_logger(__name__)


class JobRunner:
    def __init__(self, context: JobContext) -> None:
        self.context = context
        self._failures: deque[dict] = deque(maxlen=int(QUEUE_SETTINGS.get("failure_history", 100)))  # type: ignore[arg-type]
        self._lock = threading.Lock()

    def run_now(self, job: Job) -> bool:
        """Synchronous bypass: wait the job's delay, then execute it on the calling thread."""
        delay = job.delay()
        if delay > 0:
            logger.info("Waiting before running job", job=job.name, delay=delay, args=job.arguments())
            time.sleep(delay)
        return self.execute(job)

    def execute(self, job: Job) -> bool:
        """Run the job immediately. Returns True on success."""
        logger.info("Running job", job=job.name, args=job.arguments())
        start = time.perf_counter()
        try:
            job.run(self.context)
        except FatalJobError as e:
            logger.warning("Dropping job after fatal error", job=job.name, args=job.arguments(), error=str(e))
            self._record_failure(job, e)
            return False
        except Exception as e:
            logger.warning(
                "Error running job", job=job.name, args=job.arguments(), error=str(e), exc_info=True
            )
            self._record_failure(job, e)
            return False
        finally:
            log_performance(job.name, elapsed_ms(start), {"args": job.arguments()})
        logger.info("Finished job", job=job.name, args=job.arguments())
        return True

    def _record_failure(self, job: Job, error: Exception) -> None:
        with self._lock:
            self._failures.append({
                "job": job.name,
                "args": job.arguments(),
                "error": str(error),
                "type": type(error).__name__,
                "at": time.time(),
            })

    def recent_failures(self) -> list[dict]:
        with self._lock:
            return list(self._failures)


__all__ = ["JobRunner"]
