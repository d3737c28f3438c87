"""Scheduled jobs: fixed-interval background loops.

Each entry gets one daemon thread that sleeps `interval`, runs the job
synchronously through `JobRunner.run_now`, and repeats. The job's own runtime
is not subtracted from the sleep, so the cadence drifts by that runtime.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass

from sources_jobs.config import RETRY_CREATE_SETTINGS
from sources_jobs.jobs.base import Job
from sources_jobs.jobs.retry_create import RetryCreateJob
from sources_jobs.jobs.runner import JobRunner
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScheduledJob:
    interval: float  # seconds
    job: Job


def default_schedule() -> list[ScheduledJob]:
    # re-sends create events for applications that never became available
    return [
        ScheduledJob(interval=float(RETRY_CREATE_SETTINGS["interval_seconds"]), job=RetryCreateJob()),
    ]


class Scheduler:
    def __init__(self, runner: JobRunner, schedule: list[ScheduledJob] | None = None):
        self.runner = runner
        self.schedule = schedule if schedule is not None else default_schedule()
        self._threads: list[threading.Thread] = []
        self._stop_event = threading.Event()

    def start(self) -> None:
        logger.info("Running scheduled job threads", count=len(self.schedule))
        for entry in self.schedule:
            logger.info("Running job on interval", job=entry.job.name, interval=entry.interval)
            thread = threading.Thread(
                target=self._run_forever, args=(entry,), name=f"scheduled-{entry.job.name}", daemon=True
            )
            thread.start()
            self._threads.append(thread)

    def stop(self) -> None:
        self._stop_event.set()

    def _run_forever(self, entry: ScheduledJob) -> None:
        while not self._stop_event.wait(entry.interval):
            self.runner.run_now(entry.job)


__all__ = ["ScheduledJob", "Scheduler", "default_schedule"]
