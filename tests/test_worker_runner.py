import threading
import time
from dataclasses import dataclass, field
from typing import Any

from sources_jobs.jobs.base import Job
from sources_jobs.jobs.errors import InvalidResourceKindError
from sources_jobs.jobs.runner import JobRunner
from sources_jobs.jobs.worker import JobWorker


@dataclass
class RecordingJob(Job):
    """In-process test job; records when it ran."""

    name = "RecordingJob"

    label: str = "job"
    wait: float = 0.0
    fail: bool = False
    fatal: bool = False
    ran_at: list = field(default_factory=list)

    def delay(self) -> float:
        return self.wait

    def arguments(self) -> dict[str, Any]:
        return {"label": self.label}

    def run(self, ctx) -> None:
        self.ran_at.append(time.monotonic())
        if self.fatal:
            raise InvalidResourceKindError(self.name, "widget")
        if self.fail:
            raise RuntimeError("boom")


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def test_execute_success(job_context):
    runner = JobRunner(job_context)
    job = RecordingJob()
    assert runner.execute(job) is True
    assert len(job.ran_at) == 1
    assert runner.recent_failures() == []


def test_execute_failure_is_logged_not_retried(job_context):
    runner = JobRunner(job_context)
    job = RecordingJob(fail=True)
    assert runner.execute(job) is False
    assert len(job.ran_at) == 1
    failures = runner.recent_failures()
    assert failures[0]["job"] == "RecordingJob"
    assert failures[0]["type"] == "RuntimeError"
    assert failures[0]["args"] == {"label": "job"}


def test_execute_fatal_error_drops_job(job_context):
    runner = JobRunner(job_context)
    assert runner.execute(RecordingJob(fatal=True)) is False
    assert runner.recent_failures()[0]["type"] == "InvalidResourceKindError"


def test_run_now_waits_delay(job_context):
    runner = JobRunner(job_context)
    job = RecordingJob(wait=0.2)
    start = time.monotonic()
    assert runner.run_now(job) is True
    assert job.ran_at[0] - start >= 0.2


def test_worker_pool_runs_enqueued_jobs(job_context, local_queue, queue_dispatcher):
    runner = JobRunner(job_context)
    worker = JobWorker(local_queue, runner, pool_size=2, poll_timeout=0.05)
    worker.start()
    try:
        jobs = [RecordingJob(label=str(i)) for i in range(5)]
        for job in jobs:
            queue_dispatcher.enqueue(job)
        assert _wait_for(lambda: all(job.ran_at for job in jobs))
    finally:
        worker.stop(timeout=1.0)


def test_delayed_job_does_not_hold_a_worker(job_context, local_queue, queue_dispatcher):
    runner = JobRunner(job_context)
    worker = JobWorker(local_queue, runner, pool_size=1, poll_timeout=0.05)
    worker.start()
    try:
        delayed = RecordingJob(label="delayed", wait=0.5)
        immediate = RecordingJob(label="immediate")
        enqueued_at = time.monotonic()
        queue_dispatcher.enqueue(delayed)
        queue_dispatcher.enqueue(immediate)

        assert _wait_for(lambda: bool(immediate.ran_at) and bool(delayed.ran_at))
        # the single worker ran the immediate job while the delayed one waited
        assert immediate.ran_at[0] < delayed.ran_at[0]
        assert delayed.ran_at[0] - enqueued_at >= 0.45
    finally:
        worker.stop(timeout=1.0)


def test_failing_job_does_not_stop_pool(job_context, local_queue, queue_dispatcher):
    runner = JobRunner(job_context)
    worker = JobWorker(local_queue, runner, pool_size=1, poll_timeout=0.05)
    worker.start()
    try:
        bad = RecordingJob(label="bad", fail=True)
        good = RecordingJob(label="good")
        queue_dispatcher.enqueue(bad)
        queue_dispatcher.enqueue(good)
        assert _wait_for(lambda: bool(good.ran_at))
        assert len(bad.ran_at) == 1
        assert runner.recent_failures()[0]["args"] == {"label": "bad"}
    finally:
        worker.stop(timeout=1.0)


def test_stop_joins_threads(job_context, local_queue):
    worker = JobWorker(local_queue, JobRunner(job_context), pool_size=2, poll_timeout=0.05)
    worker.start()
    worker.stop(timeout=1.0)
    assert not any(t.is_alive() for t in threading.enumerate() if t.name.startswith("job-worker-"))
