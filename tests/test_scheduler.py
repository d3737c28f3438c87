import time

from sources_jobs.config import RETRY_CREATE_SETTINGS
from sources_jobs.jobs.retry_create import RetryCreateJob
from sources_jobs.jobs.runner import JobRunner
from sources_jobs.jobs.scheduler import ScheduledJob, Scheduler, default_schedule

from test_worker_runner import RecordingJob, _wait_for


def test_default_schedule_runs_retry_create():
    schedule = default_schedule()
    assert len(schedule) == 1
    assert isinstance(schedule[0].job, RetryCreateJob)
    assert schedule[0].interval == float(RETRY_CREATE_SETTINGS["interval_seconds"])


def test_scheduler_sleeps_then_runs_repeatedly(job_context):
    job = RecordingJob(label="tick")
    scheduler = Scheduler(JobRunner(job_context), [ScheduledJob(interval=0.1, job=job)])
    started = time.monotonic()
    scheduler.start()
    try:
        assert _wait_for(lambda: len(job.ran_at) >= 3, timeout=5.0)
    finally:
        scheduler.stop()
    # first run only after one full interval
    assert job.ran_at[0] - started >= 0.09
    assert job.ran_at[1] - job.ran_at[0] >= 0.09


def test_scheduler_survives_failing_job(job_context):
    job = RecordingJob(label="broken", fail=True)
    scheduler = Scheduler(JobRunner(job_context), [ScheduledJob(interval=0.05, job=job)])
    scheduler.start()
    try:
        assert _wait_for(lambda: len(job.ran_at) >= 2)
    finally:
        scheduler.stop()


def test_stop_halts_cadence(job_context):
    job = RecordingJob(label="tick")
    scheduler = Scheduler(JobRunner(job_context), [ScheduledJob(interval=0.05, job=job)])
    scheduler.start()
    assert _wait_for(lambda: len(job.ran_at) >= 1)
    scheduler.stop()
    time.sleep(0.1)
    count = len(job.ran_at)
    time.sleep(0.2)
    assert len(job.ran_at) == count
