"""Superkey teardown through the real dispatcher, delay queue and worker pool."""
import time

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from sources_jobs.config import SUPERKEY_SETTINGS
from sources_jobs.jobs.base import JobContext
from sources_jobs.jobs.runner import JobRunner
from sources_jobs.jobs.superkey_destroy import SuperkeyDestroyJob
from sources_jobs.jobs.worker import JobWorker
from sources_jobs.models.db import Application, Source


def _rows(db_session, model) -> int:
    db_session.expire_all()
    return db_session.scalar(select(func.count()).select_from(model))


def test_source_teardown_end_to_end(monkeypatch, tenant_factory, source_factory, application_type_factory,
                                    application_factory, local_queue, queue_dispatcher, event_sender,
                                    provisioning_client, db_session):
    monkeypatch.setitem(SUPERKEY_SETTINGS, "destroy_wait_seconds", 1)
    tenant = tenant_factory()
    source = source_factory(tenant, superkey=True)
    app_type = application_type_factory()
    for _ in range(2):
        application_factory(source, app_type)

    context = JobContext(
        dispatcher=queue_dispatcher,
        session_factory=sessionmaker(bind=db_session.get_bind()),
        event_sender=event_sender,
        provisioning_client=provisioning_client,
    )
    worker = JobWorker(local_queue, JobRunner(context), pool_size=2, poll_timeout=0.05)
    worker.start()
    try:
        queue_dispatcher.enqueue(SuperkeyDestroyJob(
            headers=tenant.forwardable_headers(),
            identity="ident",
            tenant_id=tenant.id,
            resource_kind="source",
            resource_id=source.id,
        ))

        # phase A: backend asked for both applications, nothing deleted yet
        deadline = time.monotonic() + 5
        while len(provisioning_client.requests) < 2 and time.monotonic() < deadline:
            time.sleep(0.02)
        assert len(provisioning_client.requests) == 2
        assert _rows(db_session, Source) == 1

        # phase B: delayed deletes run once the wait elapsed
        deadline = time.monotonic() + 10
        while _rows(db_session, Source) and time.monotonic() < deadline:
            time.sleep(0.05)
        assert _rows(db_session, Source) == 0
        assert _rows(db_session, Application) == 0
        assert "Source.destroy" in event_sender.types()
    finally:
        worker.stop(timeout=1.0)
