import os
import secrets
import sys
from datetime import timedelta
from pathlib import Path
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path so 'sources_jobs' resolves without an editable install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sources_jobs.database import Base  # type: ignore
"""Pytest fixtures and factories.

Important: SQLAlchemy relationship configuration requires all model modules to be imported
before Base.metadata.create_all(), otherwise back_populates targets might not exist yet.
"""
from sources_jobs.models.db import (
    Tenant, Source, ApplicationType, MetaData, Application, Endpoint,
    Authentication, ApplicationAuthentication, MetaDataType,
)
from sources_jobs.jobs.base import JobContext
from sources_jobs.jobs.dispatcher import JobDispatcher
from sources_jobs.jobs.errors import TransientExternalError
from sources_jobs.jobs.queue import DelayQueue
from sources_jobs.services.events import EventError
from sources_jobs.utils import utc_now

# Use file-based SQLite for thread-safe multi-connection access (resend threads + test thread)
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///./test_sources_jobs.db"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Jobs resolve their sessions through the context, but anything that asks the
# database module for its factory must see the test database too.
import sources_jobs.database as _database  # noqa: E402
_database.SessionLocal = TestingSessionLocal  # type: ignore


@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.remove("test_sources_jobs.db")
    except OSError:
        pass


@pytest.fixture(autouse=True)
def _clean_tables(create_test_db):
    """Every test starts from empty tables."""
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


# ---------- Collaborator fakes ----------

class RecordingEventSender:
    """Collects raised events instead of publishing them."""

    def __init__(self, fail_on: set[str] | None = None):
        self.events: list[tuple[str, bytes, dict[str, str]]] = []
        self.fail_on = fail_on or set()

    def send(self, event_type, body, headers):
        if event_type in self.fail_on:
            raise EventError(f"refusing {event_type}")
        self.events.append((event_type, body, headers))

    def types(self) -> list[str]:
        return [event_type for event_type, _, _ in self.events]


class FakeProvisioningClient:
    """Records delete requests; fails for application ids listed in `fail_for`."""

    def __init__(self, fail_for: set[int] | None = None):
        self.requests = []
        self.fail_for = fail_for or set()

    def send_delete_request(self, identity, application):
        self.requests.append((identity, application))
        if application.application_id in self.fail_for:
            raise TransientExternalError(f"backend refused application {application.application_id}")


@pytest.fixture()
def event_sender():
    return RecordingEventSender()


@pytest.fixture()
def provisioning_client():
    return FakeProvisioningClient()


@pytest.fixture()
def local_queue():
    queue = DelayQueue(max_size=100, overflow_policy="reject")
    yield queue
    queue.shutdown()


class RecordingDispatcher:
    """Keeps enqueued jobs in a list so tests can inspect what a job scheduled."""

    mode = "memory"

    def __init__(self):
        self.jobs = []

    def enqueue(self, job):
        self.jobs.append(job)


@pytest.fixture()
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture()
def queue_dispatcher(local_queue):
    return JobDispatcher(local_queue)


@pytest.fixture()
def job_context(dispatcher, event_sender, provisioning_client):
    return JobContext(
        dispatcher=dispatcher,
        session_factory=TestingSessionLocal,
        event_sender=event_sender,
        provisioning_client=provisioning_client,
    )


# ---------- Data factory helpers ----------

@pytest.fixture()
def tenant_factory(db_session):
    def _create(external_tenant: str | None = None, org_id: str | None = None):
        if external_tenant is None and org_id is None:
            external_tenant = f"acct{secrets.token_hex(3)}"
            org_id = f"org{secrets.token_hex(3)}"
        t = Tenant(external_tenant=external_tenant, org_id=org_id)
        db_session.add(t)
        db_session.commit()
        db_session.refresh(t)
        return t
    return _create


@pytest.fixture()
def application_type_factory(db_session):
    def _create(name: str | None = None, *, retry_opt_in: bool = True):
        app_type = ApplicationType(name=name or f"/insights/platform/{secrets.token_hex(3)}", display_name="Test App")
        db_session.add(app_type)
        db_session.flush()
        if retry_opt_in:
            db_session.add(MetaData(
                application_type_id=app_type.id,
                type=MetaDataType.APP_META_DATA.value,
                name="retry_create",
                payload={"enabled": True},
            ))
        db_session.commit()
        db_session.refresh(app_type)
        return app_type
    return _create


@pytest.fixture()
def source_factory(db_session):
    def _create(tenant, *, superkey: bool = False, name: str | None = None):
        s = Source(
            tenant_id=tenant.id,
            name=name or f"source-{secrets.token_hex(3)}",
            app_creation_workflow="account_authorization" if superkey else "manual_configuration",
        )
        db_session.add(s)
        db_session.commit()
        db_session.refresh(s)
        return s
    return _create


@pytest.fixture()
def application_factory(db_session):
    def _create(
        source,
        application_type,
        *,
        status: str = "unavailable",
        retry_counter: int = 0,
        age_minutes: float = 1,
        superkey_data: dict | None = None,
    ):
        created = utc_now() - timedelta(minutes=age_minutes)
        a = Application(
            tenant_id=source.tenant_id,
            source_id=source.id,
            application_type_id=application_type.id,
            availability_status=status,
            retry_counter=retry_counter,
            superkey_data=superkey_data,
            created_at=created,
            updated_at=created,
        )
        db_session.add(a)
        db_session.commit()
        db_session.refresh(a)
        return a
    return _create


@pytest.fixture()
def authentication_factory(db_session):
    def _create(owner, resource_type: str, *, link_application=None):
        source_id = owner.id if resource_type == "Source" else owner.source_id
        auth = Authentication(
            tenant_id=owner.tenant_id,
            source_id=source_id,
            resource_type=resource_type,
            resource_id=owner.id,
            authtype="arn",
            username=f"arn:aws:iam::{secrets.randbelow(10**12):012d}:role/test",
        )
        db_session.add(auth)
        db_session.flush()
        if link_application is not None:
            db_session.add(ApplicationAuthentication(
                tenant_id=owner.tenant_id,
                application_id=link_application.id,
                authentication_id=auth.id,
            ))
        db_session.commit()
        db_session.refresh(auth)
        return auth
    return _create


@pytest.fixture()
def endpoint_factory(db_session):
    def _create(source):
        e = Endpoint(tenant_id=source.tenant_id, source_id=source.id, host="example.com", is_default=True)
        db_session.add(e)
        db_session.commit()
        db_session.refresh(e)
        return e
    return _create
