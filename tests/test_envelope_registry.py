import json

import pytest

from sources_jobs.jobs.async_destroy import AsyncDestroyJob
from sources_jobs.jobs.envelope import DispatchEnvelope
from sources_jobs.jobs.errors import FatalJobError, MalformedJobError, UnknownJobError
from sources_jobs.jobs.registry import build_job, register_job, registered_jobs
from sources_jobs.jobs.retry_create import RetryCreateJob
from sources_jobs.jobs.superkey_destroy import SuperkeyDestroyJob


HEADERS = {"x-rh-sources-account-number": "12345", "x-rh-sources-org-id": "org1"}


@pytest.mark.parametrize("job", [
    AsyncDestroyJob(headers=HEADERS, tenant_id=3, wait_seconds=15, resource_kind="source", resource_id=7),
    SuperkeyDestroyJob(headers=HEADERS, identity="eyJpZGVudGl0eSI6e319", tenant_id=3, resource_kind="application", resource_id=9),
])
def test_envelope_reconstructs_job(job):
    raw = DispatchEnvelope.for_job(job).to_bytes()
    rebuilt = DispatchEnvelope.from_bytes(raw).parse()
    assert type(rebuilt) is type(job)
    assert rebuilt == job
    assert rebuilt.name == job.name
    assert rebuilt.delay() == job.delay()


def test_envelope_wire_format():
    job = AsyncDestroyJob(tenant_id=1, wait_seconds=15, resource_kind="application", resource_id=2)
    doc = json.loads(DispatchEnvelope.for_job(job).to_bytes())
    assert doc["JobName"] == "AsyncDestroyJob"
    assert json.loads(doc["Payload"])["resource_id"] == 2


def test_registry_lists_durable_jobs_only():
    names = registered_jobs()
    assert "AsyncDestroyJob" in names
    assert "SuperkeyDestroyJob" in names
    assert "RetryCreateJob" not in names


def test_duplicate_registration_rejected():
    with pytest.raises(ValueError):
        register_job(AsyncDestroyJob)


def test_unknown_job_name_is_fatal():
    raw = json.dumps({"JobName": "ReticulateSplinesJob", "Payload": "{}"}).encode()
    with pytest.raises(UnknownJobError) as exc_info:
        DispatchEnvelope.from_bytes(raw).parse()
    assert isinstance(exc_info.value, FatalJobError)
    assert exc_info.value.job_name == "ReticulateSplinesJob"


@pytest.mark.parametrize("raw", [b"not json", b"[]", b'{"Payload": "{}"}'])
def test_malformed_envelope_is_fatal(raw):
    with pytest.raises(MalformedJobError):
        DispatchEnvelope.from_bytes(raw)


def test_payload_with_unknown_field_is_fatal():
    with pytest.raises(MalformedJobError):
        build_job("AsyncDestroyJob", b'{"resource_id": 1, "colour": "blue"}')


def test_delays():
    assert AsyncDestroyJob(wait_seconds=15).delay() == 15.0
    assert SuperkeyDestroyJob().delay() == 0.0
    assert RetryCreateJob().delay() == 0.0


def test_retry_create_job_is_never_serialized():
    with pytest.raises(NotImplementedError):
        RetryCreateJob().to_json()
