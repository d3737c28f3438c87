import base64
import json

import pytest

from sources_jobs.jobs.superkey_destroy import SuperkeyDestroyJob
from sources_jobs.models.db import ResourceKind, Tenant
from sources_jobs.services.superkey import (
    is_superkey_application,
    is_superkey_source,
    request_superkey_destroy,
)


def test_forwardable_headers_from_tenant():
    headers = Tenant(id=1, external_tenant="1234", org_id="o-1").forwardable_headers()
    assert headers["x-rh-sources-account-number"] == "1234"
    assert headers["x-rh-sources-org-id"] == "o-1"
    identity = json.loads(base64.b64decode(headers["x-rh-identity"]))
    assert identity == {"identity": {"account_number": "1234", "org_id": "o-1"}}


def test_forwardable_headers_org_only():
    headers = Tenant(id=2, org_id="o-2").forwardable_headers()
    assert "x-rh-sources-account-number" not in headers
    identity = json.loads(base64.b64decode(headers["x-rh-identity"]))
    assert identity == {"identity": {"org_id": "o-2"}}


def test_forwardable_headers_empty_tenant():
    assert Tenant(id=3).forwardable_headers() == {}


def test_superkey_detection(tenant_factory, source_factory, application_type_factory, application_factory, db_session):
    tenant = tenant_factory()
    app_type = application_type_factory()
    managed = source_factory(tenant, superkey=True)
    manual = source_factory(tenant)
    managed_app = application_factory(managed, app_type)
    manual_app = application_factory(manual, app_type)

    assert is_superkey_source(db_session, tenant.id, managed.id) is True
    assert is_superkey_source(db_session, tenant.id, manual.id) is False
    assert is_superkey_application(db_session, tenant.id, managed_app.id) is True
    assert is_superkey_application(db_session, tenant.id, manual_app.id) is False
    # scoped by tenant
    assert is_superkey_source(db_session, tenant.id + 1000, managed.id) is False


def test_request_destroy_enqueues_for_superkey_source(tenant_factory, source_factory, dispatcher, db_session):
    tenant = tenant_factory()
    source = source_factory(tenant, superkey=True)

    accepted = request_superkey_destroy(dispatcher, db_session, tenant, ResourceKind.SOURCE, source.id, "identity")

    assert accepted is True
    assert dispatcher.jobs == [SuperkeyDestroyJob(
        headers=tenant.forwardable_headers(),
        identity="identity",
        tenant_id=tenant.id,
        resource_kind="source",
        resource_id=source.id,
    )]


def test_request_destroy_declines_manual_resources(tenant_factory, source_factory, application_type_factory,
                                                   application_factory, dispatcher, db_session):
    tenant = tenant_factory()
    source = source_factory(tenant)
    app = application_factory(source, application_type_factory())

    assert request_superkey_destroy(dispatcher, db_session, tenant, ResourceKind.SOURCE, source.id, "id") is False
    assert request_superkey_destroy(dispatcher, db_session, tenant, ResourceKind.APPLICATION, app.id, "id") is False
    assert dispatcher.jobs == []


def test_request_destroy_rejects_unknown_kind(tenant_factory, dispatcher, db_session):
    with pytest.raises(ValueError):
        request_superkey_destroy(dispatcher, db_session, tenant_factory(), "endpoint", 1, "id")
