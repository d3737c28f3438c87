"""Superkey delete trigger used by the API delete path.

A resource is Superkey-managed when its source was created through the
account authorization workflow. Such deletes are answered with 202 and
handed to `SuperkeyDestroyJob`; everything else is deleted directly.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sources_jobs.config import SUPERKEY_SETTINGS
from sources_jobs.jobs.dispatcher import JobDispatcher
from sources_jobs.jobs.superkey_destroy import SuperkeyDestroyJob
from sources_jobs.models.db import Application, ResourceKind, Source, Tenant
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


def _account_authorization() -> str:
    return str(SUPERKEY_SETTINGS["account_authorization_workflow"])


def is_superkey_source(session: Session, tenant_id: int, source_id: int) -> bool:
    workflow = session.scalar(
        select(Source.app_creation_workflow).where(Source.id == source_id, Source.tenant_id == tenant_id)
    )
    return workflow == _account_authorization()


def is_superkey_application(session: Session, tenant_id: int, application_id: int) -> bool:
    workflow = session.scalar(
        select(Source.app_creation_workflow)
        .join(Application, Application.source_id == Source.id)
        .where(Application.id == application_id, Application.tenant_id == tenant_id)
    )
    return workflow == _account_authorization()


def request_superkey_destroy(
    dispatcher: JobDispatcher,
    session: Session,
    tenant: Tenant,
    resource_kind: ResourceKind,
    resource_id: int,
    identity: str,
    headers: Optional[dict[str, str]] = None,
) -> bool:
    """Enqueue a SuperkeyDestroyJob when the resource is Superkey-managed.

    Returns False when the caller should go ahead with a normal delete.
    """
    if resource_kind == ResourceKind.SOURCE:
        managed = is_superkey_source(session, tenant.id, resource_id)
    elif resource_kind == ResourceKind.APPLICATION:
        managed = is_superkey_application(session, tenant.id, resource_id)
    else:
        raise ValueError(f"unsupported resource kind {resource_kind!r}")

    if not managed:
        return False

    job = SuperkeyDestroyJob(
        headers=headers if headers is not None else tenant.forwardable_headers(),
        identity=identity,
        tenant_id=tenant.id,
        resource_kind=resource_kind.value,
        resource_id=resource_id,
    )
    dispatcher.enqueue(job)
    logger.info(
        "Superkey destroy requested",
        resource_kind=resource_kind.value,
        resource_id=resource_id,
        tenant_id=tenant.id,
    )
    return True


__all__ = ["is_superkey_source", "is_superkey_application", "request_superkey_destroy"]
