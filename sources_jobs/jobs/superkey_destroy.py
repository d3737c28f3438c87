"""Phase A of the Superkey teardown.

The provisioning backend is asked to unwind the cloud-side resources of each
Superkey application. Only once it accepted does an AsyncDestroyJob get
scheduled to delete the local rows; the row must outlive its external side
effects.

For a source every application is attempted in turn, errors are collected,
and the source's own AsyncDestroyJob is scheduled regardless so a stuck
application cannot block the source cleanup.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from sources_jobs.config import SUPERKEY_SETTINGS
from sources_jobs.jobs.async_destroy import AsyncDestroyJob
from sources_jobs.jobs.base import Job, JobContext
from sources_jobs.jobs.errors import CascadeDestroyError, InvalidResourceKindError, JobError
from sources_jobs.jobs.registry import register_job
from sources_jobs.models.db import Application, ResourceKind
from sources_jobs.services.provisioning import ApplicationRef
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


@register_job
@dataclass
class SuperkeyDestroyJob(Job):
    name = "SuperkeyDestroyJob"

    headers: dict[str, str] = field(default_factory=dict)
    identity: str = ""
    tenant_id: int = 0
    resource_kind: str = ""
    resource_id: int = 0

    def arguments(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "resource_kind": self.resource_kind,
            "resource_id": self.resource_id,
        }

    def run(self, ctx: JobContext) -> None:
        kind = self.resource_kind.lower()
        if kind == ResourceKind.APPLICATION.value:
            self._destroy_application(ctx, self.resource_id)
        elif kind == ResourceKind.SOURCE.value:
            self._destroy_source(ctx)
        else:
            raise InvalidResourceKindError(self.name, self.resource_kind)

    def _destroy_source(self, ctx: JobContext) -> None:
        session = ctx.session_factory()
        try:
            application_ids = list(session.scalars(
                select(Application.id)
                .where(Application.source_id == self.resource_id, Application.tenant_id == self.tenant_id)
                .order_by(Application.id)
                .limit(int(SUPERKEY_SETTINGS["source_application_limit"]))
            ).all())
        finally:
            session.close()

        errors: list[tuple[int, Exception]] = []
        # Sequential: at most one backend call in flight per cascade
        for application_id in application_ids:
            try:
                self._destroy_application(ctx, application_id)
            except Exception as e:
                logger.warning(
                    "Failed to tear down application of source",
                    source_id=self.resource_id,
                    application_id=application_id,
                    error=str(e),
                )
                errors.append((application_id, e))

        ctx.dispatcher.enqueue(self._async_destroy(ResourceKind.SOURCE, self.resource_id))

        if errors:
            raise CascadeDestroyError(self.resource_id, errors)

    def _destroy_application(self, ctx: JobContext, application_id: int) -> None:
        session = ctx.session_factory()
        try:
            application = session.scalars(
                select(Application)
                .options(selectinload(Application.tenant))
                .where(Application.id == application_id, Application.tenant_id == self.tenant_id)
            ).first()
            if application is None:
                raise JobError(f"application {application_id} not found for tenant {self.tenant_id}")
            ref = ApplicationRef(
                tenant_id=application.tenant_id,
                application_id=application.id,
                source_id=application.source_id,
                external_tenant=application.tenant.external_tenant,
                org_id=application.tenant.org_id,
                superkey_data=application.superkey_data,
            )
        finally:
            session.close()

        # Raises on failure: nothing is scheduled for deletion
        ctx.provisioning_client.send_delete_request(self.identity, ref)
        ctx.dispatcher.enqueue(self._async_destroy(ResourceKind.APPLICATION, application_id))

    def _async_destroy(self, kind: ResourceKind, resource_id: int) -> AsyncDestroyJob:
        return AsyncDestroyJob(
            headers=dict(self.headers),
            tenant_id=self.tenant_id,
            wait_seconds=int(SUPERKEY_SETTINGS["destroy_wait_seconds"]),
            resource_kind=kind.value,
            resource_id=resource_id,
        )


__all__ = ["SuperkeyDestroyJob"]
