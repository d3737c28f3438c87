"""Phase B of the Superkey teardown: delete the local rows after a grace period."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sources_jobs.jobs.base import Job, JobContext
from sources_jobs.jobs.errors import InvalidResourceKindError
from sources_jobs.jobs.registry import register_job
from sources_jobs.models.db import ResourceKind
from sources_jobs.services.destroyer import delete_cascade
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


@register_job
@dataclass
class AsyncDestroyJob(Job):
    name = "AsyncDestroyJob"

    headers: dict[str, str] = field(default_factory=dict)
    tenant_id: int = 0
    wait_seconds: int = 0
    resource_kind: str = ""
    resource_id: int = 0

    def delay(self) -> float:
        return float(self.wait_seconds)

    def arguments(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "wait_seconds": self.wait_seconds,
            "resource_kind": self.resource_kind,
            "resource_id": self.resource_id,
        }

    def run(self, ctx: JobContext) -> None:
        try:
            kind = ResourceKind(self.resource_kind.lower())
        except ValueError:
            raise InvalidResourceKindError(self.name, self.resource_kind) from None

        session = ctx.session_factory()
        try:
            delete_cascade(session, self.tenant_id, kind, self.resource_id, self.headers, ctx.event_sender)
        finally:
            session.close()
        logger.info("Destroyed resource", resource_kind=kind.value, resource_id=self.resource_id)


__all__ = ["AsyncDestroyJob"]
