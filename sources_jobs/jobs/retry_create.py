"""Reconciliation sweep re-announcing applications stuck before `available`.

Availability is reported by external checkers reacting to create events. If
such an event is lost the application never leaves `in_progress` /
`unavailable`, so every tick:

1. Pins applications already `available` to the retry ceiling so they are
   never selected again.
2. Selects young (< record age limit) non-available applications still under
   the ceiling and bumps their counter by one.
3. After the transaction commits, re-raises the create events for each
   selected application whose type opted into retry.

Steps 1 and 2 share one transaction; a failure rolls both back and nothing
is resent. Resends are best-effort and only logged on failure.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from sources_jobs.config import RETRY_CREATE_SETTINGS
from sources_jobs.jobs.base import Job, JobContext
from sources_jobs.models.db import (
    Application,
    ApplicationAuthentication,
    Authentication,
    AvailabilityStatus,
)
from sources_jobs.services.events import EventError, raise_event
from sources_jobs.services.meta_data import application_opted_into_retry
from sources_jobs.utils import get_logger, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryCandidate:
    id: int
    tenant_id: int
    application_type_id: int


@dataclass
class RetryCreateJob(Job):
    """Runs in-process from the scheduler only, so it is not registered."""

    name = "RetryCreateJob"

    def arguments(self) -> dict[str, Any]:
        return {}

    def to_json(self) -> bytes:
        raise NotImplementedError("RetryCreateJob is scheduled in-process and never serialized")

    def run(self, ctx: JobContext) -> None:
        candidates = self.reconcile(ctx)
        if not candidates:
            return
        # Only reached once the counter bump has committed
        self.resend(ctx, candidates)

    def reconcile(self, ctx: JobContext) -> list[RetryCandidate]:
        """Pin, select and bump in one transaction. Returns the selected candidates."""
        retry_max = int(RETRY_CREATE_SETTINGS["retry_max"])
        cutoff = utc_now() - timedelta(minutes=int(RETRY_CREATE_SETTINGS["record_age_limit_minutes"]))

        session = ctx.session_factory()
        try:
            with session.begin():
                pinned = session.execute(
                    update(Application)
                    .where(
                        Application.availability_status == AvailabilityStatus.AVAILABLE.value,
                        Application.retry_counter < retry_max,
                    )
                    .values(retry_counter=retry_max)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if pinned:
                    logger.info("Pinned available applications to retry ceiling", count=pinned)

                rows = session.execute(
                    select(Application.id, Application.tenant_id, Application.application_type_id).where(
                        Application.availability_status.is_distinct_from(AvailabilityStatus.AVAILABLE.value),
                        Application.created_at > cutoff,
                        Application.retry_counter < retry_max,
                    )
                ).all()
                if not rows:
                    logger.debug("No applications to retry")
                    return []

                candidates = [RetryCandidate(r.id, r.tenant_id, r.application_type_id) for r in rows]
                # Counts attempts, whether or not the resend below succeeds
                bumped = session.execute(
                    update(Application)
                    .where(
                        Application.id.in_([c.id for c in candidates]),
                        # an overlapping tick may already have taken the last attempt
                        Application.retry_counter < retry_max,
                    )
                    .values(retry_counter=Application.retry_counter + 1)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if bumped != len(candidates):
                    logger.warning("Retry counter already at ceiling for some candidates", selected=len(candidates), bumped=bumped)
        finally:
            session.close()

        logger.info("Selected applications for create resend", count=len(candidates), ids=[c.id for c in candidates])
        return candidates

    def resend(self, ctx: JobContext, candidates: list[RetryCandidate]) -> None:
        max_workers = max(1, min(int(RETRY_CREATE_SETTINGS["resend_max_workers"]), len(candidates)))
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="retry-create") as pool:
            for candidate in candidates:
                pool.submit(self._resend_one, ctx, candidate)

    def _resend_one(self, ctx: JobContext, candidate: RetryCandidate) -> None:
        try:
            self._resend_create_messages(ctx, candidate)
        except Exception as e:
            logger.warning(
                "Failed to resend create messages",
                application_id=candidate.id,
                tenant_id=candidate.tenant_id,
                error=str(e),
                exc_info=True,
            )

    def _resend_create_messages(self, ctx: JobContext, candidate: RetryCandidate) -> None:
        session = ctx.session_factory()
        try:
            try:
                opted_in = application_opted_into_retry(session, candidate.application_type_id)
            except SQLAlchemyError as e:
                logger.warning("Failed to check retry opt-in", application_id=candidate.id, error=str(e))
                return
            if not opted_in:
                logger.debug("Application type did not opt into retry", application_id=candidate.id)
                return

            application = session.scalars(
                select(Application)
                .options(
                    selectinload(Application.source),
                    selectinload(Application.tenant),
                    selectinload(Application.application_authentications),
                )
                .where(Application.id == candidate.id, Application.tenant_id == candidate.tenant_id)
            ).first()
            if application is None:
                logger.warning("Application vanished before resend", application_id=candidate.id)
                return

            authentications = session.scalars(
                select(Authentication)
                .join(ApplicationAuthentication, ApplicationAuthentication.authentication_id == Authentication.id)
                .where(
                    ApplicationAuthentication.application_id == application.id,
                    Authentication.tenant_id == candidate.tenant_id,
                )
                .limit(int(RETRY_CREATE_SETTINGS["authentication_limit"]))
            ).all()

            headers = application.tenant.forwardable_headers()
            logger.info("Resending create messages", application_id=application.id, tenant_id=candidate.tenant_id)

            self._emit(ctx, "Source.create", application.source, headers)
            self._emit(ctx, "Application.create", application, headers)
            for authentication in authentications:
                self._emit(ctx, "Authentication.create", authentication, headers)
            for app_auth in application.application_authentications:
                self._emit(ctx, "ApplicationAuthentication.create", app_auth, headers)
        finally:
            session.close()

    @staticmethod
    def _emit(ctx: JobContext, event_type: str, resource: Any, headers: dict[str, str]) -> None:
        try:
            raise_event(ctx.event_sender, event_type, resource, headers)
        except EventError as e:
            logger.warning("Failed to raise event", event_type=event_type, resource_id=resource.id, error=str(e))


__all__ = ["RetryCreateJob", "RetryCandidate"]
