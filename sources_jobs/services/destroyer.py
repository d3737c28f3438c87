"""Physical deletion of sources and applications with their dependents.

All rows are removed in one transaction. Event bodies are captured before
the delete and only raised after the commit succeeded, so consumers never
hear about a deletion that was rolled back.
"""
from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import delete, select, or_, and_
from sqlalchemy.orm import Session

from sources_jobs.models.db import (
    Application,
    ApplicationAuthentication,
    Authentication,
    Endpoint,
    ResourceKind,
    Source,
)
from sources_jobs.services.events import EventError, EventSender, raise_event
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


class ResourceNotFoundError(LookupError):
    def __init__(self, resource_type: str, resource_id: int, tenant_id: int):
        super().__init__(f"{resource_type} {resource_id} not found for tenant {tenant_id}")
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.tenant_id = tenant_id


def _authentications_owned_by(session: Session, tenant_id: int, owners: list[tuple[str, list[int]]]) -> list[Authentication]:
    clauses = [
        and_(Authentication.resource_type == resource_type, Authentication.resource_id.in_(ids))
        for resource_type, ids in owners
        if ids
    ]
    if not clauses:
        return []
    stmt = select(Authentication).where(Authentication.tenant_id == tenant_id, or_(*clauses))
    return list(session.scalars(stmt).all())


def _collect_source(session: Session, tenant_id: int, source_id: int) -> list[tuple[type, str, list[Any]]]:
    source = session.scalars(
        select(Source).where(Source.id == source_id, Source.tenant_id == tenant_id)
    ).first()
    if source is None:
        raise ResourceNotFoundError("source", source_id, tenant_id)

    applications = list(session.scalars(
        select(Application).where(Application.source_id == source_id, Application.tenant_id == tenant_id)
    ).all())
    application_ids = [a.id for a in applications]
    app_auths: list[ApplicationAuthentication] = []
    if application_ids:
        app_auths = list(session.scalars(
            select(ApplicationAuthentication).where(ApplicationAuthentication.application_id.in_(application_ids))
        ).all())
    endpoints = list(session.scalars(
        select(Endpoint).where(Endpoint.source_id == source_id, Endpoint.tenant_id == tenant_id)
    ).all())
    authentications = _authentications_owned_by(session, tenant_id, [
        ("Source", [source_id]),
        ("Application", application_ids),
        ("Endpoint", [e.id for e in endpoints]),
    ])

    # Delete order respects foreign keys; events go out in the same order
    return [
        (ApplicationAuthentication, "ApplicationAuthentication", app_auths),
        (Application, "Application", applications),
        (Endpoint, "Endpoint", endpoints),
        (Authentication, "Authentication", authentications),
        (Source, "Source", [source]),
    ]


def _collect_application(session: Session, tenant_id: int, application_id: int) -> list[tuple[type, str, list[Any]]]:
    application = session.scalars(
        select(Application).where(Application.id == application_id, Application.tenant_id == tenant_id)
    ).first()
    if application is None:
        raise ResourceNotFoundError("application", application_id, tenant_id)

    app_auths = list(session.scalars(
        select(ApplicationAuthentication).where(ApplicationAuthentication.application_id == application_id)
    ).all())
    authentications = _authentications_owned_by(session, tenant_id, [("Application", [application_id])])
    return [
        (ApplicationAuthentication, "ApplicationAuthentication", app_auths),
        (Authentication, "Authentication", authentications),
        (Application, "Application", [application]),
    ]


def delete_cascade(
    session: Session,
    tenant_id: int,
    resource_type: ResourceKind,
    resource_id: int,
    headers: Mapping[str, str],
    sender: EventSender,
) -> int:
    """Delete the resource and everything hanging off it, then announce each row.

    Returns the number of deleted rows. Raises ResourceNotFoundError when the
    resource does not exist for the tenant; SQLAlchemy errors roll back and
    propagate.
    """
    with session.begin():
        if resource_type == ResourceKind.SOURCE:
            groups = _collect_source(session, tenant_id, resource_id)
        elif resource_type == ResourceKind.APPLICATION:
            groups = _collect_application(session, tenant_id, resource_id)
        else:
            raise ValueError(f"unsupported resource type {resource_type!r}")

        pending_events: list[tuple[str, dict[str, Any]]] = []
        deleted = 0
        for model, event_name, rows in groups:
            if not rows:
                continue
            pending_events.extend((f"{event_name}.destroy", row.to_event()) for row in rows)
            result = session.execute(
                delete(model).where(model.id.in_([row.id for row in rows])).execution_options(synchronize_session=False)
            )
            deleted += result.rowcount or 0
        session.expunge_all()

    logger.info(
        "Deleted resource cascade",
        resource_type=resource_type.value,
        resource_id=resource_id,
        tenant_id=tenant_id,
        rows=deleted,
    )

    for event_type, body in pending_events:
        try:
            raise_event(sender, event_type, body, headers)
        except EventError as e:
            logger.warning("Failed to raise destroy event", event_type=event_type, resource_id=body.get("id"), error=str(e))
    return deleted


__all__ = ["delete_cascade", "ResourceNotFoundError"]
