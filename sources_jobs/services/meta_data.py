"""Application type metadata lookups."""
from __future__ import annotations

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from sources_jobs.models.db import MetaData, MetaDataType

RETRY_OPT_IN_NAME = "retry_create"


def application_opted_into_retry(session: Session, application_type_id: int) -> bool:
    """True when the application type carries the `retry_create` app metadata row."""
    count = session.scalar(
        select(func.count(MetaData.id)).where(
            MetaData.application_type_id == application_type_id,
            MetaData.type == MetaDataType.APP_META_DATA.value,
            MetaData.name == RETRY_OPT_IN_NAME,
        )
    )
    return bool(count)


__all__ = ["application_opted_into_retry", "RETRY_OPT_IN_NAME"]
