from __future__ import annotations
"""SQLAlchemy model for applications (capabilities attached to a source)."""
from datetime import datetime
from typing import TYPE_CHECKING, Any
from sqlalchemy import Integer, String, DateTime, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .tenants import Tenant
    from .sources import Source
    from .application_types import ApplicationType
    from .application_authentications import ApplicationAuthentication
from sqlalchemy.sql import func
from sources_jobs.config import RETRY_CREATE_SETTINGS
from sources_jobs.database import Base
from sources_jobs.utils.time import to_record_format, utc_now
from .enums import AvailabilityStatus


class Application(Base):
    __tablename__ = "applications"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    source_id: Mapped[int] = mapped_column(Integer, ForeignKey("sources.id"), nullable=False, index=True)
    application_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("application_types.id"), nullable=False)

    availability_status: Mapped[str] = mapped_column(
        String, default=AvailabilityStatus.IN_PROGRESS.value, index=True
    )
    availability_status_error: Mapped[str | None] = mapped_column(String, nullable=True)
    # Number of create-event resends attempted by the reconciliation sweep
    retry_counter: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    extra: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # Present only for applications provisioned through Superkey
    superkey_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    tenant: Mapped["Tenant"] = relationship("Tenant")
    source: Mapped["Source"] = relationship("Source", back_populates="applications")
    application_type: Mapped["ApplicationType"] = relationship("ApplicationType")
    application_authentications: Mapped[list["ApplicationAuthentication"]] = relationship(
        "ApplicationAuthentication", back_populates="application"
    )

    __table_args__ = (
        CheckConstraint(
            f"retry_counter >= 0 AND retry_counter <= {int(RETRY_CREATE_SETTINGS['retry_max'])}",
            name="retry_counter_within_bounds",
        ),
    )

    def to_event(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "availability_status": self.availability_status,
            "availability_status_error": self.availability_status_error,
            "extra": self.extra,
            "superkey_data": self.superkey_data,
            "source_id": self.source_id,
            "application_type_id": self.application_type_id,
            "created_at": to_record_format(self.created_at),
            "updated_at": to_record_format(self.updated_at),
            "tenant": self.tenant.external_tenant if self.tenant else None,
        }
