from __future__ import annotations
"""SQLAlchemy model for sources (a connected external platform or account)."""
from datetime import datetime
from typing import TYPE_CHECKING, Any
from sqlalchemy import Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .tenants import Tenant
    from .applications import Application
    from .endpoints import Endpoint
from sqlalchemy.sql import func
from sources_jobs.database import Base
from sources_jobs.utils.time import to_record_format, utc_now
from .enums import AvailabilityStatus


class Source(Base):
    __tablename__ = "sources"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    source_type_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    uid: Mapped[str | None] = mapped_column(String, nullable=True)
    source_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    app_creation_workflow: Mapped[str] = mapped_column(String, default="manual_configuration")
    availability_status: Mapped[str] = mapped_column(String, default=AvailabilityStatus.IN_PROGRESS.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    tenant: Mapped["Tenant"] = relationship("Tenant")
    applications: Mapped[list["Application"]] = relationship("Application", back_populates="source")
    endpoints: Mapped[list["Endpoint"]] = relationship("Endpoint", back_populates="source")

    def to_event(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "uid": self.uid,
            "source_ref": self.source_ref,
            "app_creation_workflow": self.app_creation_workflow,
            "availability_status": self.availability_status,
            "source_type_id": self.source_type_id,
            "created_at": to_record_format(self.created_at),
            "updated_at": to_record_format(self.updated_at),
            "tenant": self.tenant.external_tenant if self.tenant else None,
        }
