from __future__ import annotations
"""SQLAlchemy model for authentications (credential material owned by a source, application or endpoint)."""
from datetime import datetime
from typing import TYPE_CHECKING, Any
from sqlalchemy import Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .tenants import Tenant
from sqlalchemy.sql import func
from sources_jobs.database import Base
from sources_jobs.utils.time import to_record_format
from .enums import AvailabilityStatus


class Authentication(Base):
    __tablename__ = "authentications"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    source_id: Mapped[int] = mapped_column(Integer, ForeignKey("sources.id"), nullable=False, index=True)
    # Polymorphic owner: "Source", "Application" or "Endpoint"
    resource_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    resource_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    authtype: Mapped[str] = mapped_column(String, nullable=False)
    username: Mapped[str | None] = mapped_column(String, nullable=True)
    availability_status: Mapped[str] = mapped_column(String, default=AvailabilityStatus.IN_PROGRESS.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    tenant: Mapped["Tenant"] = relationship("Tenant")

    def to_event(self) -> dict[str, Any]:
        # Secrets never leave the service; only descriptive fields are announced
        return {
            "id": self.id,
            "name": self.name,
            "authtype": self.authtype,
            "username": self.username,
            "availability_status": self.availability_status,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "source_id": self.source_id,
            "created_at": to_record_format(self.created_at),
            "tenant": self.tenant.external_tenant if self.tenant else None,
        }
