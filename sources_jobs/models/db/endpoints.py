from __future__ import annotations
"""SQLAlchemy model for source endpoints."""
from datetime import datetime
from typing import TYPE_CHECKING, Any
from sqlalchemy import Integer, String, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .tenants import Tenant
    from .sources import Source
from sqlalchemy.sql import func
from sources_jobs.database import Base
from sources_jobs.utils.time import to_record_format
from .enums import AvailabilityStatus


class Endpoint(Base):
    __tablename__ = "endpoints"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    source_id: Mapped[int] = mapped_column(Integer, ForeignKey("sources.id"), nullable=False, index=True)
    role: Mapped[str | None] = mapped_column(String, nullable=True)
    scheme: Mapped[str | None] = mapped_column(String, nullable=True)
    host: Mapped[str | None] = mapped_column(String, nullable=True)
    port: Mapped[int | None] = mapped_column(Integer, nullable=True)
    path: Mapped[str | None] = mapped_column(String, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    availability_status: Mapped[str] = mapped_column(String, default=AvailabilityStatus.IN_PROGRESS.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    tenant: Mapped["Tenant"] = relationship("Tenant")
    source: Mapped["Source"] = relationship("Source", back_populates="endpoints")

    def to_event(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "scheme": self.scheme,
            "host": self.host,
            "port": self.port,
            "path": self.path,
            "default": self.is_default,
            "availability_status": self.availability_status,
            "source_id": self.source_id,
            "created_at": to_record_format(self.created_at),
            "tenant": self.tenant.external_tenant if self.tenant else None,
        }
