from __future__ import annotations
"""SQLAlchemy model linking applications to the authentications they use."""
from datetime import datetime
from typing import TYPE_CHECKING, Any
from sqlalchemy import Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .tenants import Tenant
    from .applications import Application
from sqlalchemy.sql import func
from sources_jobs.database import Base
from sources_jobs.utils.time import to_record_format


class ApplicationAuthentication(Base):
    __tablename__ = "application_authentications"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    application_id: Mapped[int] = mapped_column(Integer, ForeignKey("applications.id"), nullable=False, index=True)
    authentication_id: Mapped[int] = mapped_column(Integer, ForeignKey("authentications.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    tenant: Mapped["Tenant"] = relationship("Tenant")
    application: Mapped["Application"] = relationship("Application", back_populates="application_authentications")

    def to_event(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "authentication_id": self.authentication_id,
            "created_at": to_record_format(self.created_at),
            "tenant": self.tenant.external_tenant if self.tenant else None,
        }
