from __future__ import annotations
"""SQLAlchemy model for application types and their metadata rows."""
from datetime import datetime
from sqlalchemy import Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship, Mapped, mapped_column

from sqlalchemy.sql import func
from sources_jobs.database import Base


class ApplicationType(Base):
    __tablename__ = "application_types"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)

    meta_data: Mapped[list["MetaData"]] = relationship("MetaData", back_populates="application_type")


class MetaData(Base):
    """Per application-type settings (app metadata, Superkey provisioning steps)."""

    __tablename__ = "meta_data"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    application_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("application_types.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    step: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    application_type: Mapped["ApplicationType"] = relationship("ApplicationType", back_populates="meta_data")
