from __future__ import annotations
"""SQLAlchemy model for tenants (the isolation boundary of every resource)."""
import base64
import json
from datetime import datetime
from sqlalchemy import Integer, String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sources_jobs.database import Base

ACCOUNT_NUMBER_HEADER = "x-rh-sources-account-number"
ORG_ID_HEADER = "x-rh-sources-org-id"
IDENTITY_HEADER = "x-rh-identity"


class Tenant(Base):
    __tablename__ = "tenants"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # Legacy EBS account number
    external_tenant: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    org_id: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def forwardable_headers(self) -> dict[str, str]:
        """Headers to attach to events raised on behalf of this tenant.

        No request is available in background jobs, so the identity header is
        generated from the account number and org id stored on the tenant.
        """
        headers: dict[str, str] = {}
        identity: dict[str, str] = {}
        if self.external_tenant:
            headers[ACCOUNT_NUMBER_HEADER] = self.external_tenant
            identity["account_number"] = self.external_tenant
        if self.org_id:
            headers[ORG_ID_HEADER] = self.org_id
            identity["org_id"] = self.org_id
        if identity:
            encoded = json.dumps({"identity": identity}).encode("utf-8")
            headers[IDENTITY_HEADER] = base64.b64encode(encoded).decode("ascii")
        return headers
