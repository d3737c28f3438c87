"""Client for the external provisioning backend (Superkey worker).

The backend owns the cloud-side side effects (IAM roles, policies, buckets)
created when an application was provisioned automatically. Before such an
application's row can be deleted locally the backend must be asked to unwind
them; this module sends that request.
"""
from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any, Optional

import aiohttp

from sources_jobs.config import SUPERKEY_SETTINGS
from sources_jobs.jobs.errors import TransientExternalError
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class ApplicationRef:
    """Tenant-scoped reference to the application being torn down."""

    tenant_id: int
    application_id: int
    source_id: int
    external_tenant: Optional[str] = None
    org_id: Optional[str] = None
    superkey_data: Optional[dict[str, Any]] = None


class ProvisioningClient:
    def __init__(self, delete_url: Optional[str] = None, timeout: Optional[float] = None):
        self.delete_url = delete_url or str(SUPERKEY_SETTINGS["delete_url"])
        self.timeout = float(timeout if timeout is not None else SUPERKEY_SETTINGS["request_timeout"])

    def send_delete_request(self, identity: str, application: ApplicationRef) -> None:
        """Ask the backend to tear down the application's cloud resources.

        Blocks the calling (worker) thread. Raises TransientExternalError on
        transport errors, timeouts and non-2xx replies.
        """
        logger.info(
            "Sending superkey delete request",
            application_id=application.application_id,
            tenant_id=application.tenant_id,
        )
        asyncio.run(self._post(identity, application))

    async def _post(self, identity: str, application: ApplicationRef) -> None:
        headers = {"x-rh-identity": identity, "Content-Type": "application/json"}
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.delete_url, json=asdict(application), headers=headers) as response:
                    if response.status >= 300:
                        text = await response.text()
                        logger.error(
                            "Superkey delete request rejected",
                            status_code=response.status,
                            application_id=application.application_id,
                            body=text[:500],
                        )
                        raise TransientExternalError(
                            f"provisioning backend returned {response.status} for application {application.application_id}"
                        )
        except asyncio.TimeoutError as e:
            raise TransientExternalError(
                f"provisioning backend timed out for application {application.application_id}"
            ) from e
        except aiohttp.ClientError as e:
            raise TransientExternalError(
                f"provisioning backend client error for application {application.application_id}: {e}"
            ) from e


__all__ = ["ApplicationRef", "ProvisioningClient"]
