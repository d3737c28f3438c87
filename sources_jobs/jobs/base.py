"""Job contract shared by every background job variant.

A job is plain data: everything it needs to run is either one of its own
fields (so it can be rebuilt from its serialized payload in another process)
or a collaborator handed to `run()` through the JobContext.

Contract:
 1. `name`        stable discriminator used by the registry and the envelope.
 2. `delay()`     seconds to wait before running (0 = run as soon as dequeued).
 3. `arguments()` key/value view of the job, for logging only.
 4. `run(ctx)`    performs the effect; raises on failure.
 5. `to_json()`   payload bytes for the durable queue.
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Callable, ClassVar

from sqlalchemy.orm import Session

from sources_jobs.jobs.errors import MalformedJobError

if TYPE_CHECKING:  # pragma: no cover
    from sources_jobs.jobs.dispatcher import JobDispatcher
    from sources_jobs.services.events import EventSender
    from sources_jobs.services.provisioning import ProvisioningClient


@dataclass(slots=True)
class JobContext:
    """Collaborators available to a running job."""

    dispatcher: "JobDispatcher"
    session_factory: Callable[[], Session]
    event_sender: "EventSender"
    provisioning_client: "ProvisioningClient"


class Job(ABC):
    name: ClassVar[str]

    def delay(self) -> float:
        return 0.0

    @abstractmethod
    def arguments(self) -> dict[str, Any]:
        ...

    @abstractmethod
    def run(self, ctx: JobContext) -> None:
        ...

    def to_json(self) -> bytes:
        return json.dumps(asdict(self)).encode("utf-8")  # type: ignore[call-overload]

    @classmethod
    def from_json(cls, payload: bytes) -> "Job":
        try:
            data = json.loads(payload)
            if not isinstance(data, dict):
                raise TypeError(f"expected object, got {type(data).__name__}")
            return cls(**data)
        except (ValueError, TypeError) as e:
            raise MalformedJobError(f"failed to decode {cls.name} payload: {e}") from e


__all__ = ["Job", "JobContext"]
