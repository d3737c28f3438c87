"""Dispatch envelope: the only durable form of an in-flight job.

Wire format (one Redis list element):
    {"JobName": "AsyncDestroyJob", "Payload": "<job JSON>"}
"""
from __future__ import annotations

import json
from dataclasses import dataclass

from sources_jobs.jobs.base import Job
from sources_jobs.jobs.errors import MalformedJobError
from sources_jobs.jobs.registry import build_job
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class DispatchEnvelope:
    job_name: str
    payload: bytes

    @classmethod
    def for_job(cls, job: Job) -> "DispatchEnvelope":
        return cls(job_name=job.name, payload=job.to_json())

    def to_bytes(self) -> bytes:
        return json.dumps({
            "JobName": self.job_name,
            "Payload": self.payload.decode("utf-8"),
        }).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes | str) -> "DispatchEnvelope":
        try:
            raw = json.loads(data)
            return cls(job_name=str(raw["JobName"]), payload=str(raw["Payload"]).encode("utf-8"))
        except (ValueError, TypeError, KeyError) as e:
            raise MalformedJobError(f"failed to unmarshal job envelope: {e}") from e

    def parse(self) -> Job:
        """Rebuild the concrete job. Raises UnknownJobError / MalformedJobError."""
        job = build_job(self.job_name, self.payload)
        logger.debug("Parsed job", job=job.name, args=job.arguments())
        return job


__all__ = ["DispatchEnvelope"]
