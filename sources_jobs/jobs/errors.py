"""Job error taxonomy.

FatalJobError and its subclasses mark jobs that can never succeed (unknown
name, unreadable payload, unsupported resource kind): they are logged and
dropped. TransientExternalError marks provisioning-backend failures that
are reported to the caller but never retried here.
"""
from __future__ import annotations


class JobError(Exception):
    """Base class for job orchestration errors."""


class FatalJobError(JobError):
    """Job is dropped after logging; retrying cannot help."""


class UnknownJobError(FatalJobError):
    def __init__(self, job_name: str):
        super().__init__(f"unsupported job {job_name!r}")
        self.job_name = job_name


class MalformedJobError(FatalJobError):
    """Envelope or payload could not be decoded."""


class InvalidResourceKindError(FatalJobError):
    def __init__(self, job_name: str, kind: str):
        super().__init__(f"invalid resource kind for {job_name}: {kind!r}")
        self.job_name = job_name
        self.kind = kind


class TransientExternalError(JobError):
    """Provisioning backend call failed (transport error or non-2xx reply)."""


class CascadeDestroyError(JobError):
    """Some application teardowns of a source cascade failed."""

    def __init__(self, source_id: int, errors: list[tuple[int, Exception]]):
        failed = ", ".join(f"{app_id}: {err}" for app_id, err in errors)
        super().__init__(
            f"ran into {len(errors)} error(s) sending delete requests for applications of source {source_id}: [{failed}]"
        )
        self.source_id = source_id
        self.errors = errors


class QueueFullError(OverflowError):
    """In-process queue at capacity under the `reject` overflow policy."""


__all__ = [
    "JobError",
    "FatalJobError",
    "UnknownJobError",
    "MalformedJobError",
    "InvalidResourceKindError",
    "TransientExternalError",
    "CascadeDestroyError",
    "QueueFullError",
]
