"""Name -> factory table used to rebuild jobs popped from the durable queue.

Job variants register themselves with `@register_job`; the envelope looks the
name up here, so adding a variant never touches the dispatch code.
"""
from __future__ import annotations

from typing import Callable, TypeVar

from sources_jobs.jobs.base import Job
from sources_jobs.jobs.errors import UnknownJobError

JobFactory = Callable[[bytes], Job]
J = TypeVar("J", bound=type[Job])

_FACTORIES: dict[str, JobFactory] = {}


def register_job(cls: J) -> J:
    if cls.name in _FACTORIES:
        raise ValueError(f"job {cls.name!r} registered twice")
    _FACTORIES[cls.name] = cls.from_json
    return cls


def build_job(job_name: str, payload: bytes) -> Job:
    factory = _FACTORIES.get(job_name)
    if factory is None:
        raise UnknownJobError(job_name)
    return factory(payload)


def registered_jobs() -> list[str]:
    return sorted(_FACTORIES)


__all__ = ["register_job", "build_job", "registered_jobs"]
