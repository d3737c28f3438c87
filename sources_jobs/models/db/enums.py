"""Central Enum definitions for core domain states.

These replace scattered string literals so models, jobs and services agree
on availability states and the resource kinds a teardown can target.
"""
from __future__ import annotations
import enum


class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    PARTIALLY_AVAILABLE = "partially_available"
    UNAVAILABLE = "unavailable"


class ResourceKind(str, enum.Enum):
    SOURCE = "source"
    APPLICATION = "application"


class MetaDataType(str, enum.Enum):
    APP_META_DATA = "AppMetaData"
    SUPERKEY_META_DATA = "SuperKeyMetaData"


__all__ = [
    "AvailabilityStatus",
    "ResourceKind",
    "MetaDataType",
]
