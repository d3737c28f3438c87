"""Time utilities (UTC now, elapsed milliseconds, event timestamp format)."""
from __future__ import annotations
import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def elapsed_ms(start: float) -> float:
    """Milliseconds since a `time.perf_counter()` reading."""
    return (time.perf_counter() - start) * 1000


def to_record_format(value: datetime | None) -> str | None:
    """Render a timestamp the way event consumers expect (UTC, second precision)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


__all__ = ["utc_now", "elapsed_ms", "to_record_format"]
