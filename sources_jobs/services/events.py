"""Event emission for resource lifecycle notifications.

Events are published to a capped Redis stream; downstream consumers
(availability checkers, provisioning) must treat them as at-least-once and
be idempotent. `raise_event` is the single entry point used by jobs.
"""
from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Protocol

import redis

from sources_jobs.config import EVENT_SETTINGS, QUEUE_SETTINGS
from sources_jobs.utils import get_logger

logger = get_logger(__name__)


class EventError(Exception):
    """Event could not be serialized or published."""


class EventSender(Protocol):
    def send(self, event_type: str, body: bytes, headers: dict[str, str]) -> None: ...


class RedisStreamEventSender:
    def __init__(self, client: Optional[redis.Redis] = None) -> None:
        self._client = client
        self._stream_key = str(EVENT_SETTINGS.get("stream_key", "platform.sources.event-stream"))
        self._maxlen = int(EVENT_SETTINGS.get("maxlen", 10000))

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(str(QUEUE_SETTINGS.get("redis_url", "redis://localhost:6379/0")))
        return self._client

    def send(self, event_type: str, body: bytes, headers: dict[str, str]) -> None:
        fields = {
            "event_type": event_type,
            "body": body,
            "headers": json.dumps(headers),
        }
        try:
            self._get_client().xadd(self._stream_key, fields, maxlen=self._maxlen, approximate=True)
        except redis.RedisError as e:
            raise EventError(f"failed to publish {event_type} to {self._stream_key}: {e}") from e


def raise_event(
    sender: EventSender,
    event_type: str,
    resource: Any,
    headers: Mapping[str, str],
) -> None:
    """Serialize `resource` (a model with `to_event()` or a prepared dict) and publish it.

    Raises EventError; callers treat emission as best-effort and log.
    """
    payload = resource.to_event() if hasattr(resource, "to_event") else resource
    try:
        body = json.dumps(payload).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EventError(f"failed to marshal {event_type} payload: {e}") from e

    event_headers = dict(headers)
    event_headers["event_type"] = event_type
    sender.send(event_type, body, event_headers)
    logger.debug("Raised event", event_type=event_type, resource_id=payload.get("id"))


__all__ = ["EventError", "EventSender", "RedisStreamEventSender", "raise_event"]
