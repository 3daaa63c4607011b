"""Immutable events carried by the broadcast bus."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal["connection", "request", "response", "webhook_event", "relay"]


def dumps(obj: Any) -> str:
    """Compact JSON, key order preserved."""

    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False, default=str)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Event:
    """A record broadcast to one or more subscribers.

    The wire body is serialized once, at construction, so writing the same
    event to many subscribers never re-encodes or mutates it.
    """

    type: EventType
    data: str
    timestamp: str = field(default_factory=_now)

    @classmethod
    def _build(cls, type_: EventType, body: dict[str, Any], timestamp: str | None = None):
        ts = timestamp or _now()
        return cls(type=type_, data=dumps(body), timestamp=ts)

    @classmethod
    def connection(cls) -> "Event":
        return cls._build("connection", {"type": "connection", "status": "established"})

    @classmethod
    def request(cls, method: str, url: str, body: Any = None) -> "Event":
        ts = _now()
        payload: dict[str, Any] = {"type": "request", "timestamp": ts, "method": method, "url": url}
        if body:
            payload["body"] = body
        return cls._build("request", payload, ts)

    @classmethod
    def response(cls, method: str, url: str, status: int) -> "Event":
        ts = _now()
        return cls._build(
            "response",
            {"type": "response", "timestamp": ts, "method": method, "url": url, "status": status},
            ts,
        )

    @classmethod
    def webhook(cls, source: str, payload: Any) -> "Event":
        ts = _now()
        return cls._build(
            "webhook_event",
            {"type": "webhook_event", "timestamp": ts, "source": source, "payload": payload},
            ts,
        )

    @classmethod
    def relay(cls, payload: Any) -> "Event":
        # passed through verbatim; no envelope
        return cls(type="relay", data=dumps(payload))

    @classmethod
    def instance_connected(cls, instance_name: str) -> "Event":
        return cls.relay({"status": "connected", "instanceName": instance_name})
