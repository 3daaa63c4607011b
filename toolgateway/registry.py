"""In-memory registries of connected stream subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

log = logging.getLogger(__name__)

GLOBAL_KEY = "global"


class SubscriberSink:
    """Ordered buffer of serialized event payloads drained by one stream."""

    __slots__ = ("_queue", "closed")

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max(maxsize, 0))
        self.closed = False

    def write(self, data: str) -> bool:
        """Queue a payload without suspending. Returns False if it was dropped."""

        if self.closed:
            return False
        try:
            self._queue.put_nowait(data)
        except asyncio.QueueFull:
            return False
        return True

    async def read(self) -> str:
        return await self._queue.get()

    def drain(self) -> list[str]:
        """Pop every queued payload without waiting."""

        items = []
        while not self._queue.empty():
            items.append(self._queue.get_nowait())
        return items


class Subscriber:
    __slots__ = ("id", "key", "sink")

    def __init__(self, id: int, key: str = GLOBAL_KEY, maxsize: int = 0) -> None:
        self.id = id
        self.key = key
        self.sink = SubscriberSink(maxsize)

    @property
    def closed(self) -> bool:
        return self.sink.closed

    def send(self, data: str) -> bool:
        return self.sink.write(data)

    def close(self) -> bool:
        """Mark the sink closed. True only on the first call."""

        if self.sink.closed:
            return False
        self.sink.closed = True
        return True

    def __repr__(self) -> str:
        return f"Subscriber(id={self.id}, key={self.key!r})"


class SubscriberRegistry:
    """Global monitor subscribers, kept in insertion order and unique by id."""

    def __init__(self) -> None:
        self._subs: dict[int, Subscriber] = {}

    def add(self, subscriber: Subscriber) -> None:
        self._subs[subscriber.id] = subscriber

    def remove(self, subscriber: Subscriber) -> bool:
        if self._subs.get(subscriber.id) is not subscriber:
            return False
        del self._subs[subscriber.id]
        return True

    def list(self) -> list[Subscriber]:
        return list(self._subs.values())

    def __len__(self) -> int:
        return len(self._subs)


class InstanceRegistry:
    """One subscriber slot per instance key; a new subscription takes the slot."""

    def __init__(self) -> None:
        self._slots: dict[str, Subscriber] = {}

    def add(self, subscriber: Subscriber) -> Optional[Subscriber]:
        previous = self._slots.get(subscriber.key)
        self._slots[subscriber.key] = subscriber
        if previous is not None and previous is not subscriber:
            log.info("instance %s: %r superseded by %r", subscriber.key, previous, subscriber)
        return previous

    def remove(self, subscriber: Subscriber) -> bool:
        # identity check: a superseded subscriber must not evict its replacement
        if self._slots.get(subscriber.key) is not subscriber:
            return False
        del self._slots[subscriber.key]
        return True

    def get(self, key: Optional[str]) -> Optional[Subscriber]:
        if not isinstance(key, str):
            return None
        return self._slots.get(key)

    def __len__(self) -> int:
        return len(self._slots)
