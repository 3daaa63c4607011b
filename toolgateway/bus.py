"""Best-effort fan-out of events to open stream subscribers.

Nothing here awaits: every write is a ``put_nowait`` onto the subscriber's
sink, so a broadcast runs to completion before the event loop handles any
other request or disconnect. Registry mutations need no lock.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Optional

from .events import Event
from .metrics import DROPPED, EVENTS, SUBSCRIBERS
from .registry import InstanceRegistry, Subscriber, SubscriberRegistry

log = logging.getLogger(__name__)


class BroadcastBus:
    def __init__(self, queue_maxsize: int = 0) -> None:
        self.queue_maxsize = queue_maxsize
        self.monitors = SubscriberRegistry()
        self.instances = InstanceRegistry()
        self._ids = itertools.count(1)

    # subscription lifecycle

    def open_monitor(self) -> Subscriber:
        sub = Subscriber(next(self._ids), maxsize=self.queue_maxsize)
        self.monitors.add(sub)
        sub.send(Event.connection().data)
        SUBSCRIBERS.labels("global").set(len(self.monitors))
        log.info("monitor subscriber %s connected (%d open)", sub.id, len(self.monitors))
        return sub

    def open_instance(self, instance_name: str) -> Subscriber:
        sub = Subscriber(next(self._ids), key=instance_name, maxsize=self.queue_maxsize)
        self.instances.add(sub)
        sub.send(Event.instance_connected(instance_name).data)
        SUBSCRIBERS.labels("instance").set(len(self.instances))
        log.info("instance %s: subscriber %s connected", instance_name, sub.id)
        return sub

    def close(self, sub: Subscriber) -> bool:
        """Release a subscriber. Safe to call any number of times."""

        if not sub.close():
            return False
        if self.monitors.remove(sub):
            SUBSCRIBERS.labels("global").set(len(self.monitors))
            log.info("monitor subscriber %s disconnected (%d open)", sub.id, len(self.monitors))
        elif self.instances.remove(sub):
            SUBSCRIBERS.labels("instance").set(len(self.instances))
            log.info("instance %s: subscriber %s disconnected", sub.key, sub.id)
        else:
            log.info("subscriber %r disconnected after being superseded", sub)
        return True

    # delivery

    def _deliver(self, sub: Subscriber, data: str) -> bool:
        try:
            ok = sub.send(data)
        except Exception:  # noqa: BLE001
            log.exception("write to subscriber %s failed", sub.id)
            DROPPED.labels("error").inc()
            return False
        if not ok:
            log.warning("subscriber %s dropped an event (closed or full)", sub.id)
            DROPPED.labels("full" if not sub.closed else "closed").inc()
        return ok

    def broadcast_all(self, event: Event) -> int:
        """Write ``event`` to every monitor subscriber. Returns deliveries."""

        EVENTS.labels(event.type).inc()
        delivered = 0
        for sub in self.monitors.list():
            if self._deliver(sub, event.data):
                delivered += 1
        return delivered

    def broadcast_to(self, key: Optional[Any], event: Event) -> bool:
        """Write ``event`` to the subscriber holding ``key``, if any."""

        EVENTS.labels(event.type).inc()
        sub = self.instances.get(key)
        if sub is None:
            log.info("no listener for instance %s, dropping event", key)
            DROPPED.labels("no_listener").inc()
            return False
        return self._deliver(sub, event.data)
