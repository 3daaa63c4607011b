from __future__ import annotations

from typing import AsyncIterator

from sse_starlette.sse import EventSourceResponse
from starlette.background import BackgroundTask

from .bus import BroadcastBus
from .registry import Subscriber


async def _drain(bus: BroadcastBus, sub: Subscriber) -> AsyncIterator[dict]:
    try:
        while not sub.closed:
            yield {"data": await sub.sink.read()}
    finally:
        bus.close(sub)


def event_stream(bus: BroadcastBus, sub: Subscriber) -> EventSourceResponse:
    """Stream a registered subscriber's events until the client goes away.

    Cleanup runs from the generator's ``finally`` and from a background
    task; a client that drops before the first chunk never starts the
    generator. ``BroadcastBus.close`` only acts once.
    """

    return EventSourceResponse(
        _drain(bus, sub),
        sep="\n",
        headers={"Cache-Control": "no-cache"},
        background=BackgroundTask(bus.close, sub),
    )
