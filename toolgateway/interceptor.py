"""ASGI middleware mirroring every HTTP exchange onto the monitor stream."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .bus import BroadcastBus
from .events import Event

log = logging.getLogger(__name__)


def _url(scope: Scope) -> str:
    path = scope.get("path", "")
    query = scope.get("query_string", b"")
    return f"{path}?{query.decode('latin-1')}" if query else path


def _json_body(headers: Headers, raw: bytes) -> Any:
    if not raw or "json" not in headers.get("content-type", ""):
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


class MonitorMiddleware:
    """Emit a ``request`` event before dispatch and a ``response`` event once
    the last body chunk has gone out (or the app raised).

    The request body is read up front and replayed untouched to the app.
    """

    def __init__(self, app: ASGIApp, bus: BroadcastBus, exclude: Iterable[str] = ()) -> None:
        self.app = app
        self.bus = bus
        self.exclude = frozenset(exclude)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path") in self.exclude:
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        url = _url(scope)

        buffered: list[Message] = []
        more_body = True
        while more_body:
            message = await receive()
            buffered.append(message)
            if message["type"] != "http.request":
                break
            more_body = message.get("more_body", False)
        raw = b"".join(m.get("body", b"") for m in buffered if m["type"] == "http.request")

        self._emit(Event.request(method, url, _json_body(Headers(scope=scope), raw)))

        async def replay() -> Message:
            if buffered:
                return buffered.pop(0)
            return await receive()

        status = 500
        done = False

        async def _send(message: Message) -> None:
            nonlocal status, done
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                if not done:
                    done = True
                    self._emit(Event.response(method, url, status))

        try:
            await self.app(scope, replay, _send)
        finally:
            if not done:
                done = True
                # stream cut short or app raised before responding
                self._emit(Event.response(method, url, status))

    def _emit(self, event: Event) -> None:
        try:
            self.bus.broadcast_all(event)
        except Exception:  # noqa: BLE001
            log.exception("monitor broadcast failed")
