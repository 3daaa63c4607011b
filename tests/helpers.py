from __future__ import annotations

import asyncio
import json
from typing import Callable

import httpx
from fastapi import FastAPI


class Upstream:
    """Canned responses for the services the tools call, keyed by method and path."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: list[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, json_body=None) -> None:
        self.routes[(method, path)] = lambda req: httpx.Response(status, json=json_body)

    def fail(self, method: str, path: str) -> None:
        def _raise(req: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=req)

        self.routes[(method, path)] = _raise

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        return route(request)

    def paths(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.calls]


def decoded(items: list[str]) -> list[dict]:
    return [json.loads(item) for item in items]


def parse_frame(frame: str) -> dict:
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):-2])


class StreamClient:
    """Hold an SSE response open against the ASGI app and read it chunk by chunk."""

    def __init__(self, app: FastAPI, path: str, spec_version: str = "2.4") -> None:
        self.app = app
        self.path = path
        self.spec_version = spec_version
        self.messages: asyncio.Queue = asyncio.Queue()
        self._disconnect = asyncio.Event()
        self._sent_request = False
        self.status: int | None = None
        self.headers: dict[str, str] = {}

    async def _receive(self):
        if not self._sent_request:
            self._sent_request = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self._disconnect.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message) -> None:
        await self.messages.put(message)

    async def __aenter__(self) -> "StreamClient":
        scope = {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": self.spec_version},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": self.path,
            "raw_path": self.path.encode(),
            "root_path": "",
            "query_string": b"",
            "headers": [(b"host", b"test"), (b"accept", b"text/event-stream")],
            "client": ("127.0.0.1", 5000),
            "server": ("test", 80),
        }
        self.task = asyncio.create_task(self.app(scope, self._receive, self._send))
        start = await asyncio.wait_for(self.messages.get(), 2)
        assert start["type"] == "http.response.start"
        self.status = start["status"]
        self.headers = {k.decode().lower(): v.decode() for k, v in start["headers"]}
        return self

    async def next_frame(self, timeout: float = 2.0) -> str:
        while True:
            message = await asyncio.wait_for(self.messages.get(), timeout)
            body = message.get("body", b"")
            if body:
                return body.decode("utf-8")

    async def next_json(self, timeout: float = 2.0) -> dict:
        return parse_frame(await self.next_frame(timeout))

    async def close(self) -> None:
        self._disconnect.set()
        await asyncio.wait_for(self.task, 2)

    async def __aexit__(self, *exc) -> None:
        if not self.task.done():
            await self.close()
