import logging
import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .metrics import LAT, REQS

log = logging.getLogger("toolgateway.access")


def init_logging(level: str = "INFO"):
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


def _req_id(headers: Headers) -> str:
    """Return the inbound request ID or generate a UUID4."""

    return headers.get("x-request-id") or str(uuid.uuid4())


class RequestLogMiddleware:
    """Access log, request metrics and `X-Request-ID` echo.

    Written against raw ASGI so long-lived event streams pass through
    without being buffered; the log line is emitted when the exchange ends.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _req_id(Headers(scope=scope))
        method = scope["method"]
        path = scope["path"]
        start = time.time()
        status = 500

        async def _send(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                headers = MutableHeaders(scope=message)
                if "x-request-id" not in headers:
                    headers["X-Request-ID"] = request_id
            await send(message)

        try:
            await self.app(scope, receive, _send)
        finally:
            duration = time.time() - start
            REQS.labels(method, path, str(status)).inc()
            LAT.labels(method, path).observe(duration)
            log.info(
                "%s %s %s %.2fms request_id=%s",
                method,
                path,
                status,
                duration * 1000,
                request_id,
            )
