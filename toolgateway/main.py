from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import monitor
from .bus import BroadcastBus
from .config import Settings, reload_settings, settings as default_settings
from .deps import ToolError
from .interceptor import MonitorMiddleware
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import router as metrics_router
from .tools import all_tools

log = logging.getLogger(__name__)


class Health(BaseModel):
    status: str
    time: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.settings is default_settings:
        reload_settings()
    settings: Settings = app.state.settings
    if app.state.http.is_closed:
        app.state.http = httpx.AsyncClient(timeout=settings.UPSTREAM_TIMEOUT_SECONDS)
    log.info("tool gateway up at %s", settings.PUBLIC_SERVER_URL or f"port {settings.PORT}")
    try:
        yield
    finally:
        await app.state.http.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build an app with its own broadcast bus and upstream HTTP client."""

    settings = settings or default_settings
    bus = BroadcastBus(queue_maxsize=settings.SSE_QUEUE_MAXSIZE)

    app = FastAPI(title="Tool Gateway", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.bus = bus
    app.state.http = httpx.AsyncClient(timeout=settings.UPSTREAM_TIMEOUT_SECONDS)

    # added innermost first
    app.add_middleware(MonitorMiddleware, bus=bus, exclude=settings.excluded_paths())
    origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLogMiddleware)

    @app.exception_handler(ToolError)
    async def _tool_error(request: Request, exc: ToolError):
        return JSONResponse(
            {"status": "error", "message": exc.message}, status_code=exc.status_code
        )

    app.include_router(metrics_router())
    app.include_router(monitor.router)

    tools = all_tools()
    for tool in tools:
        app.include_router(tool.router, prefix=tool.prefix)
        _add_spec_route(app, tool)
        log.info("tool %s registered at %s", tool.name, tool.prefix)

    @app.get("/health", response_model=Health)
    def health():
        return Health(status="ok", time=datetime.now(timezone.utc).isoformat())

    @app.get("/")
    def root():
        return {
            "status": "online",
            "message": "El servidor de herramientas está funcionando.",
            "available_tools": {t.name: f"{t.prefix}/openapi.json" for t in tools},
        }

    return app


def _add_spec_route(app: FastAPI, tool) -> None:
    spec = tool.openapi()

    @app.get(f"{tool.prefix}/openapi.json", include_in_schema=False)
    def _spec():
        return spec


init_logging(default_settings.LOG_LEVEL)

app = create_app()
