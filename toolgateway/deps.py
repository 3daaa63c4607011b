from __future__ import annotations

import httpx
from fastapi import Request

from .bus import BroadcastBus
from .config import Settings


class ToolError(Exception):
    """A failure reported to the caller as ``{"status": "error", "message": ...}``."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConfigError(ToolError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500)


def get_bus(request: Request) -> BroadcastBus:
    return request.app.state.bus


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_http(request: Request) -> httpx.AsyncClient:
    return request.app.state.http
