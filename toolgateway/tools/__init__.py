"""Tool routers mounted under ``/api/<tool>``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter
from fastapi.openapi.utils import get_openapi


@dataclass
class Tool:
    name: str
    title: str
    description: str
    router: APIRouter

    @property
    def prefix(self) -> str:
        return f"/api/{self.name}"

    def openapi(self) -> dict[str, Any]:
        return get_openapi(
            title=self.title,
            version="1.0.0",
            openapi_version="3.1.0",
            description=self.description,
            routes=self.router.routes,
            servers=[{"url": self.prefix}],
        )


def all_tools() -> list[Tool]:
    from . import evolution, search

    return [search.TOOL, evolution.TOOL]
