from __future__ import annotations

from typing import Callable

import httpx
import pytest
from fastapi import FastAPI
from sse_starlette.sse import AppStatus

from toolgateway.config import Settings
from toolgateway.main import create_app

from .helpers import Upstream

SEARXNG_URL = "http://searxng.test/search"
EVOLUTION_URL = "http://evolution.test"


def make_settings(**overrides) -> Settings:
    values = dict(
        SEARXNG_URL=SEARXNG_URL,
        EVOLUTION_API_URL=EVOLUTION_URL,
        EVOLUTION_API_KEY="evo-key",
        SSE_QUEUE_MAXSIZE=100,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture(autouse=True)
def _fresh_sse_exit_event():
    # the shutdown event binds to the first loop that waits on it
    AppStatus.should_exit_event = None
    yield
    AppStatus.should_exit_event = None


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def app_factory(upstream: Upstream) -> Callable[..., FastAPI]:
    def _build(**overrides) -> FastAPI:
        app = create_app(make_settings(**overrides))
        app.state.http = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))
        return app

    return _build


@pytest.fixture
def app(app_factory) -> FastAPI:
    return app_factory()
