from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REQS = Counter(
    "toolgateway_requests_total",
    "Requests",
    ["method", "path", "status"],
)
LAT = Histogram(
    "toolgateway_latency_seconds",
    "Latency",
    ["method", "path"],
)
SUBSCRIBERS = Gauge(
    "toolgateway_subscribers",
    "Open event stream subscribers",
    ["scope"],
)
EVENTS = Counter(
    "toolgateway_events_total",
    "Events handed to the broadcast bus",
    ["type"],
)
DROPPED = Counter(
    "toolgateway_deliveries_dropped_total",
    "Event deliveries that reached no subscriber",
    ["reason"],
)


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return r
