from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from .bus import BroadcastBus
from .deps import get_bus
from .events import Event
from .streams import event_stream

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Monitor"])


@router.get("/events")
async def events(bus: BroadcastBus = Depends(get_bus)):
    """Global monitor stream: every request, response and webhook event."""

    sub = bus.open_monitor()
    return event_stream(bus, sub)


@router.post("/webhook")
async def webhook(
    source: Optional[str] = Query(None),
    payload: Any = Body(None),
    bus: BroadcastBus = Depends(get_bus),
):
    if not source:
        return JSONResponse(
            {"error": 'El parámetro "source" es requerido en la URL.'}, status_code=400
        )
    delivered = bus.broadcast_all(Event.webhook(source, payload))
    log.info("webhook from %s relayed to %d monitor(s)", source, delivered)
    return {"status": "success", "message": "Webhook event received and broadcasted."}
