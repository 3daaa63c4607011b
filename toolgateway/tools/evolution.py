"""WhatsApp instance management through Evolution API, plus the live
status relay: Evolution posts webhooks here and each one is forwarded, as
is, to whoever holds the instance's status stream."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Body, Depends
from fastapi.responses import PlainTextResponse

from ..bus import BroadcastBus
from ..config import Settings
from ..deps import ConfigError, ToolError, get_bus, get_http, get_settings
from ..events import Event
from ..streams import event_stream
from . import Tool

log = logging.getLogger(__name__)

router = APIRouter()


class EvolutionClient:
    def __init__(self, http: httpx.AsyncClient, base_url: str, api_key: str) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.headers = {"apikey": api_key, "Content-Type": "application/json"}

    async def request(self, method: str, path: str, **kw) -> Any:
        response = await self.http.request(
            method, f"{self.base_url}{path}", headers=self.headers, **kw
        )
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()


def get_client(
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http),
) -> EvolutionClient:
    if not settings.EVOLUTION_API_URL or not settings.EVOLUTION_API_KEY:
        log.error("Evolution API configuration is incomplete")
        raise ConfigError("El servicio de Evolution API no está configurado correctamente.")
    return EvolutionClient(http, settings.EVOLUTION_API_URL, settings.EVOLUTION_API_KEY)


def _upstream_detail(exc: Exception) -> Any:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            return exc.response.json()
        except ValueError:
            return exc.response.text
    return str(exc)


def _field(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _expect(data: Any, kind: type, what: str) -> Any:
    if not isinstance(data, kind):
        raise ValueError(f"unexpected {what} body from Evolution API: {data!r}")
    return data


# real-time relay


@router.get(
    "/instances/{instanceName}/status-stream",
    operation_id="getInstanceStatusStream",
    summary="Se suscribe a los cambios de estado de una instancia en tiempo real.",
    tags=["Evolution Manager - Real-Time"],
    response_class=PlainTextResponse,
)
async def status_stream(instanceName: str, bus: BroadcastBus = Depends(get_bus)):
    sub = bus.open_instance(instanceName)
    return event_stream(bus, sub)


@router.post(
    "/webhook",
    operation_id="handleEvolutionWebhook",
    summary="Endpoint para recibir webhooks de Evolution API.",
    tags=["Evolution Manager - Real-Time"],
    response_class=PlainTextResponse,
)
async def webhook(payload: Any = Body(None), bus: BroadcastBus = Depends(get_bus)):
    instance = payload.get("instance") if isinstance(payload, dict) else None
    log.info("webhook received for instance %s", instance)
    log.debug("webhook payload: %s", payload)
    bus.broadcast_to(instance, Event.relay(payload))
    # 200 whether or not anyone is listening
    return PlainTextResponse("Webhook received", status_code=200)


# instance management


@router.post(
    "/instances/create",
    operation_id="createInstance",
    summary="Crea una instancia de WhatsApp y devuelve su código QR.",
    tags=["Evolution Manager"],
)
async def create_instance(
    body: Optional[dict] = Body(None), client: EvolutionClient = Depends(get_client)
):
    body = body or {}
    instance_name = body.get("instanceName")
    log.info("createInstance requested for %s", instance_name)
    if not instance_name:
        raise ToolError('El parámetro "instanceName" es requerido.', status_code=400)

    payload = {**body, "integration": "WHATSAPP-BAILEYS", "qrcode": True}
    try:
        created = await client.request("POST", "/instance/create", json=payload)
        qr_base64 = _field(_field(created, "qrcode"), "base64")
        if not qr_base64 and _field(_field(created, "hash"), "apikey"):
            connected = await client.request("GET", f"/instance/connect/{instance_name}")
            qr_base64 = _field(connected, "base64")
    except (httpx.HTTPError, ValueError) as exc:
        detail = _upstream_detail(exc)
        log.error("createInstance failed: %s", detail)
        message = detail if isinstance(detail, str) and detail else "No se pudo crear la instancia."
        raise ToolError(message) from exc

    return {
        "qrCodeBase64": qr_base64,
        "presentation_suggestion": (
            f"La instancia '{instance_name}' ha sido creada. Muestra esta imagen QR "
            "al usuario para que la escanee con su teléfono."
        ),
    }


@router.get(
    "/instances",
    operation_id="fetchAllInstances",
    summary="Lista las instancias existentes y su estado.",
    tags=["Evolution Manager"],
)
async def list_instances(client: EvolutionClient = Depends(get_client)):
    try:
        data = await client.request("GET", "/instance/fetchInstances") or []
        instances = []
        for inst in _expect(data, list, "fetchInstances"):
            inst = _expect(inst, dict, "fetchInstances item")
            instances.append({"name": inst.get("name"), "state": inst.get("connectionStatus")})
    except (httpx.HTTPError, ValueError) as exc:
        log.error("fetchAllInstances failed: %s", _upstream_detail(exc))
        raise ToolError("No se pudieron obtener las instancias.") from exc
    return {
        "instances": instances,
        "presentation_suggestion": (
            "Presenta la información de las instancias en una tabla o lista, "
            "mostrando el nombre y el estado de cada una."
        ),
    }


async def _connection_state(client: EvolutionClient, name: str) -> str:
    data = await client.request("GET", f"/instance/connectionState/{name}") or {}
    _expect(data, dict, "connectionState")
    return _expect(data.get("instance") or {}, dict, "connectionState").get("state")


@router.get(
    "/instances/{instanceName}",
    operation_id="getInstanceState",
    summary="Consulta el estado de conexión de una instancia.",
    tags=["Evolution Manager"],
)
async def instance_state(instanceName: str, client: EvolutionClient = Depends(get_client)):
    try:
        state = await _connection_state(client, instanceName)
    except (httpx.HTTPError, ValueError) as exc:
        log.error("connectionState for %s failed: %s", instanceName, _upstream_detail(exc))
        raise ToolError(
            f"No se pudo obtener el estado de la instancia {instanceName}."
        ) from exc
    return {
        "instance": {"name": instanceName, "state": state},
        "presentation_suggestion": (
            "Informa directamente el estado de la instancia. "
            f"Ejemplo: 'La instancia {instanceName} está {state}.'"
        ),
    }


@router.delete(
    "/instances/{instanceName}",
    operation_id="deleteInstance",
    summary="Cierra la sesión (si está conectada) y elimina una instancia.",
    tags=["Evolution Manager"],
)
async def delete_instance(instanceName: str, client: EvolutionClient = Depends(get_client)):
    log.info("deleteInstance requested for %s", instanceName)
    try:
        try:
            state = await _connection_state(client, instanceName)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return {
                    "status": "success",
                    "message": f"La instancia {instanceName} no fue encontrada.",
                    "presentation_suggestion": (
                        f"Informa al usuario que la instancia '{instanceName}' ya no existía."
                    ),
                }
            raise

        if state in ("CONNECTED", "open"):
            log.info("instance %s is connected, logging out first", instanceName)
            await client.request("DELETE", f"/instance/logout/{instanceName}")
        else:
            log.info("instance %s not connected (state %s), skipping logout", instanceName, state)

        details = await client.request("DELETE", f"/instance/delete/{instanceName}")
    except (httpx.HTTPError, ValueError) as exc:
        log.error("deleteInstance for %s failed: %s", instanceName, _upstream_detail(exc))
        raise ToolError(
            f"No se pudo completar la eliminación de la instancia {instanceName}."
        ) from exc

    return {
        "status": "success",
        "details": details,
        "presentation_suggestion": (
            f"Confirma al usuario que la instancia '{instanceName}' ha sido eliminada con éxito."
        ),
    }


TOOL = Tool(
    name="evolution",
    title="Herramienta de Gestión de Evolution API",
    description=(
        "Permite gestionar instancias de WhatsApp y escuchar sus cambios de estado "
        "en tiempo real a través de Evolution API."
    ),
    router=router,
)
