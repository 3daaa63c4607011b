from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..config import Settings
from ..deps import ConfigError, ToolError, get_http, get_settings
from . import Tool

log = logging.getLogger(__name__)

NO_RESULTS = "No se encontraron resultados relevantes para la búsqueda."

router = APIRouter(tags=["Búsqueda"])


class SearchRequest(BaseModel):
    query: Optional[str] = Field(default=None, description="Los términos a buscar en la web.")
    count: Optional[int] = Field(
        default=None, ge=1, description="Número de resultados a devolver. Valor por defecto 6."
    )


@router.post(
    "/web-search",
    operation_id="webSearch",
    summary="Realiza una búsqueda en la web con SearXNG.",
)
async def web_search(
    body: Optional[SearchRequest] = None,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http),
):
    body = body or SearchRequest()
    if not body.query:
        raise ToolError("El parámetro 'query' es requerido.", status_code=400)
    if not settings.SEARXNG_URL:
        raise ConfigError("El servicio de búsqueda web no está configurado.")
    count = body.count or settings.SEARCH_DEFAULT_COUNT

    try:
        response = await http.get(
            settings.SEARXNG_URL, params={"q": body.query, "format": "json"}
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        log.error("SearXNG request failed: %s", exc)
        raise ToolError(
            "El servicio de búsqueda web no está disponible en este momento."
        ) from exc

    if not isinstance(data, dict):
        data = {}
    results = data.get("results") or []
    out: dict = {"status": "success"}
    if not results:
        out["results"] = NO_RESULTS
    else:
        out["results"] = [
            {"title": r.get("title"), "url": r.get("url"), "content": r.get("content")}
            for r in results[:count]
        ]
    if data.get("suggestions"):
        out["suggestions"] = data["suggestions"]
    return out


TOOL = Tool(
    name="search",
    title="Herramienta de Búsqueda Web",
    description="Búsquedas en internet a través de SearXNG.",
    router=router,
)
