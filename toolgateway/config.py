from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

load_dotenv()


class Settings(BaseModel):
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=5005)
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ALLOW_ORIGINS: str = Field(default="*")
    PUBLIC_SERVER_URL: Optional[str] = Field(default=None)
    SEARXNG_URL: Optional[str] = Field(default=None)
    SEARCH_DEFAULT_COUNT: int = Field(default=6)
    EVOLUTION_API_URL: Optional[str] = Field(default=None)
    EVOLUTION_API_KEY: Optional[str] = Field(default=None)
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=30.0)
    SSE_QUEUE_MAXSIZE: int = Field(default=1000, description="0 means unbounded")
    MONITOR_EXCLUDED_PATHS: str = Field(
        default="/api/events", description="comma-separated paths the monitor skips"
    )

    def excluded_paths(self) -> set[str]:
        return {p.strip() for p in self.MONITOR_EXCLUDED_PATHS.split(",") if p.strip()}


def _load_settings(existing: Settings | None = None) -> Settings:
    values: dict[str, Any] = {}
    for name, field in Settings.model_fields.items():
        env_value = os.getenv(name)
        if env_value is None:
            if existing is not None and hasattr(existing, name):
                values[name] = getattr(existing, name)
                continue
            values[name] = field.get_default(call_default_factory=True)
        elif env_value == "" and not field.is_required() and field.default is None:
            values[name] = None
        else:
            values[name] = env_value

    try:
        return Settings(**values)
    except ValidationError as exc:
        bad = sorted({str(error["loc"][0]) for error in exc.errors() if error.get("loc")})
        raise RuntimeError(
            f"Invalid environment configuration: {', '.join(bad)}"
        ) from exc


settings = _load_settings()


def reload_settings() -> Settings:
    fresh = _load_settings(settings)
    settings.__dict__.update(fresh.__dict__)
    return settings
