"""FastAPI host exposing the loaded tools over HTTP."""

from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from rest_tools.config.settings import Settings, get_settings
from rest_tools.tools import CallResult, ToolRegistry, load_tools
from rest_tools.tools.loader import load_config_file

logger = logging.getLogger(__name__)
_registry_lock = threading.Lock()


class CallToolRequest(BaseModel):
    arguments: dict[str, Any] = Field(default_factory=dict)


def _build_registry(settings: Settings) -> ToolRegistry:
    config_path = settings.resolved_config_path()
    if config_path is None:
        raise RuntimeError(
            "Missing tool configuration. Set REST_TOOLS_CONFIG_PATH before starting the app."
        )
    logger.info("config_load event=start path=%s", config_path)
    registry = load_tools(load_config_file(config_path), settings=settings)
    logger.info(
        "config_load event=completed server=%s tools=%d",
        registry.config.server.name,
        len(registry.tools),
    )
    return registry


def _ensure_registry(app: FastAPI, settings: Settings) -> ToolRegistry:
    # Reload swaps the whole registry; never mutate one in place.
    with _registry_lock:
        if not hasattr(app.state, "registry"):
            app.state.registry = _build_registry(settings)
        return app.state.registry


def create_app(
    *,
    registry: ToolRegistry | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_registry(app, settings)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan if registry is None else None)
    if registry is not None:
        app.state.registry = registry

    def _get_registry(request: Request) -> ToolRegistry:
        # Covers clients that do not run the lifespan hook.
        if not hasattr(request.app.state, "registry"):
            return _ensure_registry(request.app, settings)
        return request.app.state.registry

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/tools")
    def tools(request: Request) -> dict[str, list[dict[str, Any]]]:
        descriptors = _get_registry(request).descriptors()
        return {"tools": [item.model_dump(by_alias=True) for item in descriptors]}

    @app.get("/tools/{name}")
    def tool_info(name: str, request: Request) -> dict[str, Any]:
        tool_registry = _get_registry(request)
        registered = tool_registry.tools.get(name)
        if registered is None:
            raise HTTPException(status_code=404, detail=f'Tool "{name}" not found')
        definition = registered.definition
        return {
            "name": definition.name,
            "method": definition.method,
            "path": definition.path,
            "description": definition.description,
            "descriptor": registered.descriptor.model_dump(by_alias=True),
        }

    @app.post("/tools/{name}/call", response_model=CallResult)
    def call(name: str, payload: CallToolRequest, request: Request) -> CallResult:
        tool_registry = _get_registry(request)
        if not tool_registry.has_tool(name):
            raise HTTPException(status_code=404, detail=f'Tool "{name}" not found')
        return tool_registry.call(name, payload.arguments)

    return app
