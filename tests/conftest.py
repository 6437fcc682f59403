from __future__ import annotations

import threading
from typing import Any, Callable

import pytest

from rest_tools.config.settings import Settings
from rest_tools.tools.registry import ToolRegistry, load_tools
from rest_tools.tools.transport import TransportResponse

Responder = Callable[[dict[str, Any]], TransportResponse]


def _default_responder(call: dict[str, Any]) -> TransportResponse:
    return TransportResponse(
        status=200,
        headers={"content-type": "application/json", "x-ratelimit-remaining": "99", "server": "x"},
        body={"data": {"user": {"id": "u1"}}, "url": call["url"]},
        reason="OK",
    )


class FakeTransport:
    """Test double for HttpTransport that records every request."""

    def __init__(self, responder: Responder | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.responder = responder or _default_responder
        self._lock = threading.Lock()

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        query: dict[str, Any],
        body: Any = None,
        timeout_s: float,
    ) -> TransportResponse:
        call = {
            "method": method,
            "url": url,
            "headers": headers,
            "query": query,
            "body": body,
            "timeout_s": timeout_s,
        }
        with self._lock:
            self.calls.append(call)
        return self.responder(call)


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def emit(self, event: str, **fields: Any) -> None:
        with self._lock:
            self.events.append((event, fields))

    def names(self) -> list[str]:
        return [event for event, _ in self.events]

    def first(self, name: str) -> dict[str, Any]:
        return next(fields for event, fields in self.events if event == name)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def environ() -> dict[str, str]:
    return {"PETSTORE_TOKEN": "secret-token"}


@pytest.fixture
def sample_config() -> dict[str, Any]:
    return {
        "server": {"name": "petstore", "version": "1.0.0", "description": "Pet store API"},
        "api": {
            "baseUrl": "https://api.example.com/v1",
            "timeout": 5000,
            "headers": {
                "Authorization": "Bearer {env.PETSTORE_TOKEN}",
                "X-Client": "rest-tools",
            },
        },
        "tools": [
            {
                "name": "get_user",
                "description": "Fetch a user by id",
                "method": "GET",
                "path": "/users/{id}",
                "pathParams": {"id": "{args.user_id}"},
                "queryParams": {
                    "expand": "{args.expand?}",
                    "limit": "{args.limit || 25}",
                    "q": "{args.q}",
                },
                "responseTransform": "data.user",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "user_id": {"type": "string", "minLength": 1},
                        "expand": {"type": "boolean"},
                        "limit": {"type": "integer", "minimum": 1, "maximum": 100},
                        "q": {"type": "string"},
                    },
                    "required": ["user_id"],
                },
            },
            {
                "name": "create_pet",
                "description": "Create a pet",
                "method": "POST",
                "path": "/pets",
                "headers": {"X-Request-Source": "{env.REQUEST_SOURCE || 'tools'}"},
                "bodyTemplate": {
                    "name": "{args.name}",
                    "age": "{args.age}",
                    "tag": "{args.tag?}",
                    "label": "pet-{args.name}",
                },
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "age": {"type": "integer", "minimum": 0},
                        "tag": {"type": "string", "enum": ["cat", "dog"]},
                        "owner": {
                            "type": "object",
                            "properties": {"email": {"type": "string", "pattern": "@"}},
                            "required": ["email"],
                        },
                    },
                    "required": ["name"],
                },
            },
            {
                "name": "delete_pet",
                "description": "Delete a pet",
                "method": "DELETE",
                "path": "/pets/{pet_id}",
                "pathParams": {"pet_id": "{args.pet_id}"},
                "bodyTemplate": {"force": True},
                "inputSchema": {
                    "type": "object",
                    "properties": {"pet_id": {"type": "integer"}},
                    "required": ["pet_id"],
                },
            },
        ],
    }


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def registry(
    sample_config: dict[str, Any],
    environ: dict[str, str],
    transport: FakeTransport,
    sink: RecordingSink,
    settings: Settings,
) -> ToolRegistry:
    return load_tools(
        sample_config,
        environ=environ,
        transport=transport,
        sink=sink,
        settings=settings,
    )
