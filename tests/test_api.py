from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from rest_tools.api import main as api_main
from rest_tools.api.main import create_app
from rest_tools.config.settings import Settings
from rest_tools.tools.registry import ToolRegistry


@pytest.fixture
def client(registry: ToolRegistry, settings: Settings) -> Iterator[TestClient]:
    app = create_app(registry=registry, settings_override=settings)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "rest-tools"}


def test_list_tools(client: TestClient) -> None:
    response = client.get("/tools")

    assert response.status_code == 200
    tools = response.json()["tools"]
    assert [tool["name"] for tool in tools] == ["get_user", "create_pet", "delete_pet"]
    assert "inputSchema" in tools[0]
    assert "path" not in tools[0]


def test_tool_info(client: TestClient) -> None:
    response = client.get("/tools/create_pet")

    assert response.status_code == 200
    body = response.json()
    assert body["method"] == "POST"
    assert body["path"] == "/pets"
    assert body["descriptor"]["inputSchema"]["required"] == ["name"]

    assert client.get("/tools/unknown").status_code == 404


def test_call_tool(client: TestClient, transport: Any) -> None:
    response = client.post("/tools/get_user/call", json={"arguments": {"user_id": "42"}})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["data"] == {"id": "u1"}
    assert transport.calls[0]["url"] == "https://api.example.com/v1/users/42"


def test_call_tool_failure_is_reported_in_result(client: TestClient, transport: Any) -> None:
    response = client.post("/tools/get_user/call", json={"arguments": {}})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "failed"
    assert body["error_type"] == "ArgumentValidationError"
    assert body["error"] == "Validation failed: Missing required argument: user_id"
    assert transport.calls == []


def test_call_unknown_tool_returns_404(client: TestClient) -> None:
    response = client.post("/tools/unknown/call", json={"arguments": {}})

    assert response.status_code == 404
    assert response.json()["detail"] == 'Tool "unknown" not found'


def test_registry_is_loaded_from_config_path(
    tmp_path: Path, sample_config: dict[str, Any], monkeypatch: pytest.MonkeyPatch
) -> None:
    config_file = tmp_path / "tools.json"
    config_file.write_text(json.dumps(sample_config), encoding="utf-8")
    monkeypatch.setenv("PETSTORE_TOKEN", "from-env")
    settings = Settings(_env_file=None, config_path=str(config_file), app_name="petstore-api")

    app = create_app(settings_override=settings)

    with TestClient(app) as client:
        assert app.state.registry.config.server.name == "petstore"
        assert client.get("/health").json()["service"] == "petstore-api"
        assert len(client.get("/tools").json()["tools"]) == 3


def test_missing_config_path_fails_loudly(settings: Settings) -> None:
    client = TestClient(create_app(settings_override=settings))

    with pytest.raises(RuntimeError, match="REST_TOOLS_CONFIG_PATH"):
        client.get("/tools")


def test_missing_config_path_fails_at_startup(settings: Settings) -> None:
    with pytest.raises(RuntimeError, match="REST_TOOLS_CONFIG_PATH"):
        with TestClient(create_app(settings_override=settings)):
            pass


def test_registry_is_built_once_under_concurrent_first_access(
    registry: ToolRegistry, settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    builds: list[int] = []
    builds_lock = threading.Lock()

    def slow_build(_: Settings) -> ToolRegistry:
        with builds_lock:
            builds.append(1)
        time.sleep(0.05)
        return registry

    monkeypatch.setattr(api_main, "_build_registry", slow_build)
    app = create_app(settings_override=settings)

    with ThreadPoolExecutor(max_workers=6) as pool:
        loaded = list(pool.map(lambda _: api_main._ensure_registry(app, settings), range(6)))

    assert all(item is registry for item in loaded)
    assert builds == [1]
