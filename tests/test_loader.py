from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from rest_tools.tools.errors import ConfigurationError
from rest_tools.tools.loader import load_config_file, parse_config, validate_config


def _issues(exc_info: pytest.ExceptionInfo[ConfigurationError]) -> list[tuple[str, str]]:
    return [(issue.field, issue.message) for issue in exc_info.value.issues]


def test_valid_config_loads_without_warnings(
    sample_config: dict[str, Any], environ: dict[str, str]
) -> None:
    validated = validate_config(sample_config, environ=environ)

    assert validated.warnings == []
    assert [tool.name for tool in validated.config.tools] == [
        "get_user",
        "create_pet",
        "delete_pet",
    ]
    assert validated.config.api.timeout == 5000
    assert validated.config.tools[0].response_transform == "data.user"


def test_base_url_is_resolved_from_environment(sample_config: dict[str, Any]) -> None:
    sample_config["api"]["baseUrl"] = "{env.API_URL}"

    validated = validate_config(
        sample_config, environ={"API_URL": "https://staging.example.com", "PETSTORE_TOKEN": "x"}
    )

    assert validated.config.api.base_url == "https://staging.example.com"


def test_invalid_base_url_is_reported(sample_config: dict[str, Any]) -> None:
    sample_config["api"]["baseUrl"] = "{env.API_URL}"

    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(sample_config, environ={})

    assert ("api.baseUrl", "baseUrl must be a valid URL") in _issues(exc_info)


def test_all_tool_issues_are_reported_together(sample_config: dict[str, Any]) -> None:
    sample_config["server"]["name"] = "Pet Store"
    sample_config["tools"][0]["name"] = "GetUser"
    sample_config["tools"][1]["path"] = "/pets/{pet_id}"
    sample_config["tools"][2]["name"] = "create_pet"

    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(sample_config, environ={"PETSTORE_TOKEN": "x"})

    assert _issues(exc_info) == [
        ("server.name", "Server name must be lowercase, snake_case identifier"),
        ("tools[0].name", "Tool name must be lowercase, snake_case identifier"),
        ("tools[1].pathParams", 'Missing pathParam for placeholder "{pet_id}" in path'),
        ("tools[2].name", "Duplicate tool name: create_pet"),
    ]
    assert str(exc_info.value).startswith("Configuration validation failed:\n")


def test_warnings_do_not_block_loading(sample_config: dict[str, Any]) -> None:
    sample_config["tools"][0]["pathParams"]["unused"] = "{args.x}"
    sample_config["tools"][1]["inputSchema"]["required"].append("ghost")

    validated = validate_config(sample_config, environ={})

    assert validated.warnings == [
        'Unused pathParam "unused" in tool "get_user"',
        'Argument "x" is referenced by tool "get_user" but not declared in inputSchema',
        'Required field "ghost" not found in properties at tools[1].inputSchema',
        'Environment variable "PETSTORE_TOKEN" is referenced but not set',
    ]


def test_schema_errors_are_mapped_to_field_paths(sample_config: dict[str, Any]) -> None:
    broken = copy.deepcopy(sample_config)
    broken["tools"][0]["method"] = "FETCH"
    broken["tools"][1]["inputSchema"]["properties"]["age"]["type"] = "decimal"

    with pytest.raises(ConfigurationError) as exc_info:
        parse_config(broken)

    fields = [issue.field for issue in exc_info.value.issues]
    assert "tools[0].method" in fields
    assert any(field.startswith("tools[1].inputSchema") for field in fields)


def test_missing_sections_are_rejected() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config({"server": {"name": "x"}})

    assert "server, api, and tools sections" in str(exc_info.value)


def test_load_config_file(tmp_path: Path, sample_config: dict[str, Any]) -> None:
    config_file = tmp_path / "tools.json"
    config_file.write_text(json.dumps(sample_config), encoding="utf-8")

    assert load_config_file(config_file) == sample_config


def test_load_config_file_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Config file not found"):
        load_config_file(tmp_path / "missing.json")

    bad_json = tmp_path / "bad.json"
    bad_json.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Invalid JSON in config"):
        load_config_file(bad_json)

    not_object = tmp_path / "list.json"
    not_object.write_text("[]", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="valid JSON object"):
        load_config_file(not_object)


def test_undeclared_argument_references_are_warned(
    sample_config: dict[str, Any], environ: dict[str, str]
) -> None:
    sample_config["tools"][1]["bodyTemplate"]["color"] = "{args.color}"
    sample_config["tools"][1]["bodyTemplate"]["size"] = "{args.size?}"
    sample_config["tools"][1]["bodyTemplate"]["mood"] = "{args.mood || 'calm'}"

    validated = validate_config(sample_config, environ=environ)

    assert validated.warnings == [
        'Argument "color" is referenced by tool "create_pet" but not declared in inputSchema'
    ]
