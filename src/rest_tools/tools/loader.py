"""Load-time validation of the tool configuration document."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from urllib import parse

from pydantic import ValidationError

from rest_tools.tools.binding import (
    CallContext,
    extract_expressions,
    referenced_env_vars,
    required_args,
    resolve,
)
from rest_tools.tools.errors import ConfigIssue, ConfigurationError
from rest_tools.tools.schemas import ArraySchema, ObjectSchema, ServerConfig, ToolDefinition

SERVER_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
TOOL_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass(frozen=True)
class ValidatedConfig:
    config: ServerConfig
    warnings: list[str] = field(default_factory=list)


def load_config_file(path: str | Path) -> dict[str, Any]:
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        raise ConfigurationError(f"Config file not found: {config_path}")
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in config: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration must be a valid JSON object")
    return raw


def validate_config(
    raw: Mapping[str, Any] | ServerConfig,
    *,
    environ: Mapping[str, str] | None = None,
) -> ValidatedConfig:
    """Parse and check a configuration; every problem is reported in one error."""
    env = dict(environ or {})
    config = raw if isinstance(raw, ServerConfig) else parse_config(raw)

    issues: list[ConfigIssue] = []
    warnings: list[str] = []

    if not SERVER_NAME_PATTERN.match(config.server.name):
        issues.append(
            ConfigIssue(
                "server.name",
                "Server name must be lowercase, snake_case identifier",
                config.server.name,
            )
        )

    base_url = resolve(config.api.base_url, CallContext.create({}, env))
    if not _is_http_url(base_url):
        issues.append(ConfigIssue("api.baseUrl", "baseUrl must be a valid URL", base_url))

    seen: set[str] = set()
    for index, tool in enumerate(config.tools):
        issues.extend(_tool_issues(tool, index))
        if tool.name in seen:
            issues.append(
                ConfigIssue(f"tools[{index}].name", f"Duplicate tool name: {tool.name}", tool.name)
            )
        seen.add(tool.name)
        warnings.extend(_tool_warnings(tool, index))

    for name in _missing_env_vars(config, env):
        warnings.append(f'Environment variable "{name}" is referenced but not set')

    if issues:
        raise ConfigurationError(issues)

    if isinstance(base_url, str) and base_url != config.api.base_url:
        config = config.model_copy(
            update={"api": config.api.model_copy(update={"base_url": base_url})}
        )
    return ValidatedConfig(config=config, warnings=warnings)


def parse_config(raw: Mapping[str, Any]) -> ServerConfig:
    if not isinstance(raw, Mapping) or not all(key in raw for key in ("server", "api", "tools")):
        raise ConfigurationError(
            "Config must be a valid configuration with server, api, and tools sections"
        )
    try:
        return ServerConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(
            [
                ConfigIssue(_field_path(error["loc"]), error["msg"], error.get("input"))
                for error in exc.errors()
            ]
        ) from exc


def _tool_issues(tool: ToolDefinition, index: int) -> list[ConfigIssue]:
    issues: list[ConfigIssue] = []
    if not TOOL_NAME_PATTERN.match(tool.name):
        issues.append(
            ConfigIssue(
                f"tools[{index}].name",
                "Tool name must be lowercase, snake_case identifier",
                tool.name,
            )
        )
    declared = tool.path_params or {}
    for placeholder in tool.path_placeholders():
        if placeholder not in declared:
            issues.append(
                ConfigIssue(
                    f"tools[{index}].pathParams",
                    f'Missing pathParam for placeholder "{{{placeholder}}}" in path',
                    tool.path,
                )
            )
    return issues


def _tool_warnings(tool: ToolDefinition, index: int) -> list[str]:
    placeholders = set(tool.path_placeholders())
    warnings = [
        f'Unused pathParam "{name}" in tool "{tool.name}"'
        for name in (tool.path_params or {})
        if name not in placeholders
    ]
    warnings.extend(_schema_warnings(tool.input_schema, f"tools[{index}].inputSchema"))
    warnings.extend(_undeclared_arg_warnings(tool))
    return warnings


def _undeclared_arg_warnings(tool: ToolDefinition) -> list[str]:
    if not isinstance(tool.input_schema, ObjectSchema):
        return []
    expressions = extract_expressions(
        [tool.path_params, tool.query_params, tool.headers, tool.body_template]
    )
    return [
        f'Argument "{name}" is referenced by tool "{tool.name}" but not declared in inputSchema'
        for name in required_args(expressions)
        if name not in tool.input_schema.properties
    ]


def _schema_warnings(schema: Any, field_path: str) -> list[str]:
    warnings: list[str] = []
    if isinstance(schema, ObjectSchema):
        for name in schema.required:
            if name not in schema.properties:
                warnings.append(f'Required field "{name}" not found in properties at {field_path}')
        for name, prop in schema.properties.items():
            warnings.extend(_schema_warnings(prop, f"{field_path}.properties.{name}"))
    elif isinstance(schema, ArraySchema) and schema.items is not None:
        warnings.extend(_schema_warnings(schema.items, f"{field_path}.items"))
    return warnings


def _missing_env_vars(config: ServerConfig, env: Mapping[str, str]) -> list[str]:
    templates: list[Any] = [config.api.base_url, config.api.headers]
    for tool in config.tools:
        templates.extend(
            [tool.path_params, tool.query_params, tool.headers, tool.body_template]
        )
    expressions = extract_expressions(templates)
    return [
        name
        for name in referenced_env_vars(expressions, without_default=True)
        if name not in env
    ]


def _is_http_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parts = parse.urlsplit(value)
    return parts.scheme in {"http", "https"} and bool(parts.netloc)


def _field_path(loc: tuple[Any, ...]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "root"
