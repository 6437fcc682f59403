"""Tool registry: load-time indexing and per-call orchestration.

A call runs ``lookup -> required check -> type validation -> build -> execute ->
projection`` and stops at the first failing stage. The tool table is read-only
once loaded; reloading means building a new registry.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from rest_tools.config.settings import Settings, get_settings
from rest_tools.tools.binding import CallContext
from rest_tools.tools.errors import (
    ArgumentValidationError,
    BindingError,
    RestToolError,
    ToolNotFoundError,
)
from rest_tools.tools.events import EventSink, LoggingEventSink
from rest_tools.tools.gateway import CallResult, RequestExecutor
from rest_tools.tools.loader import validate_config
from rest_tools.tools.request_builder import RequestBuilder, resolve_headers
from rest_tools.tools.schemas import (
    ArraySchema,
    InputSchema,
    ObjectSchema,
    ServerConfig,
    ToolDefinition,
)
from rest_tools.tools.transport import HttpTransport, UrllibTransport
from rest_tools.tools.validation import check_required, validate_arguments

_DESCRIPTOR_KEYWORDS: dict[str, str] = {
    "description": "description",
    "enum": "enum",
    "minimum": "minimum",
    "maximum": "maximum",
    "min_length": "minLength",
    "max_length": "maxLength",
    "pattern": "pattern",
    "format": "format",
}


class ToolDescriptor(BaseModel):
    """Externally facing view of a tool. Carries no request details or secrets."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")


@dataclass(frozen=True)
class RegisteredTool:
    definition: ToolDefinition
    descriptor: ToolDescriptor


class ToolRegistry:
    def __init__(
        self,
        *,
        config: ServerConfig,
        tools: Mapping[str, RegisteredTool],
        executor: RequestExecutor,
        builder: RequestBuilder,
        environ: Mapping[str, str],
        sink: EventSink,
        strict_arguments: bool = False,
        warnings: list[str] | None = None,
    ) -> None:
        self.config = config
        self.tools = MappingProxyType(dict(tools))
        self.executor = executor
        self.builder = builder
        self.environ = MappingProxyType(dict(environ))
        self.sink = sink
        self.strict_arguments = strict_arguments
        self.warnings = tuple(warnings or ())

    def has_tool(self, name: str) -> bool:
        return name in self.tools

    def get_definition(self, name: str) -> ToolDefinition | None:
        registered = self.tools.get(name)
        return registered.definition if registered else None

    def descriptors(self) -> list[ToolDescriptor]:
        return [registered.descriptor for registered in self.tools.values()]

    def summary(self) -> dict[str, Any]:
        tools = [
            {
                "name": registered.definition.name,
                "method": registered.definition.method,
                "description": registered.definition.description,
            }
            for registered in self.tools.values()
        ]
        return {"total": len(tools), "tools": tools}

    def invoke(self, name: str, args: Mapping[str, Any] | None = None) -> CallResult:
        """Run one call; raise the typed error of the first failing stage."""
        registered = self.tools.get(name)
        if registered is None:
            raise ToolNotFoundError(name)
        tool = registered.definition
        arguments = dict(args or {})

        missing = check_required(tool.input_schema, arguments)
        if missing:
            self._validation_failed(tool.name, "required", missing)
            raise ArgumentValidationError("required", missing)

        violations = validate_arguments(
            tool.input_schema, arguments, strict=self.strict_arguments
        )
        if violations:
            self._validation_failed(tool.name, "type", violations)
            raise ArgumentValidationError("type", violations)

        context = CallContext.create(arguments, self.environ)
        try:
            descriptor = self.builder.build(tool, context)
        except BindingError as exc:
            self.sink.emit(
                "binding_failed",
                tool=tool.name,
                error=str(exc),
                parameter=exc.parameter,
            )
            raise

        return self.executor.execute(tool, descriptor)

    def call(self, name: str, args: Mapping[str, Any] | None = None) -> CallResult:
        """Run one call and fold every tool-layer error into a failed result."""
        started_at = time.perf_counter()
        try:
            return self.invoke(name, args)
        except RestToolError as exc:
            return CallResult(
                tool=name,
                status="failed",
                status_code=exc.status_code,
                error=str(exc),
                error_type=type(exc).__name__,
                error_context=exc.context(),
                error_body=getattr(exc, "body", None),
                duration_ms=round((time.perf_counter() - started_at) * 1000.0, 2),
            )

    def _validation_failed(self, tool_name: str, stage: str, violations: list[Any]) -> None:
        self.sink.emit(
            "validation_failed",
            tool=tool_name,
            stage=stage,
            violations=[str(violation) for violation in violations],
        )


def load_tools(
    config: Mapping[str, Any] | ServerConfig,
    *,
    environ: Mapping[str, str] | None = None,
    transport: HttpTransport | None = None,
    sink: EventSink | None = None,
    settings: Settings | None = None,
    strict_arguments: bool | None = None,
) -> ToolRegistry:
    """Validate and index a configuration. Raises ``ConfigurationError``."""
    runtime = settings or get_settings()
    env = dict(os.environ) if environ is None else dict(environ)
    event_sink = sink or LoggingEventSink(max_body_chars=runtime.max_log_body_chars)

    validated = validate_config(config, environ=env)
    server_config = validated.config
    for warning in validated.warnings:
        event_sink.emit("config_warning", message=warning)

    api = server_config.api
    base_headers = resolve_headers(api.headers or {}, CallContext.create({}, env))
    timeout_s = api.timeout / 1000.0 if api.timeout else runtime.request_timeout_s
    executor = RequestExecutor(
        base_url=api.base_url,
        transport=transport or UrllibTransport(verify_tls=api.reject_unauthorized is not False),
        timeout_s=timeout_s,
        sink=event_sink,
    )

    tools = {
        tool.name: RegisteredTool(definition=tool, descriptor=build_descriptor(tool))
        for tool in server_config.tools
    }
    event_sink.emit(
        "tools_registered",
        server=server_config.server.name,
        version=server_config.server.version,
        count=len(tools),
    )
    return ToolRegistry(
        config=server_config,
        tools=tools,
        executor=executor,
        builder=RequestBuilder(base_headers=base_headers),
        environ=env,
        sink=event_sink,
        strict_arguments=(
            runtime.strict_arguments if strict_arguments is None else strict_arguments
        ),
        warnings=validated.warnings,
    )


def list_tools(registry: ToolRegistry) -> list[ToolDescriptor]:
    return registry.descriptors()


def call_tool(
    registry: ToolRegistry, name: str, args: Mapping[str, Any] | None = None
) -> CallResult:
    return registry.call(name, args)


def build_descriptor(tool: ToolDefinition) -> ToolDescriptor:
    return ToolDescriptor(
        name=tool.name,
        description=tool.description,
        input_schema=descriptor_schema(tool.input_schema),
    )


def descriptor_schema(schema: InputSchema) -> dict[str, Any]:
    """Top-level schema: always lists properties/required, closed unless stated."""
    if not isinstance(schema, ObjectSchema):
        return _property_schema(schema)
    converted: dict[str, Any] = {
        "type": "object",
        "properties": {
            name: _property_schema(prop) for name, prop in schema.properties.items()
        },
        "required": list(schema.required),
        "additionalProperties": (
            schema.additional_properties if schema.additional_properties is not None else False
        ),
    }
    if schema.description:
        converted["description"] = schema.description
    if "default" in schema.model_fields_set:
        converted["default"] = schema.default
    return converted


def _property_schema(schema: InputSchema) -> dict[str, Any]:
    converted: dict[str, Any] = {"type": schema.type}
    for attribute, keyword in _DESCRIPTOR_KEYWORDS.items():
        value = getattr(schema, attribute, None)
        if value is not None:
            converted[keyword] = value
    if "default" in schema.model_fields_set:
        converted["default"] = schema.default

    if isinstance(schema, ObjectSchema):
        converted["properties"] = {
            name: _property_schema(prop) for name, prop in schema.properties.items()
        }
        if schema.required:
            converted["required"] = list(schema.required)
        if schema.additional_properties is not None:
            converted["additionalProperties"] = schema.additional_properties
    elif isinstance(schema, ArraySchema) and schema.items is not None:
        converted["items"] = _property_schema(schema.items)
    return converted
