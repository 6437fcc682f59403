"""Pydantic models for the declarative tool configuration document."""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
BODY_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH"})

_PATH_PLACEHOLDER = re.compile(r"\{([^}]+)\}")


class ConfigModel(BaseModel):
    """Base model for configuration sections; camelCase keys on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class _SchemaNode(ConfigModel):
    description: str | None = None
    default: Any = None
    enum: list[Any] | None = None
    format: str | None = None


class StringSchema(_SchemaNode):
    type: Literal["string"]
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    pattern: str | None = None

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid regular expression: {exc}") from exc
        return value


class _NumericSchema(_SchemaNode):
    minimum: int | float | None = None
    maximum: int | float | None = None


class NumberSchema(_NumericSchema):
    type: Literal["number"]


class IntegerSchema(_NumericSchema):
    type: Literal["integer"]


class BooleanSchema(_SchemaNode):
    type: Literal["boolean"]


class NullSchema(_SchemaNode):
    type: Literal["null"]


class ArraySchema(_SchemaNode):
    type: Literal["array"]
    items: InputSchema | None = None


class ObjectSchema(_SchemaNode):
    type: Literal["object"]
    properties: dict[str, InputSchema] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)
    additional_properties: bool | None = None


InputSchema = Annotated[
    Union[
        ObjectSchema,
        StringSchema,
        NumberSchema,
        IntegerSchema,
        BooleanSchema,
        ArraySchema,
        NullSchema,
    ],
    Field(discriminator="type"),
]

ArraySchema.model_rebuild()
ObjectSchema.model_rebuild()


class ToolDefinition(ConfigModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    method: HttpMethod
    path: str = Field(min_length=1)
    path_params: dict[str, str] | None = None
    query_params: dict[str, Any] | None = None
    headers: dict[str, str] | None = None
    body_template: Any = None
    response_transform: str | None = None
    input_schema: InputSchema

    def path_placeholders(self) -> list[str]:
        return _PATH_PLACEHOLDER.findall(self.path)

    def carries_body(self) -> bool:
        return self.method in BODY_METHODS and self.body_template is not None


class ServerMetadata(ConfigModel):
    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    description: str = Field(min_length=1)


class ApiConfiguration(ConfigModel):
    base_url: str = Field(min_length=1)
    # Milliseconds, as in the configuration document.
    timeout: float | None = Field(default=None, gt=0)
    reject_unauthorized: bool | None = None
    headers: dict[str, str] | None = None


class ServerConfig(ConfigModel):
    server: ServerMetadata
    api: ApiConfiguration
    tools: list[ToolDefinition]
