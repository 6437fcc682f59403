"""Assemble a concrete HTTP request from a tool definition and a call context."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping
from urllib import parse

from rest_tools.tools.binding import (
    CallContext,
    is_unset,
    resolve,
    strip_undefined,
    to_text,
)
from rest_tools.tools.errors import BindingError
from rest_tools.tools.schemas import ToolDefinition

_UNRESOLVED_PLACEHOLDER = re.compile(r"\{[^}]+\}")
# Same unreserved set as JavaScript's encodeURIComponent.
_PATH_SAFE = "!~*'()"


@dataclass(frozen=True)
class RequestDescriptor:
    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None


class RequestBuilder:
    """Resolve path, headers, query and body. Pure; safe to share across calls."""

    def __init__(self, *, base_headers: Mapping[str, str] | None = None) -> None:
        self.base_headers = MappingProxyType(dict(base_headers or {}))

    def build(self, tool: ToolDefinition, context: CallContext) -> RequestDescriptor:
        path = self._build_path(tool, context)

        headers: dict[str, str] = dict(self.base_headers)
        if tool.headers:
            headers.update(resolve_headers(tool.headers, context))

        query: dict[str, Any] = {}
        if tool.query_params:
            query = clean_params(resolve(tool.query_params, context))

        body: Any = None
        if tool.carries_body():
            body = strip_undefined(resolve(tool.body_template, context))

        return RequestDescriptor(
            method=tool.method,
            path=path,
            headers=MappingProxyType(headers),
            query=MappingProxyType(query),
            body=body,
        )

    def _build_path(self, tool: ToolDefinition, context: CallContext) -> str:
        path = tool.path
        if tool.path_params:
            resolved = resolve(tool.path_params, context)
            for name, value in resolved.items():
                if is_unset(value):
                    continue
                path = path.replace(f"{{{name}}}", parse.quote(to_text(value), safe=_PATH_SAFE))

        unresolved = _UNRESOLVED_PLACEHOLDER.findall(path)
        if unresolved:
            raise BindingError(
                f"Unresolved path parameters: {', '.join(unresolved)}",
                expression=(tool.path_params or {}).get(unresolved[0][1:-1]),
                parameter=unresolved[0],
            )
        return path


def clean_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Drop query values that are unset, ``None`` or the empty string."""
    return {
        key: strip_undefined(value)
        for key, value in params.items()
        if not is_unset(value) and value != ""
    }


def resolve_headers(headers: Mapping[str, str], context: CallContext) -> dict[str, str]:
    """Resolve header templates; unset values drop the header."""
    resolved = resolve(headers, context)
    return {name: to_text(value) for name, value in resolved.items() if not is_unset(value)}
