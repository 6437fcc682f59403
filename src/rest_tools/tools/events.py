"""Structured call events and the default logging sink."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS: frozenset[str] = frozenset(
    {"authorization", "x-api-key", "x-auth-token", "cookie", "set-cookie"}
)
REDACTED = "[REDACTED]"

_WARNING_EVENTS = frozenset(
    {"validation_failed", "binding_failed", "projection_failed", "config_warning"}
)
_ERROR_EVENTS = frozenset({"request_failed"})


class EventSink(Protocol):
    def emit(self, event: str, **fields: Any) -> None: ...


class LoggingEventSink:
    """Write events to the standard logger as ``key=value`` pairs."""

    def __init__(
        self,
        target: logging.Logger | None = None,
        *,
        max_body_chars: int = 1000,
    ) -> None:
        self.logger = target or logger
        self.max_body_chars = max_body_chars

    def emit(self, event: str, **fields: Any) -> None:
        if event in _ERROR_EVENTS:
            level = logging.ERROR
        elif event in _WARNING_EVENTS:
            level = logging.WARNING
        else:
            level = logging.INFO
        if not self.logger.isEnabledFor(level):
            return

        rendered = []
        for key, value in fields.items():
            if key in {"body", "error_body"}:
                value = summarize_body(value, max_chars=self.max_body_chars)
            rendered.append(f"{key}={value}")
        self.logger.log(level, "tool_call event=%s %s", event, " ".join(rendered))


def mask_sensitive_headers(headers: Mapping[str, Any] | None) -> dict[str, Any]:
    return {
        name: REDACTED if name.lower() in SENSITIVE_HEADERS else value
        for name, value in (headers or {}).items()
    }


def summarize_body(body: Any, *, max_chars: int = 1000) -> str:
    if body is None:
        return "None"
    serialized = body if isinstance(body, str) else json.dumps(body, default=str)
    if len(serialized) > max_chars:
        return f"[{len(serialized)} chars] {serialized[:200]}..."
    return serialized
