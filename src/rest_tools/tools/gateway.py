"""Request execution gateway: send a built request and shape the outcome."""

from __future__ import annotations

import time
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field

from rest_tools.tools.errors import ProjectionError, TransportError
from rest_tools.tools.events import EventSink, LoggingEventSink, mask_sensitive_headers
from rest_tools.tools.request_builder import RequestDescriptor
from rest_tools.tools.schemas import ToolDefinition
from rest_tools.tools.transport import HttpTransport, http_error_message

RELEVANT_RESPONSE_HEADERS: tuple[str, ...] = (
    "content-type",
    "content-length",
    "x-ratelimit-limit",
    "x-ratelimit-remaining",
    "x-ratelimit-reset",
)


class CallResult(BaseModel):
    """Uniform outcome of one tool call."""

    tool: str
    status: Literal["ok", "failed"]
    data: Any = None
    status_code: int | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    error: str | None = None
    error_type: str | None = None
    error_context: dict[str, Any] = Field(default_factory=dict)
    error_body: Any = None
    diagnostics: list[str] = Field(default_factory=list)
    duration_ms: float | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class RequestExecutor:
    """Issue requests through the shared transport. Never retries."""

    def __init__(
        self,
        *,
        base_url: str,
        transport: HttpTransport,
        timeout_s: float,
        sink: EventSink | None = None,
    ) -> None:
        self.base_url = base_url
        self.transport = transport
        self.timeout_s = timeout_s
        self.sink = sink or LoggingEventSink()

    def execute(self, tool: ToolDefinition, descriptor: RequestDescriptor) -> CallResult:
        url = join_url(self.base_url, descriptor.path)
        started_at = time.perf_counter()
        self.sink.emit(
            "request_started",
            tool=tool.name,
            method=descriptor.method,
            url=url,
            query=dict(descriptor.query),
            headers=mask_sensitive_headers(descriptor.headers),
            body=descriptor.body,
        )

        try:
            response = self.transport.send(
                descriptor.method,
                url,
                headers=dict(descriptor.headers),
                query=dict(descriptor.query),
                body=descriptor.body,
                timeout_s=self.timeout_s,
            )
            if not 200 <= response.status < 300:
                raise TransportError(
                    http_error_message(response.status, response.reason, response.body),
                    status_code=response.status,
                    body=response.body,
                    headers=dict(response.headers),
                )
        except TransportError as exc:
            self.sink.emit(
                "request_failed",
                tool=tool.name,
                status_code=exc.status_code,
                error=str(exc),
                headers=mask_sensitive_headers(exc.headers),
                error_body=exc.body,
                duration_ms=_duration_ms(started_at),
            )
            raise

        duration_ms = _duration_ms(started_at)
        self.sink.emit(
            "request_succeeded",
            tool=tool.name,
            status_code=response.status,
            headers=mask_sensitive_headers(response.headers),
            body=response.body,
            duration_ms=duration_ms,
        )

        data = response.body
        diagnostics: list[str] = []
        if tool.response_transform:
            try:
                data = extract_path(response.body, tool.response_transform)
            except ProjectionError as exc:
                diagnostics.append(f"Response transformation failed: {exc}")
                self.sink.emit(
                    "projection_failed",
                    tool=tool.name,
                    path=exc.path,
                    segment=exc.segment,
                )

        return CallResult(
            tool=tool.name,
            status="ok",
            data=data,
            status_code=response.status,
            headers=relevant_headers(response.headers),
            diagnostics=diagnostics,
            duration_ms=duration_ms,
        )


def extract_path(data: Any, path: str) -> Any:
    """Follow a dot-separated path; list segments are numeric indexes."""
    result = data
    for segment in path.split("."):
        if isinstance(result, Mapping) and segment in result:
            result = result[segment]
        elif isinstance(result, list) and segment.isdigit() and int(segment) < len(result):
            result = result[int(segment)]
        else:
            raise ProjectionError(path, segment)
    return result


def relevant_headers(headers: Mapping[str, str]) -> dict[str, str]:
    lowered = {name.lower(): value for name, value in headers.items()}
    return {name: lowered[name] for name in RELEVANT_RESPONSE_HEADERS if lowered.get(name)}


def join_url(base_url: str, path: str) -> str:
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _duration_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000.0, 2)
