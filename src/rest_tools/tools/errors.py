"""Error taxonomy shared by loading, validation, binding and execution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class RestToolError(Exception):
    """Base class for every error raised by the tool layer."""

    status_code: int | None = None

    def context(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class ConfigIssue:
    field: str
    message: str
    value: Any = None

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ConfigurationError(RestToolError):
    """Raised when a configuration cannot be loaded. Fatal for the whole load."""

    def __init__(self, issues: list[ConfigIssue] | str) -> None:
        if isinstance(issues, str):
            issues = [ConfigIssue(field="root", message=issues)]
        self.issues = list(issues)
        lines = "\n".join(str(issue) for issue in self.issues)
        super().__init__(f"Configuration validation failed:\n{lines}")

    def context(self) -> dict[str, Any]:
        return {
            "issues": [
                {"field": issue.field, "message": issue.message} for issue in self.issues
            ]
        }


class ToolNotFoundError(RestToolError, LookupError):
    status_code = 404

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f'Tool "{tool_name}" not found')

    def context(self) -> dict[str, Any]:
        return {"tool": self.tool_name}


class ArgumentValidationError(RestToolError):
    """Aggregated argument violations. Raised before any network I/O."""

    status_code = 400

    def __init__(self, stage: str, violations: list[Any]) -> None:
        self.stage = stage
        self.violations = list(violations)
        label = "Validation failed" if stage == "required" else "Type validation failed"
        super().__init__(f"{label}: {', '.join(str(v) for v in self.violations)}")

    def context(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "violations": [
                {"field": v.field, "message": v.message, "keyword": v.keyword}
                for v in self.violations
            ],
        }


class BindingError(RestToolError):
    """Raised when a request cannot be assembled from the call context."""

    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        parameter: str | None = None,
    ) -> None:
        self.expression = expression
        self.parameter = parameter
        super().__init__(message)

    def context(self) -> dict[str, Any]:
        return {"expression": self.expression, "parameter": self.parameter}


class TransportError(RestToolError):
    """Timeout, unreachable host or non-2xx response. Never retried here."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers or {})
        super().__init__(message)

    def context(self) -> dict[str, Any]:
        return {"status_code": self.status_code}


class ProjectionError(RestToolError):
    """Response transform path missing. Recovered by the gateway, never surfaced as a failure."""

    def __init__(self, path: str, segment: str) -> None:
        self.path = path
        self.segment = segment
        super().__init__(f'Path "{path}" not found in response data')

    def context(self) -> dict[str, Any]:
        return {"path": self.path, "segment": self.segment}
