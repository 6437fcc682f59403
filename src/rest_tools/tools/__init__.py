"""Tooling layer: expression binding, validation, request building and execution."""

from rest_tools.tools.binding import OMIT, UNDEFINED, CallContext, Expression, resolve
from rest_tools.tools.errors import (
    ArgumentValidationError,
    BindingError,
    ConfigIssue,
    ConfigurationError,
    ProjectionError,
    RestToolError,
    ToolNotFoundError,
    TransportError,
)
from rest_tools.tools.gateway import CallResult, RequestExecutor
from rest_tools.tools.registry import (
    ToolDescriptor,
    ToolRegistry,
    call_tool,
    list_tools,
    load_tools,
)
from rest_tools.tools.request_builder import RequestBuilder, RequestDescriptor
from rest_tools.tools.transport import HttpTransport, TransportResponse, UrllibTransport

__all__ = [
    "OMIT",
    "UNDEFINED",
    "ArgumentValidationError",
    "BindingError",
    "CallContext",
    "CallResult",
    "ConfigIssue",
    "ConfigurationError",
    "Expression",
    "HttpTransport",
    "ProjectionError",
    "RequestBuilder",
    "RequestDescriptor",
    "RequestExecutor",
    "RestToolError",
    "ToolDescriptor",
    "ToolNotFoundError",
    "ToolRegistry",
    "TransportError",
    "TransportResponse",
    "UrllibTransport",
    "call_tool",
    "list_tools",
    "load_tools",
    "resolve",
]
