"""Turn a declarative REST API description into callable, schema-validated tools."""

from rest_tools.tools import (
    CallResult,
    ConfigurationError,
    ToolDescriptor,
    ToolRegistry,
    call_tool,
    list_tools,
    load_tools,
)

__all__ = [
    "CallResult",
    "ConfigurationError",
    "ToolDescriptor",
    "ToolRegistry",
    "call_tool",
    "list_tools",
    "load_tools",
]
