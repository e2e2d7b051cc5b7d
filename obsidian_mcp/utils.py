"""
Utility functions and exceptions for Obsidian MCP Server.

Contains the tool error taxonomy and small helpers for building backend requests.
"""

from urllib.parse import quote


# ============== Exceptions ==============

class ToolError(Exception):
    """Base class for errors raised while resolving or invoking a tool."""
    pass


class UnknownToolError(ToolError):
    """Raised when a tool name is not in the registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool '{name}' not found")


class InvalidParameterError(ToolError):
    """Raised when a tool parameter is missing or malformed."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid parameter '{field}': {reason}")


class DuplicateToolError(ToolError):
    """Raised when a tool name is registered twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool '{name}' is already registered")


# ============== Helper Functions ==============

def encode_path(path: str) -> str:
    """Percent-encode a vault-relative path for use in a URL, keeping separators."""
    return quote(path.strip("/"), safe="/")


def encode_header_value(value: str) -> str:
    """Percent-encode a header value so non-ASCII targets survive transport."""
    return quote(value, safe="")


def describe_type(value: object) -> str:
    """Return the JSON type name of a decoded value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
