"""
Tool registry for Obsidian MCP Server.

Single source of truth for the tool catalog, shared by every transport.
Tools are registered once at construction; the registry is then sealed.
"""

from collections.abc import Iterator, Mapping
from typing import Any

import structlog
from mcp.types import TextContent, Tool

from .formatter import format_tool_response
from .models import JSON_TYPES, ParameterSpec, ToolDescriptor, ToolHandler, VaultResult
from .utils import (
    DuplicateToolError,
    InvalidParameterError,
    UnknownToolError,
    describe_type,
)

logger = structlog.get_logger(__name__)


def _matches_type(value: Any, json_type: str) -> bool:
    if json_type == "string":
        return isinstance(value, str)
    if json_type == "boolean":
        return isinstance(value, bool)
    if json_type == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if json_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if json_type == "object":
        return isinstance(value, dict)
    if json_type == "array":
        return isinstance(value, list)
    return False


def validate_parameters(parameters: Mapping[str, ParameterSpec], raw: Mapping[str, Any] | None) -> dict[str, Any]:
    """Check raw arguments against a parameter schema.

    Fills defaults, drops keys the schema does not know about, and checks
    presence, type and enumerated values in declaration order.

    Raises:
        InvalidParameterError: Naming the first offending field
    """
    raw = raw or {}
    validated: dict[str, Any] = {}

    for name, spec in parameters.items():
        value = raw.get(name)
        if value is None:
            if spec.has_default:
                validated[name] = spec.default
            elif spec.required:
                raise InvalidParameterError(name, "required parameter is missing")
            continue

        if not any(_matches_type(value, t) for t in spec.types):
            expected = " or ".join(spec.types)
            raise InvalidParameterError(name, f"expected {expected}, got {describe_type(value)}")

        if spec.enum and value not in spec.enum:
            allowed = ", ".join(spec.enum)
            raise InvalidParameterError(name, f"must be one of: {allowed}")

        validated[name] = value

    unknown = set(raw) - set(parameters)
    if unknown:
        logger.debug("unknown_parameters_dropped", parameters=sorted(unknown))

    return validated


class ToolRegistry:
    """Maps tool names to their parameter schema and handler."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._sealed = False

    def register(
        self,
        name: str,
        parameters: Mapping[str, ParameterSpec],
        handler: ToolHandler,
        description: str = "",
    ) -> ToolDescriptor:
        """Add a tool to the catalog.

        Raises:
            DuplicateToolError: If the name is already registered
            RuntimeError: If the registry has been sealed
        """
        if self._sealed:
            raise RuntimeError(f"Cannot register '{name}': tool registry is sealed")
        if name in self._tools:
            raise DuplicateToolError(name)

        for param_name, spec in parameters.items():
            unsupported = [t for t in spec.types if t not in JSON_TYPES]
            if unsupported:
                raise ValueError(f"Parameter '{param_name}' of '{name}' has unsupported type {unsupported}")

        descriptor = ToolDescriptor(
            name=name,
            description=description,
            parameters=dict(parameters),
            handler=handler,
        )
        self._tools[name] = descriptor
        return descriptor

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolDescriptor:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def list_tools(self) -> list[Tool]:
        """Describe every registered tool for tools/list."""
        return [
            Tool(name=d.name, description=d.description, inputSchema=d.input_schema())
            for d in self._tools.values()
        ]

    async def invoke(self, name: str, raw_parameters: Mapping[str, Any] | None = None) -> list[TextContent]:
        """Validate parameters, run the tool's handler and format its result.

        Raises:
            UnknownToolError: If no tool has this name
            InvalidParameterError: If the parameters do not match the schema
        """
        descriptor = self.get(name)
        params = validate_parameters(descriptor.parameters, raw_parameters)

        try:
            result = await descriptor.handler(params)
        except InvalidParameterError:
            raise
        except Exception as e:
            logger.exception("tool_handler_failed", tool=name)
            result = VaultResult.failure(500, "Internal Server Error", {"message": str(e)})

        if not result.ok:
            logger.info("tool_backend_failure", tool=name, status=result.error.status)

        return format_tool_response(result)
