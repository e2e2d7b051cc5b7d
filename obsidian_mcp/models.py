"""
Pydantic models for Obsidian MCP Server.

Contains the vault result envelope, patch directives, and tool descriptors.
"""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .utils import encode_header_value

JSON_TYPES = ("string", "number", "integer", "boolean", "object", "array")

PatchOperation = Literal["append", "prepend", "replace"]
PatchTargetType = Literal["heading", "block", "frontmatter"]
Period = Literal["daily", "weekly", "monthly", "quarterly", "yearly"]


# ============== Vault Results ==============

class VaultError(BaseModel):
    """Structured failure returned by the vault backend."""

    model_config = ConfigDict(populate_by_name=True)

    status: int
    status_text: str = Field(alias="statusText")
    data: Any = None


class VaultResult(BaseModel):
    """Outcome of a single vault call.

    Exactly one of ``data`` or ``error`` is meaningful. ``data`` may be absent
    altogether (e.g. an empty 204 reply), which is distinct from ``data=None``.
    """

    data: Any = None
    error: VaultError | None = None

    @classmethod
    def success(cls, data: Any) -> "VaultResult":
        return cls(data=data)

    @classmethod
    def empty(cls) -> "VaultResult":
        return cls()

    @classmethod
    def failure(cls, status: int, status_text: str, detail: Any = None) -> "VaultResult":
        return cls(error=VaultError(status=status, status_text=status_text, data=detail))

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def has_data(self) -> bool:
        """Whether a payload was supplied, even if it is None."""
        return "data" in self.model_fields_set


# ============== Patch Directives ==============

class PatchDirective(BaseModel):
    """Instruction metadata for a partial edit, sent as request headers."""

    model_config = ConfigDict(frozen=True)

    operation: PatchOperation
    target_type: PatchTargetType
    target: str
    target_delimiter: str | None = None
    trim_target_whitespace: bool | None = None

    def as_headers(self) -> dict[str, str]:
        headers = {
            "Operation": self.operation,
            "Target-Type": self.target_type,
            "Target": encode_header_value(self.target),
        }
        if self.target_delimiter is not None:
            # Only Target is URI-decoded by the plugin
            headers["Target-Delimiter"] = self.target_delimiter
        if self.trim_target_whitespace is not None:
            headers["Trim-Target-Whitespace"] = "true" if self.trim_target_whitespace else "false"
        return headers


# ============== Tool Descriptors ==============

class ParameterSpec(BaseModel):
    """Schema for a single tool parameter."""

    model_config = ConfigDict(frozen=True)

    type: str | tuple[str, ...]
    description: str = ""
    required: bool = True
    default: Any = None
    enum: tuple[str, ...] | None = None

    @property
    def types(self) -> tuple[str, ...]:
        return self.type if isinstance(self.type, tuple) else (self.type,)

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": list(self.types) if len(self.types) > 1 else self.types[0],
            "description": self.description,
        }
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.has_default:
            schema["default"] = self.default
        return schema


ToolHandler = Callable[[dict[str, Any]], Awaitable[VaultResult]]


class ToolDescriptor(BaseModel):
    """A named tool: its parameter schema and the handler that serves it."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str = ""
    parameters: Mapping[str, ParameterSpec] = Field(default_factory=dict)
    handler: ToolHandler

    def input_schema(self) -> dict[str, Any]:
        """Render the parameters as a JSON schema object."""
        required = [
            name for name, spec in self.parameters.items()
            if spec.required and not spec.has_default
        ]
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {name: spec.json_schema() for name, spec in self.parameters.items()},
        }
        if required:
            schema["required"] = required
        return schema
