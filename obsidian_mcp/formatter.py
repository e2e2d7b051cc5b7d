"""
Response formatting for Obsidian MCP Server.

Renders a VaultResult into the single text block returned for every tool call.
"""

import json
from typing import Any

import structlog
from mcp.types import TextContent

from .models import VaultResult

logger = structlog.get_logger(__name__)

FORMAT_ERROR_TEXT = "Error formatting response data"


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def render_result(result: VaultResult | str) -> str:
    """Render a result as text.

    Strings pass through untouched, a null payload becomes the empty string,
    structured payloads are pretty-printed. A result with no payload at all
    (empty replies and every failure) is rendered as the whole envelope.

    Raises:
        TypeError, ValueError: If the payload cannot be serialized
    """
    if isinstance(result, str):
        return result

    if result.has_data:
        if isinstance(result.data, str):
            return result.data
        if result.data is None:
            return ""
        return _dump(result.data)

    # Legacy fallback: no payload at all, serialize the envelope itself
    return _dump(result.model_dump(mode="json", by_alias=True, exclude_unset=True))


def format_tool_response(result: VaultResult | str) -> list[TextContent]:
    """Wrap a result in exactly one MCP text block; never raises."""
    try:
        text = render_result(result)
    except (TypeError, ValueError) as e:
        logger.error("response_format_failed", error=str(e))
        text = FORMAT_ERROR_TEXT

    return [TextContent(type="text", text=text)]
