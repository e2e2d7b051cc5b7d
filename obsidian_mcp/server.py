"""
Obsidian MCP Server core.

Owns the vault client and the tool registry, and exposes them through a
low-level MCP server that any transport can run over its own streams.
"""

from typing import Any

import structlog
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.server import Server
from mcp.server.models import InitializationOptions
from mcp.shared.message import SessionMessage
from mcp.types import TextContent, Tool

from . import __version__
from .client import ObsidianClient
from .config import DEFAULT_SERVER_NAME
from .registry import ToolRegistry
from .tools import build_registry
from .utils import ToolError

logger = structlog.get_logger(__name__)

SERVER_DESCRIPTION = "MCP server for Obsidian interactions"


class McpServerCore:
    """Composition root shared by the stdio and SSE transports.

    The registry and client are read-only after construction, so one core can
    serve any number of concurrent sessions.
    """

    def __init__(
        self,
        client: ObsidianClient,
        name: str = DEFAULT_SERVER_NAME,
        version: str = __version__,
        registry: ToolRegistry | None = None,
    ):
        self.client = client
        self.name = name
        self.version = version
        self.description = SERVER_DESCRIPTION
        self.registry = registry if registry is not None else build_registry(client)
        self.server: Server = Server(name, version=version)
        self._register_handlers()
        logger.info("mcp_server_initialized", name=name, version=version, tools=len(self.registry))

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            """List available tools."""
            return self.registry.list_tools()

        # The registry owns parameter validation so errors name the field
        @self.server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
            """Handle tool calls."""
            try:
                return await self.registry.invoke(name, arguments)
            except ToolError as e:
                logger.warning("tool_call_rejected", tool=name, error=str(e))
                raise

    def initialization_options(self) -> InitializationOptions:
        return self.server.create_initialization_options()

    def discovery_document(self) -> dict[str, str]:
        """Static description served at the SSE transport's root."""
        return {
            "schema_version": "v1",
            "protocol": "mcp",
            "server_name": self.name,
            "server_version": self.version,
            "description": self.description,
        }

    async def run(
        self,
        read_stream: MemoryObjectReceiveStream[SessionMessage | Exception],
        write_stream: MemoryObjectSendStream[SessionMessage],
    ) -> None:
        """Serve one MCP session over a pair of message streams until the inbound side closes."""
        await self.server.run(read_stream, write_stream, self.initialization_options())
