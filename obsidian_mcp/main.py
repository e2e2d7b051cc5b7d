"""
Main entry point for Obsidian MCP Server.

This module provides the transport factory, the main() function and server initialization.
"""

import asyncio
import sys

import anyio

from .client import ObsidianClient
from .config import Settings, SseTransport, StdioTransport, TransportConfig
from .logging import configure_logging, get_logger
from .server import McpServerCore
from .sse import SseTransportHub
from .stdio import StdioTransportSession

logger = get_logger(__name__)


def create_transport(config: TransportConfig, core: McpServerCore) -> StdioTransportSession | SseTransportHub:
    """Build the transport selected by a transport variant."""
    if isinstance(config, StdioTransport):
        return StdioTransportSession(core)
    if isinstance(config, SseTransport):
        return SseTransportHub(core, host=config.host, port=config.port, ping_interval=config.ping_interval)
    raise ValueError(f"Unsupported transport: {config!r}")


async def run_transport(transport: StdioTransportSession | SseTransportHub) -> None:
    """Serve until the transport finishes."""
    if isinstance(transport, StdioTransportSession):
        async with anyio.create_task_group() as tg:
            await transport.start(tg)
    else:
        await transport.serve()


async def serve(settings: Settings) -> None:
    async with ObsidianClient(
        api_key=settings.obsidian_api_key,
        base_url=settings.obsidian_base_url,
        verify_ssl=settings.obsidian_verify_ssl,
        timeout=settings.obsidian_request_timeout,
    ) as client:
        core = McpServerCore(client, name=settings.mcp_server_name)
        config = settings.transport_config()
        logger.info("transport_selected", transport=config.kind)
        await run_transport(create_transport(config, core))


def main():
    """Main entry point."""
    settings = Settings()
    configure_logging(settings.log_level)

    if not settings.obsidian_api_key:
        logger.error("missing_api_key", hint="Set the OBSIDIAN_API_KEY environment variable")
        sys.exit(1)

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("shutdown_requested")
    except Exception as e:
        logger.error("server_failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
