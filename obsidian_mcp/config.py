"""
Configuration module for Obsidian MCP Server.

Uses pydantic-settings for configuration management with environment variable support.
Variable names are matched case-insensitively (e.g., OBSIDIAN_API_KEY, MCP_TRANSPORT, PORT).
A local .env file is read when present.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://127.0.0.1:27124"
DEFAULT_SERVER_NAME = "Obsidian MCP"


# ============== Transport Variants ==============

class StdioTransport(BaseModel):
    """Serve a single peer over the process's stdin/stdout."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["stdio"] = "stdio"


class SseTransport(BaseModel):
    """Serve any number of peers over HTTP with server-sent events."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["sse"] = "sse"
    host: str = "127.0.0.1"
    port: int = 3000
    ping_interval: float = 15.0


TransportConfig = StdioTransport | SseTransport


# ============== Settings ==============

class Settings(BaseSettings):
    """Application settings with environment variable support.

    Environment variables:
    - OBSIDIAN_BASE_URL: Base URL of the Local REST API plugin
    - OBSIDIAN_API_KEY: Bearer credential for the plugin (required)
    - OBSIDIAN_VERIFY_SSL: Verify the plugin's TLS certificate
    - OBSIDIAN_REQUEST_TIMEOUT: Seconds per backend call (unset = no timeout)
    - MCP_TRANSPORT: "stdio" or "sse"
    - MCP_HOST: Listen host for the SSE transport
    - PORT: Listen port for the SSE transport
    - MCP_SERVER_NAME: Name reported in the handshake and discovery document
    - SSE_PING_INTERVAL: Heartbeat interval in seconds (0 disables)
    - LOG_LEVEL: Minimum log level
    """

    obsidian_base_url: str = DEFAULT_BASE_URL
    obsidian_api_key: str = ""
    obsidian_verify_ssl: bool = False
    obsidian_request_timeout: float | None = None

    mcp_transport: Literal["stdio", "sse"] = "stdio"
    mcp_host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=1, le=65535)
    mcp_server_name: str = DEFAULT_SERVER_NAME
    sse_ping_interval: float = Field(default=15.0, ge=0)

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def transport_config(self) -> TransportConfig:
        """Build the transport variant selected by MCP_TRANSPORT."""
        if self.mcp_transport == "sse":
            return SseTransport(host=self.mcp_host, port=self.port, ping_interval=self.sse_ping_interval)
        return StdioTransport()
