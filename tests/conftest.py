"""
Pytest configuration and fixtures for obsidian-mcp tests.
"""

import json
from contextlib import asynccontextmanager
from typing import Any

import anyio
import httpx
import pytest
from mcp import ClientSession
from mcp.types import LATEST_PROTOCOL_VERSION

from obsidian_mcp.models import VaultResult
from obsidian_mcp.server import McpServerCore
from obsidian_mcp.sse import SseTransportHub
from obsidian_mcp.tools import build_registry

STATUS = {
    "authenticated": True,
    "ok": "OK",
    "service": "Obsidian Local REST API",
    "versions": {"obsidian": "1.5.3", "self": "3.0.1"},
}

TOOL_NAMES = [
    "obsidian_get_status",
    "obsidian_get_active_file",
    "obsidian_update_active_file",
    "obsidian_append_to_active_file",
    "obsidian_delete_active_file",
    "obsidian_patch_active_file",
    "obsidian_list_files",
    "obsidian_get_file",
    "obsidian_create_or_update_file",
    "obsidian_append_to_file",
    "obsidian_delete_file",
    "obsidian_patch_file",
    "obsidian_search",
    "obsidian_structured_search",
    "obsidian_open_document",
    "obsidian_list_commands",
    "obsidian_execute_command",
    "obsidian_get_periodic_note",
    "obsidian_update_periodic_note",
    "obsidian_append_to_periodic_note",
    "obsidian_delete_periodic_note",
    "obsidian_patch_periodic_note",
]


class FakeVault:
    """Stands in for ObsidianClient: records every call and returns canned results."""

    def __init__(self):
        self.calls: list[tuple[str, tuple]] = []
        self.responses: dict[str, Any] = {
            "get_status": VaultResult.success(STATUS),
            "get_active_file": VaultResult.success("# Active File Content"),
            "get_file": VaultResult.success("# File Content"),
            "list_directory": VaultResult.success({"files": ["file1.md", "file2.md"]}),
            "search": VaultResult.success([{"filename": "file1.md", "score": 1.5}]),
            "get_commands": VaultResult.success({"commands": [{"id": "cmd1", "name": "Command 1"}]}),
        }

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        async def call(*args):
            self.calls.append((name, args))
            response = self.responses.get(name, VaultResult.empty())
            if isinstance(response, Exception):
                raise response
            return response

        return call

    def last_call(self) -> tuple[str, tuple]:
        return self.calls[-1]


@pytest.fixture
def fake_vault():
    return FakeVault()


@pytest.fixture
def registry(fake_vault):
    return build_registry(fake_vault)


@pytest.fixture
def core(fake_vault):
    return McpServerCore(fake_vault, name="Obsidian MCP", version="1.0.0")


@pytest.fixture
def hub(core):
    return SseTransportHub(core, ping_interval=0)


@pytest.fixture
async def http_client(hub):
    """HTTP client wired straight to the hub's ASGI app."""
    transport = httpx.ASGITransport(app=hub.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


class MemoryStdio:
    """Stream factory for StdioTransportSession backed by in-memory channels."""

    def __init__(self):
        self.client_writer, self.server_reader = anyio.create_memory_object_stream(16)
        self.server_writer, self.client_reader = anyio.create_memory_object_stream(16)
        self.opened = 0

    @asynccontextmanager
    async def open(self):
        self.opened += 1
        async with self.server_reader, self.server_writer:
            yield self.server_reader, self.server_writer

    def client(self) -> ClientSession:
        return ClientSession(self.client_reader, self.client_writer)


@asynccontextmanager
async def connected_client(core: McpServerCore):
    """Run the core over memory streams and yield an initialized MCP client."""
    client_writer, server_reader = anyio.create_memory_object_stream(16)
    server_writer, client_reader = anyio.create_memory_object_stream(16)
    async with anyio.create_task_group() as tg:
        tg.start_soon(core.run, server_reader, server_writer)
        async with ClientSession(client_reader, client_writer) as session:
            await session.initialize()
            yield session
        tg.cancel_scope.cancel()


# ============== JSON-RPC Frames ==============

def initialize_request(request_id: int = 1) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "initialize",
        "params": {
            "protocolVersion": LATEST_PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "pytest", "version": "1.0"},
        },
    }


INITIALIZED_NOTIFICATION = {"jsonrpc": "2.0", "method": "notifications/initialized"}


def tool_call_request(request_id: int, name: str, arguments: dict | None = None) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments or {}},
    }


# ============== In-process SSE Connection ==============

class SseConnection:
    """Drives the hub's /sse endpoint in-process and parses its event stream."""

    def __init__(self, app):
        self.app = app
        self.status: int | None = None
        self.headers: dict[str, str] = {}
        self.endpoint: str | None = None
        self._disconnect = anyio.Event()
        self._chunks_writer, self._chunks = anyio.create_memory_object_stream(100)
        self._buffer = ""

    async def _receive(self) -> dict:
        await self._disconnect.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message: dict) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
            self.headers = {k.decode(): v.decode() for k, v in message["headers"]}
        elif message["type"] == "http.response.body":
            body = message.get("body", b"")
            if body:
                await self._chunks_writer.send(body.decode("utf-8"))

    async def run(self) -> None:
        scope = {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": "2.3"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/sse",
            "raw_path": b"/sse",
            "root_path": "",
            "query_string": b"",
            "headers": [(b"host", b"testserver"), (b"accept", b"text/event-stream")],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }
        try:
            await self.app(scope, self._receive, self._send)
        finally:
            self._chunks_writer.close()

    async def next_chunk(self) -> str:
        return await self._chunks.receive()

    async def next_event(self) -> tuple[str, str]:
        """Return the next (event, data) pair, skipping comment-only blocks."""
        while True:
            while "\n\n" not in self._buffer:
                self._buffer += await self._chunks.receive()
            block, self._buffer = self._buffer.split("\n\n", 1)
            lines = [line for line in block.split("\n") if line and not line.startswith(":")]
            if not lines:
                continue

            event, data = "message", []
            for line in lines:
                field, _, value = line.partition(":")
                value = value[1:] if value.startswith(" ") else value
                if field == "event":
                    event = value
                elif field == "data":
                    data.append(value)
            return event, "\n".join(data)

    def disconnect(self) -> None:
        self._disconnect.set()


@asynccontextmanager
async def open_sse(app):
    """Open an SSE connection and wait for its endpoint event."""
    connection = SseConnection(app)
    async with anyio.create_task_group() as tg:
        tg.start_soon(connection.run)
        try:
            event, data = await connection.next_event()
            assert event == "endpoint"
            connection.endpoint = data
            yield connection
        finally:
            connection.disconnect()


async def initialize_session(client: httpx.AsyncClient, connection: SseConnection) -> dict:
    """Run the MCP handshake over an open SSE connection; return the initialize result frame."""
    response = await client.post(connection.endpoint, json=initialize_request())
    assert response.status_code == 200
    event, data = await connection.next_event()
    assert event == "message"
    response = await client.post(connection.endpoint, json=INITIALIZED_NOTIFICATION)
    assert response.status_code == 200
    return json.loads(data)
