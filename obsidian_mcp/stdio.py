"""
Stdio transport for Obsidian MCP Server.

One peer, one session: the process boundary is the session boundary.
"""

import enum
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

import anyio
import structlog
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.stdio import stdio_server

from .server import McpServerCore

logger = structlog.get_logger(__name__)

StreamFactory = Callable[[], AbstractAsyncContextManager[tuple[Any, Any]]]


class SessionState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    RUNNING = "running"
    STOPPED = "stopped"


class StdioTransportSession:
    """Binds an McpServerCore to a single duplex stream.

    ``start`` returns once the streams are open and the server loop is
    running in the caller's task group. The session ends when the peer closes
    its input or when ``stop`` is called.
    """

    def __init__(self, core: McpServerCore, stream_factory: StreamFactory = stdio_server):
        self.core = core
        self._stream_factory = stream_factory
        self._state = SessionState.IDLE
        self._cancel_scope: anyio.CancelScope | None = None
        self._closed: anyio.Event | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    async def start(self, task_group: TaskGroup) -> None:
        """Open the streams and start serving.

        Raises:
            Exception: Whatever prevented the streams from opening; the
                session is left STOPPED
        """
        if self._state in (SessionState.CONNECTING, SessionState.RUNNING):
            logger.warning("stdio_session_already_running", state=self._state.value)
            return

        self._state = SessionState.CONNECTING
        self._closed = anyio.Event()
        logger.info("stdio_session_starting")
        try:
            await task_group.start(self._serve)
        except Exception as e:
            self._state = SessionState.STOPPED
            self._closed.set()
            logger.error("stdio_session_start_failed", error=str(e))
            raise

    async def _serve(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        try:
            with anyio.CancelScope() as scope:
                self._cancel_scope = scope
                async with self._stream_factory() as (read_stream, write_stream):
                    self._state = SessionState.RUNNING
                    logger.info("stdio_session_started")
                    task_status.started()
                    await self.core.run(read_stream, write_stream)
        finally:
            self._cancel_scope = None
            if self._state is not SessionState.CONNECTING:
                self._state = SessionState.STOPPED
                self._closed.set()
                logger.info("stdio_session_stopped")

    def stop(self) -> None:
        """Release the streams; a no-op unless the session is running."""
        if self._state is not SessionState.RUNNING:
            return
        logger.info("stdio_session_stopping")
        self._state = SessionState.STOPPED
        if self._cancel_scope is not None:
            self._cancel_scope.cancel()

    async def wait_closed(self) -> None:
        """Wait until the session has stopped."""
        if self._closed is not None:
            await self._closed.wait()
