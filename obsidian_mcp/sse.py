"""
SSE transport for Obsidian MCP Server.

Serves any number of concurrent MCP sessions over HTTP:

- GET  /            discovery document
- GET  /healthz     liveness and live session count
- GET  /sse         opens a session and streams its outbound frames as events
- POST /messages    delivers one inbound frame to the session named by ?sessionId=

The session table is touched only from the event loop. Each entry is
inserted and removed by the connection that owns it; POSTs only look up.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4

import anyio
import structlog
import uvicorn
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.datastructures import MutableHeaders
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .server import McpServerCore

logger = structlog.get_logger(__name__)

MESSAGE_PATH = "/messages"
SSE_PATH = "/sse"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Errors raised by an ASGI send once the peer is gone
SEND_ERRORS = (OSError, anyio.BrokenResourceError, anyio.ClosedResourceError)


class CorsMiddleware:
    """Adds permissive CORS headers to every response; answers OPTIONS with 204."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=204, headers=CORS_HEADERS)
            await response(scope, receive, send)
            return

        response_started = False

        async def send_with_cors(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                headers = MutableHeaders(scope=message)
                headers.update(CORS_HEADERS)
            await send(message)

        try:
            await self.app(scope, receive, send_with_cors)
        except Exception:
            # ServerErrorMiddleware sits outside this one; answer the 500 here so it keeps CORS headers
            if not response_started:
                response = PlainTextResponse("Internal Server Error", status_code=500, headers=CORS_HEADERS)
                await response(scope, receive, send)
            raise


@dataclass(eq=False)
class SseSession:
    """One live event-stream connection and the streams feeding its server loop."""

    session_id: UUID
    inbound: MemoryObjectSendStream[SessionMessage | Exception]
    outbound: MemoryObjectReceiveStream[SessionMessage]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    closed: anyio.Event = field(default_factory=anyio.Event)
    send_lock: anyio.Lock = field(default_factory=anyio.Lock)
    connected: bool = True

    @property
    def endpoint(self) -> str:
        return f"{MESSAGE_PATH}?sessionId={self.session_id.hex}"


class _SseEndpoint:
    """Raw ASGI route: the response lives as long as the session."""

    def __init__(self, hub: "SseTransportHub"):
        self.hub = hub

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.hub.connect_sse(scope, receive, send)


def encode_event(event: str, data: str) -> bytes:
    return f"event: {event}\ndata: {data}\n\n".encode("utf-8")


class SseTransportHub:
    """Binds an McpServerCore to any number of HTTP clients."""

    def __init__(
        self,
        core: McpServerCore,
        host: str = "127.0.0.1",
        port: int = 3000,
        ping_interval: float = 15.0,
    ):
        self.core = core
        self.host = host
        self.port = port
        self.ping_interval = ping_interval
        self._sessions: dict[UUID, SseSession] = {}
        self._server: uvicorn.Server | None = None
        self.app = Starlette(
            routes=[
                Route("/", self.discovery, methods=["GET"]),
                Route("/healthz", self.health, methods=["GET"]),
                Route(SSE_PATH, _SseEndpoint(self), methods=["GET"]),
                Route(MESSAGE_PATH, self.handle_post_message, methods=["POST"]),
            ],
            middleware=[Middleware(CorsMiddleware)],
        )

    @property
    def session_ids(self) -> list[str]:
        return [session_id.hex for session_id in self._sessions]

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    # ============== Plain Endpoints ==============

    async def discovery(self, request: Request) -> JSONResponse:
        return JSONResponse(self.core.discovery_document())

    async def health(self, request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "sessions": self.session_count})

    # ============== Session Lifecycle ==============

    async def connect_sse(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Open a session and stream its frames until the client goes away."""
        inbound_writer, inbound_reader = anyio.create_memory_object_stream(0)
        outbound_writer, outbound_reader = anyio.create_memory_object_stream(0)
        session = SseSession(session_id=uuid4(), inbound=inbound_writer, outbound=outbound_reader)

        self._sessions[session.session_id] = session
        logger.info("sse_session_opened", session_id=session.session_id.hex, sessions=self.session_count)

        try:
            await send({
                "type": "http.response.start",
                "status": 200,
                "headers": [
                    (b"content-type", b"text/event-stream"),
                    (b"cache-control", b"no-cache"),
                    (b"connection", b"keep-alive"),
                    (b"x-accel-buffering", b"no"),
                ],
            })
            await self._send_chunk(session, send, encode_event("endpoint", session.endpoint))

            async with anyio.create_task_group() as tg:
                tg.start_soon(self._run_server, session, inbound_reader, outbound_writer)
                tg.start_soon(self._pump_events, session, send)

                async with anyio.create_task_group() as watchers:
                    watchers.start_soon(self._watch_disconnect, session, receive)
                    if self.ping_interval > 0:
                        watchers.start_soon(self._heartbeat, session, send)
                    await session.closed.wait()
                    watchers.cancel_scope.cancel()

                # In-flight tool calls finish; their frames are discarded
                self._close_session(session)
        except SEND_ERRORS as e:
            logger.info("sse_connection_lost", session_id=session.session_id.hex, error=str(e))
        finally:
            self._close_session(session)
            await inbound_reader.aclose()
            await outbound_writer.aclose()

    def _close_session(self, session: SseSession) -> None:
        if self._sessions.pop(session.session_id, None) is None:
            return
        session.closed.set()
        session.inbound.close()
        logger.info("sse_session_closed", session_id=session.session_id.hex, sessions=self.session_count)

    async def _run_server(
        self,
        session: SseSession,
        read_stream: MemoryObjectReceiveStream[SessionMessage | Exception],
        write_stream: MemoryObjectSendStream[SessionMessage],
    ) -> None:
        try:
            await self.core.run(read_stream, write_stream)
        except Exception as e:
            logger.warning("sse_session_server_failed", session_id=session.session_id.hex, error=str(e))
        finally:
            await write_stream.aclose()
            session.closed.set()

    async def _pump_events(self, session: SseSession, send: Send) -> None:
        async with session.outbound:
            async for message in session.outbound:
                if not session.connected:
                    continue
                payload = message.message.model_dump_json(by_alias=True, exclude_none=True)
                await self._send_chunk(session, send, encode_event("message", payload))

        async with session.send_lock:
            if session.connected:
                session.connected = False
                try:
                    await send({"type": "http.response.body", "body": b"", "more_body": False})
                except SEND_ERRORS:
                    pass

    async def _watch_disconnect(self, session: SseSession, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
        session.connected = False
        session.closed.set()

    async def _heartbeat(self, session: SseSession, send: Send) -> None:
        while session.connected:
            await anyio.sleep(self.ping_interval)
            await self._send_chunk(session, send, b": ping\n\n")

    async def _send_chunk(self, session: SseSession, send: Send, chunk: bytes) -> None:
        """Write to the event stream; a dead peer closes the session instead of raising."""
        async with session.send_lock:
            if not session.connected:
                return
            try:
                await send({"type": "http.response.body", "body": chunk, "more_body": True})
            except SEND_ERRORS as e:
                logger.info("sse_write_failed", session_id=session.session_id.hex, error=str(e))
                session.connected = False
                session.closed.set()

    # ============== Message Routing ==============

    async def handle_post_message(self, request: Request) -> Response:
        """Hand one JSON-RPC frame to the session named in the query string."""
        raw_id = request.query_params.get("sessionId")
        if not raw_id:
            return PlainTextResponse("sessionId is required", status_code=400)

        try:
            session_id = UUID(raw_id)
        except ValueError:
            logger.warning("sse_invalid_session_id", session_id=raw_id)
            return PlainTextResponse("Invalid sessionId", status_code=400)

        session = self._sessions.get(session_id)
        if session is None:
            logger.warning("sse_session_not_found", session_id=raw_id)
            return PlainTextResponse("No transport found for sessionId", status_code=400)

        body = await request.body()
        try:
            message = JSONRPCMessage.model_validate_json(body)
        except ValidationError as e:
            logger.warning("sse_message_invalid", session_id=raw_id, error=str(e))
            return PlainTextResponse("Could not parse message", status_code=400)

        logger.debug("sse_message_received", session_id=raw_id)
        try:
            await session.inbound.send(SessionMessage(message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.warning("sse_session_closed_during_post", session_id=raw_id)
            return PlainTextResponse("Session closed", status_code=400)

        return Response(status_code=200)

    # ============== Server Lifecycle ==============

    async def serve(self) -> None:
        """Run the HTTP listener until stop() is called."""
        if self._server is not None:
            logger.warning("sse_hub_already_running", port=self.port)
            return

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            timeout_graceful_shutdown=5,
        )
        self._server = uvicorn.Server(config)
        logger.info("sse_hub_started", host=self.host, port=self.port)
        try:
            await self._server.serve()
        finally:
            self._server = None
            logger.info("sse_hub_stopped", port=self.port)

    def stop(self) -> None:
        if self._server is None:
            return
        logger.info("sse_hub_stopping", port=self.port)
        self._server.should_exit = True
