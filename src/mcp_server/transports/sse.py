"""
HTTP+SSE Transport for MCP

Implements the MCP 2024-11-05 HTTP+SSE transport:
- GET /sse opens an event stream and announces the message endpoint
- POST /sse/message?sessionId=<id> carries client messages; responses are
  pushed onto the matching event stream

Reference: https://modelcontextprotocol.io/specification/2024-11-05/basic/transports
"""

import asyncio
import json
import uuid
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from common.logging import get_logger
from ..server import MCPServer

logger = get_logger(__name__)

SSE_PATH = "/sse"
MESSAGE_PATH = "/sse/message"


def format_sse_event(event: str, data: str) -> str:
    """Encode one server-sent event."""
    lines = "".join(f"data: {line}\n" for line in data.splitlines() or [""])
    return f"event: {event}\n{lines}\n"


class SSETransport:
    """
    Session table and routes for the HTTP+SSE transport.

    Each open event stream owns a queue; POSTed messages are dispatched to
    the MCP server and their responses queued for the stream to emit.
    """

    def __init__(self, mcp_server: MCPServer, keepalive_seconds: float = 15.0):
        self.mcp_server = mcp_server
        self.keepalive_seconds = keepalive_seconds
        self.sessions: Dict[str, "asyncio.Queue[Any]"] = {}

        self.router = APIRouter(tags=["MCP SSE"])
        self._setup_routes()

    def open_session(self) -> str:
        """Create a session and return its id."""
        session_id = uuid.uuid4().hex
        self.sessions[session_id] = asyncio.Queue()

        logger.info(
            event="sse_session_opened",
            session_id=session_id,
            active_sessions=len(self.sessions),
        )
        return session_id

    def close_session(self, session_id: str) -> None:
        """Forget a session; later POSTs for it are rejected."""
        if self.sessions.pop(session_id, None) is not None:
            logger.info(
                event="sse_session_closed",
                session_id=session_id,
                active_sessions=len(self.sessions),
            )

    async def dispatch(self, session_id: str, body: Any) -> bool:
        """
        Process a client message for a session and queue the response.

        Returns:
            False if the session does not exist

        Raises:
            ValueError: If the body is not valid JSON-RPC
        """
        queue = self.sessions.get(session_id)
        if queue is None:
            return False

        result = await self.mcp_server.handle_payload(body)
        if result is not None:
            await queue.put(result)
        return True

    async def event_stream(
        self, session_id: str, request: Optional[Request] = None
    ) -> AsyncIterator[str]:
        """Yield SSE frames for a session until the client disconnects."""
        queue = self.sessions[session_id]

        try:
            yield format_sse_event("endpoint", f"{MESSAGE_PATH}?sessionId={session_id}")

            while True:
                if request is not None and await request.is_disconnected():
                    break

                try:
                    payload = await asyncio.wait_for(queue.get(), timeout=self.keepalive_seconds)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue

                yield format_sse_event("message", json.dumps(payload, separators=(",", ":")))
        finally:
            self.close_session(session_id)

    def _setup_routes(self) -> None:
        """Setup SSE transport routes."""

        @self.router.get(SSE_PATH)
        async def open_event_stream(request: Request) -> StreamingResponse:
            """Open an event stream for a new session."""
            session_id = self.open_session()
            return StreamingResponse(
                self.event_stream(session_id, request),
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
            )

        @self.router.post(MESSAGE_PATH)
        async def post_message(request: Request, sessionId: Optional[str] = None) -> Response:
            """Receive a JSON-RPC message for an open session."""
            if not sessionId or sessionId not in self.sessions:
                logger.warning(event="sse_session_not_found", session_id=sessionId)
                return PlainTextResponse("Could not find session", status_code=404)

            try:
                body = json.loads(await request.body())
                found = await self.dispatch(sessionId, body)
            except ValueError as e:
                logger.warning(event="sse_invalid_message", session_id=sessionId, error=str(e))
                return PlainTextResponse(f"Invalid message: {str(e)}", status_code=400)

            if not found:
                # Stream closed while the message was being handled
                return PlainTextResponse("Could not find session", status_code=404)

            return PlainTextResponse("Accepted", status_code=202)

    def get_router(self) -> APIRouter:
        """Get the FastAPI router for the SSE transport."""
        return self.router
