"""
HTTP gateway using FastAPI.

Composes the MCP transports into one application:
- /mcp          streamable HTTP transport
- /sse          HTTP+SSE event stream
- /sse/message  HTTP+SSE client messages

Every other path answers 404 "Not found".
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from common.config import Config
from common.logging import get_logger
from mcp_server.server import MCPServer, get_mcp_server
from mcp_server.transports.sse import SSETransport

logger = get_logger(__name__)


class MCPGateway:
    """FastAPI application hosting the MCP HTTP transports."""

    def __init__(self, config: Config, mcp_server: Optional[MCPServer] = None):
        self.config = config
        self.mcp_server = mcp_server or get_mcp_server(config)
        self.sse_transport = SSETransport(
            self.mcp_server, keepalive_seconds=config.server.sse_keepalive_seconds
        )

        self.app = FastAPI(
            title=config.mcp.server_name,
            version=config.mcp.server_version,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            redirect_slashes=False,
        )
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Setup FastAPI routes."""
        self.app.include_router(self.mcp_server.get_router())
        self.app.include_router(self.sse_transport.get_router())

        @self.app.exception_handler(404)
        async def not_found(request: Request, exc: Exception) -> PlainTextResponse:
            logger.debug(event="route_not_found", path=request.url.path)
            return PlainTextResponse("Not found", status_code=404)


def create_gateway_app(config: Config, mcp_server: Optional[MCPServer] = None) -> FastAPI:
    """Create and configure the FastAPI gateway application."""
    gateway = MCPGateway(config, mcp_server)
    return gateway.app
