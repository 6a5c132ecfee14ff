"""
Standard I/O Transport for MCP

Implements the stdio transport for local tool execution: MCP clients spawn
the server as a subprocess and exchange newline-delimited JSON-RPC messages
over stdin/stdout. Logging must go to stderr while this transport runs.

Reference: https://modelcontextprotocol.io/specification/2025-06-18/basic/transports
"""

import asyncio
import json
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from common.logging import get_logger
from ..jsonrpc import INTERNAL_ERROR, INVALID_REQUEST, PARSE_ERROR, JSONRPCHandler
from ..server import MCPServer

logger = get_logger(__name__)


class StdioTransport:
    """
    Standard I/O transport for MCP communication.

    Reads one JSON-RPC payload per line and writes one response per line.
    """

    def __init__(
        self,
        mcp_server: MCPServer,
        readline: Optional[Callable[[], str]] = None,
        write: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize stdio transport.

        Args:
            mcp_server: Server handling the decoded messages
            readline: Blocking line reader; defaults to sys.stdin.readline
            write: Line writer; defaults to printing to stdout
        """
        self.mcp_server = mcp_server
        self.readline = readline or sys.stdin.readline
        self.write = write or (lambda line: print(line, flush=True))
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stdio")

    async def run(self) -> None:
        """Serve until EOF on stdin."""
        loop = asyncio.get_running_loop()
        logger.info(event="stdio_transport_started")

        try:
            while True:
                line = await loop.run_in_executor(self.executor, self.readline)
                if not line:
                    break

                line = line.strip()
                if line:
                    await self.handle_line(line)
        finally:
            self.executor.shutdown(wait=False)
            logger.info(event="stdio_transport_stopped")

    async def handle_line(self, line: str) -> None:
        """Handle one JSON-RPC payload read from stdin."""
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            error_response = JSONRPCHandler.create_error_response(
                None, PARSE_ERROR, f"Parse error: {str(e)}"
            )
            self._write(error_response.model_dump())
            return

        try:
            result = await self.mcp_server.handle_payload(data)
        except ValueError as e:
            error_response = JSONRPCHandler.create_error_response(
                None, INVALID_REQUEST, f"Invalid request: {str(e)}"
            )
            self._write(error_response.model_dump())
            return
        except Exception as e:
            logger.error(event="stdio_message_error", error=str(e))
            error_response = JSONRPCHandler.create_error_response(
                None, INTERNAL_ERROR, f"Internal error: {str(e)}"
            )
            self._write(error_response.model_dump())
            return

        if result is not None:
            self._write(result)

    def _write(self, data: Any) -> None:
        self.write(json.dumps(data, separators=(",", ":")))
