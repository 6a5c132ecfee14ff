"""
MCP Server Implementation

JSON-RPC 2.0 dispatch for the Discord notification MCP server:
- Initialize/capabilities handshake
- tools/list with cursor-based pagination
- tools/call routed through the tool registry
- Streamable HTTP transport on /mcp

The SSE and stdio transports reuse handle_payload(), so every transport
reaches the same tool handlers.
"""

import json
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from common.config import Config, load_config
from common.logging import get_logger, log_startup_message, log_tool_call_json
from .jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JSONRPCErrorResponse,
    JSONRPCHandler,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    MCPCapabilities,
    MCPImplementation,
    MCPInitializeParams,
    MCPInitializeResult,
    MCPMethods,
    MCPTextContent,
    MCPToolsCallParams,
    MCPToolsCallResult,
    MCPToolsListParams,
    MCPToolsListResult,
)
from .tool_registry import Tool, ToolHandler, ToolParameter, ToolRegistry
from .tools import SendDiscordMessageTool

logger = get_logger(__name__)

MCP_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", MCP_PROTOCOL_VERSION)

RPCResponse = Union[JSONRPCResponse, JSONRPCErrorResponse]


class MCPServer:
    """
    MCP server for the Discord notification tool.

    Owns the tool registry and the streamable HTTP route. Transports hand
    decoded JSON payloads to handle_payload().
    """

    def __init__(
        self, config: Optional[Config] = None, tools: Optional[List[ToolHandler]] = None
    ):
        """
        Initialize the MCP server.

        Args:
            config: Application configuration; loaded from config.yaml when omitted
            tools: Tool handlers to register; defaults to the Discord tool
        """
        self.config = config or load_config()
        self.tool_registry = ToolRegistry()

        self.capabilities = MCPCapabilities(tools={"listChanged": False})
        self.server_info = MCPImplementation(
            name=self.config.mcp.server_name, version=self.config.mcp.server_version
        )

        for handler in tools if tools is not None else [SendDiscordMessageTool()]:
            self.tool_registry.register_tool_handler(handler)

        self.router = APIRouter(tags=["MCP"])
        self._setup_routes()

        log_startup_message(
            "mcp_server_initialized",
            protocol_version=MCP_PROTOCOL_VERSION,
            tools=[tool.name for tool in self.tool_registry.list_tools()],
        )

    def _setup_routes(self) -> None:
        """Setup the streamable HTTP transport routes."""

        @self.router.post("/mcp")
        async def handle_streamable_http(request: Request) -> Response:
            """
            Streamable HTTP endpoint.

            Handles single messages and batches. Bodies containing only
            notifications are acknowledged with 202 and no content.
            """
            try:
                body = json.loads(await request.body())
            except ValueError as e:
                error_response = JSONRPCHandler.create_error_response(
                    None, PARSE_ERROR, f"Parse error: {str(e)}"
                )
                return JSONResponse(content=error_response.model_dump(), status_code=400)

            try:
                result = await self.handle_payload(body)
            except ValueError as e:
                error_response = JSONRPCHandler.create_error_response(
                    None, INVALID_REQUEST, f"Invalid request: {str(e)}"
                )
                return JSONResponse(content=error_response.model_dump(), status_code=400)

            if result is None:
                return Response(status_code=202)
            return JSONResponse(content=result)

        @self.router.api_route("/mcp", methods=["GET", "DELETE"])
        async def reject_streamable_http_session() -> Response:
            """Server-initiated streams and session termination are not offered."""
            return Response(status_code=405, headers={"Allow": "POST"})

    async def handle_payload(self, body: Any) -> Optional[Any]:
        """
        Process a decoded JSON-RPC payload.

        Args:
            body: A single JSON-RPC message or a batch (list)

        Returns:
            The response (dict, or list for batches), or None when the payload
            held no requests

        Raises:
            ValueError: If the payload is not valid JSON-RPC
        """
        if JSONRPCHandler.is_batch(body):
            batch = JSONRPCHandler.validate_batch(body)
            responses = []

            for message in batch:
                if isinstance(message, JSONRPCRequest):
                    responses.append(await self._handle_request(message))
                else:
                    await self._handle_notification(message)

            return [r.model_dump() for r in responses] if responses else None

        message = JSONRPCHandler.parse_message(body)

        if isinstance(message, JSONRPCRequest):
            response = await self._handle_request(message)
            return response.model_dump()

        if isinstance(message, JSONRPCNotification):
            await self._handle_notification(message)
        else:
            # Responses to server-initiated requests; this server never sends any
            logger.debug(event="jsonrpc_response_ignored", id=message.id)
        return None

    async def _handle_request(self, request: JSONRPCRequest) -> RPCResponse:
        """Handle a JSON-RPC request."""
        try:
            logger.debug(event="jsonrpc_request", method=request.method, id=request.id)

            if request.method == MCPMethods.INITIALIZE:
                return await self._handle_initialize(request)
            elif request.method == MCPMethods.PING:
                return JSONRPCHandler.create_response(request.id, {})
            elif request.method == MCPMethods.TOOLS_LIST:
                return await self._handle_tools_list(request)
            elif request.method == MCPMethods.TOOLS_CALL:
                return await self._handle_tools_call(request)
            else:
                return JSONRPCHandler.create_error_response(
                    request.id, METHOD_NOT_FOUND, f"Method '{request.method}' not found"
                )

        except Exception as e:
            logger.error(event="request_handler_error", method=request.method, error=str(e))
            return JSONRPCHandler.create_error_response(
                request.id, INTERNAL_ERROR, f"Internal error: {str(e)}"
            )

    async def _handle_notification(self, notification: JSONRPCNotification) -> None:
        """Handle a JSON-RPC notification."""
        if notification.method == MCPMethods.INITIALIZED:
            logger.info(event="client_ready", message="Client has completed initialization")
        elif notification.method == MCPMethods.CANCEL:
            params = notification.params or {}
            # Tool calls complete within their own request; nothing to abort
            logger.info(
                event="request_cancelled",
                request_id=params.get("requestId"),
                reason=params.get("reason"),
            )
        else:
            logger.warning(event="unknown_notification", method=notification.method)

    async def _handle_initialize(self, request: JSONRPCRequest) -> RPCResponse:
        """Handle initialize request - capability negotiation."""
        if not request.params:
            return JSONRPCHandler.create_error_response(
                request.id, INVALID_PARAMS, "Initialize requires params"
            )

        try:
            params = MCPInitializeParams.model_validate(request.params)
        except ValueError as e:
            return JSONRPCHandler.create_error_response(
                request.id, INVALID_PARAMS, f"Invalid initialize params: {str(e)}"
            )

        if params.protocolVersion in SUPPORTED_PROTOCOL_VERSIONS:
            protocol_version = params.protocolVersion
        else:
            logger.warning(
                event="protocol_version_mismatch",
                client_version=params.protocolVersion,
                server_version=MCP_PROTOCOL_VERSION,
            )
            protocol_version = MCP_PROTOCOL_VERSION

        result = MCPInitializeResult(
            protocolVersion=protocol_version,
            capabilities=self.capabilities,
            serverInfo=self.server_info,
            instructions=(
                "Use the 'send_discord_message' tool to post a notification to the "
                "Discord channel configured for this server."
            ),
        )

        logger.info(
            event="client_initialized",
            client_info=params.clientInfo.model_dump(),
            protocol_version=protocol_version,
        )

        return JSONRPCHandler.create_response(request.id, result.model_dump(exclude_none=True))

    async def _handle_tools_list(self, request: JSONRPCRequest) -> RPCResponse:
        """Handle tools/list request with cursor-based pagination."""
        params = MCPToolsListParams.model_validate(request.params or {})

        mcp_tools = [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": self._convert_tool_parameters_to_schema(tool),
            }
            for tool in self.tool_registry.list_tools()
        ]

        start_index = 0
        if params.cursor:
            try:
                start_index = int(params.cursor)
            except ValueError:
                return JSONRPCHandler.create_error_response(
                    request.id, INVALID_PARAMS, "Invalid cursor format"
                )

        end_index = start_index + self.config.mcp.page_size
        next_cursor = str(end_index) if end_index < len(mcp_tools) else None

        result = MCPToolsListResult(tools=mcp_tools[start_index:end_index], nextCursor=next_cursor)
        return JSONRPCHandler.create_response(request.id, result.model_dump(exclude_none=True))

    async def _handle_tools_call(self, request: JSONRPCRequest) -> RPCResponse:
        """Handle tools/call request."""
        if not request.params:
            return JSONRPCHandler.create_error_response(
                request.id, INVALID_PARAMS, "Tool call requires params"
            )

        try:
            params = MCPToolsCallParams.model_validate(request.params)
        except ValueError as e:
            return JSONRPCHandler.create_error_response(
                request.id, INVALID_PARAMS, f"Invalid tool call params: {str(e)}"
            )

        # Argument values carry message content; only their names are logged
        log_tool_call_json(
            event="mcp_tool_request",
            json_data={
                "id": request.id,
                "method": request.method,
                "tool_name": params.name,
                "argument_names": sorted(params.arguments or {}),
            },
            direction="incoming",
        )

        execution = await self.tool_registry.execute_tool(
            tool_name=params.name, arguments=params.arguments or {}
        )

        if execution.success:
            text = execution.result.get("message", "")
            result = MCPToolsCallResult(content=[MCPTextContent(text=text)])
        else:
            logger.warning(
                event="tool_execution_failed", tool_name=params.name, error=execution.error
            )
            result = MCPToolsCallResult(
                content=[MCPTextContent(text=execution.error or "Tool execution failed")],
                isError=True,
            )

        response = JSONRPCHandler.create_response(request.id, result.model_dump())
        log_tool_call_json(
            event="mcp_tool_response", json_data=response.model_dump(), direction="outgoing"
        )
        return response

    def _convert_tool_parameters_to_schema(self, tool: Tool) -> Dict[str, Any]:
        """Convert tool parameters to JSON Schema format."""
        return self._object_schema(tool.parameters)

    def _object_schema(self, parameters: List[ToolParameter]) -> Dict[str, Any]:
        properties = {param.name: self._parameter_schema(param) for param in parameters}
        required = [param.name for param in parameters if param.required]
        return {"type": "object", "properties": properties, "required": required}

    def _parameter_schema(self, param: ToolParameter) -> Dict[str, Any]:
        """Convert one parameter, recursing into object members and array items."""
        if param.type.value == "object" and param.properties is not None:
            schema = self._object_schema(param.properties)
        else:
            schema = {"type": param.type.value}

        if param.description:
            schema["description"] = param.description
        if param.enum:
            schema["enum"] = param.enum
        if param.type.value == "array" and param.items:
            schema["items"] = self._parameter_schema(param.items)

        return schema

    def get_router(self) -> APIRouter:
        """Get the FastAPI router for the streamable HTTP transport."""
        return self.router

    def health_check(self) -> Dict[str, Any]:
        """Health summary for startup logging."""
        return {
            "status": "healthy",
            "protocol_version": MCP_PROTOCOL_VERSION,
            "tools_count": len(self.tool_registry.list_tools()),
            "capabilities": self.capabilities.model_dump(exclude_none=True),
        }


_mcp_server: Optional[MCPServer] = None


def get_mcp_server(config: Optional[Config] = None) -> MCPServer:
    """Get or create the global MCP server instance."""
    global _mcp_server
    if _mcp_server is None:
        _mcp_server = MCPServer(config)
    return _mcp_server
