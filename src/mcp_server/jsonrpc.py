"""
JSON-RPC 2.0 Protocol Implementation for MCP

This module implements the JSON-RPC 2.0 message format required by the
Model Context Protocol specification. All MCP messages are wrapped in
JSON-RPC envelopes, whichever transport carries them.

Reference: https://www.jsonrpc.org/specification
MCP Spec: https://spec.modelcontextprotocol.io/specification/2025-06-18/basic/
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class JSONRPCError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Optional[Any] = None


class JSONRPCRequest(BaseModel):
    """JSON-RPC 2.0 request message."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Union[str, int]
    method: str
    params: Optional[Dict[str, Any]] = None


class JSONRPCResponse(BaseModel):
    """JSON-RPC 2.0 response message (success)."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Union[str, int]
    result: Any


class JSONRPCErrorResponse(BaseModel):
    """JSON-RPC 2.0 response message (error)."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Union[str, int, None]
    error: JSONRPCError


class JSONRPCNotification(BaseModel):
    """JSON-RPC 2.0 notification message (no response expected)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Optional[Dict[str, Any]] = None


JSONRPCMessage = Union[JSONRPCRequest, JSONRPCResponse, JSONRPCErrorResponse, JSONRPCNotification]

JSONRPCBatch = List[Union[JSONRPCRequest, JSONRPCNotification]]


class MCPMethods:
    """MCP method names handled by this server."""

    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    PING = "ping"

    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"

    CANCEL = "notifications/cancelled"


class MCPCapabilities(BaseModel):
    """MCP server capabilities."""

    experimental: Optional[Dict[str, Any]] = None
    logging: Optional[Dict[str, Any]] = None
    tools: Optional[Dict[str, Any]] = None
    resources: Optional[Dict[str, Any]] = None
    prompts: Optional[Dict[str, Any]] = None


class MCPClientCapabilities(BaseModel):
    """MCP client capabilities."""

    experimental: Optional[Dict[str, Any]] = None
    roots: Optional[Dict[str, Any]] = None
    sampling: Optional[Dict[str, Any]] = None
    elicitation: Optional[Dict[str, Any]] = None


class MCPImplementation(BaseModel):
    """MCP implementation info."""

    name: str
    version: str


class MCPInitializeParams(BaseModel):
    """Parameters for initialize request."""

    protocolVersion: str
    capabilities: MCPClientCapabilities
    clientInfo: MCPImplementation


class MCPInitializeResult(BaseModel):
    """Result for initialize response."""

    protocolVersion: str
    capabilities: MCPCapabilities
    serverInfo: MCPImplementation
    instructions: Optional[str] = None


class MCPToolsListParams(BaseModel):
    """Parameters for tools/list request."""

    cursor: Optional[str] = None


class MCPToolsListResult(BaseModel):
    """Result for tools/list response."""

    tools: List[Dict[str, Any]]
    nextCursor: Optional[str] = None


class MCPToolsCallParams(BaseModel):
    """Parameters for tools/call request."""

    name: str
    arguments: Optional[Dict[str, Any]] = None


class MCPTextContent(BaseModel):
    """Text content for tool results."""

    type: Literal["text"] = "text"
    text: str


class MCPToolsCallResult(BaseModel):
    """Result for tools/call response."""

    content: List[MCPTextContent]
    isError: bool = False


class JSONRPCHandler:
    """Handler for JSON-RPC message processing."""

    @staticmethod
    def create_response(id: Union[str, int], result: Any) -> JSONRPCResponse:
        """Create a JSON-RPC success response."""
        return JSONRPCResponse(id=id, result=result)

    @staticmethod
    def create_error_response(
        id: Union[str, int, None], code: int, message: str, data: Optional[Any] = None
    ) -> JSONRPCErrorResponse:
        """Create a JSON-RPC error response."""
        error = JSONRPCError(code=code, message=message, data=data)
        return JSONRPCErrorResponse(id=id, error=error)

    @staticmethod
    def parse_message(data: Any) -> JSONRPCMessage:
        """
        Parse a raw JSON object into a JSON-RPC message.

        Raises:
            ValueError: If the object is not a valid JSON-RPC message
                (pydantic's ValidationError is a ValueError subclass)
        """
        if not isinstance(data, dict):
            raise ValueError(f"Invalid JSON-RPC message: {data!r}")

        if "id" in data:
            if "method" in data:
                return JSONRPCRequest.model_validate(data)
            elif "result" in data:
                return JSONRPCResponse.model_validate(data)
            elif "error" in data:
                return JSONRPCErrorResponse.model_validate(data)
        elif "method" in data:
            return JSONRPCNotification.model_validate(data)

        raise ValueError(f"Invalid JSON-RPC message: {data!r}")

    @staticmethod
    def is_batch(data: Any) -> bool:
        """Check if the data represents a JSON-RPC batch."""
        return isinstance(data, list)

    @staticmethod
    def validate_batch(data: List[Any]) -> JSONRPCBatch:
        """Validate and parse a JSON-RPC batch."""
        if not data:
            raise ValueError("Empty JSON-RPC batch")

        batch = []
        for item in data:
            message = JSONRPCHandler.parse_message(item)
            if isinstance(message, (JSONRPCRequest, JSONRPCNotification)):
                batch.append(message)
            else:
                raise ValueError(f"Invalid message in batch: {item!r}")
        return batch
