"""
Tests for the MCP protocol layer.

Tests the JSON-RPC helpers, the initialize handshake, tools/list schema
generation and pagination, tools/call dispatch and argument validation.
"""

import httpx
import pytest

from common.config import Config
from mcp_server.jsonrpc import (
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    JSONRPCHandler,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    MCPMethods,
)
from mcp_server.server import MCP_PROTOCOL_VERSION, MCPServer
from mcp_server.tool_registry import Tool, ToolHandler, ToolParameter, ToolParameterType
from mcp_server.tools import SendDiscordMessageTool

WEBHOOK_URL = "https://discord.com/api/webhooks/1/token"


class EchoTool(ToolHandler):
    """Minimal tool used to exercise pagination and error handling."""

    def __init__(self, name: str, fail: bool = False):
        self.name = name
        self.fail = fail

    def get_tool_definition(self) -> Tool:
        return Tool(
            name=self.name,
            description="Echo",
            parameters=[ToolParameter(name="text", type=ToolParameterType.STRING)],
        )

    async def execute(self, arguments):
        if self.fail:
            raise RuntimeError("boom")
        return {"message": arguments.get("text", "")}


@pytest.fixture
def discord_requests():
    return []


@pytest.fixture
def mcp_server(discord_requests):
    """MCP server whose Discord tool talks to a fake endpoint."""

    def respond(request: httpx.Request) -> httpx.Response:
        discord_requests.append(request)
        return httpx.Response(200, json={"id": "123"})

    tool = SendDiscordMessageTool(
        env={"WEBHOOK_URL": WEBHOOK_URL}, http_transport=httpx.MockTransport(respond)
    )
    return MCPServer(Config(), tools=[tool])


def call(name, arguments, id="call-1"):
    return {
        "jsonrpc": "2.0",
        "id": id,
        "method": MCPMethods.TOOLS_CALL,
        "params": {"name": name, "arguments": arguments},
    }


class TestJSONRPCProtocol:
    """Test JSON-RPC 2.0 helpers."""

    def test_create_response(self):
        response = JSONRPCHandler.create_response(id="test-123", result={"success": True})

        assert response.jsonrpc == "2.0"
        assert response.id == "test-123"
        assert response.result == {"success": True}

    def test_create_error_response(self):
        error_response = JSONRPCHandler.create_error_response(
            id="test-123", code=-32602, message="Invalid params"
        )

        assert error_response.id == "test-123"
        assert error_response.error.code == -32602
        assert error_response.error.message == "Invalid params"

    def test_parse_message_request(self):
        data = {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}

        message = JSONRPCHandler.parse_message(data)
        assert isinstance(message, JSONRPCRequest)
        assert message.id == 1

    def test_parse_message_notification(self):
        data = {"jsonrpc": "2.0", "method": MCPMethods.INITIALIZED}

        message = JSONRPCHandler.parse_message(data)
        assert isinstance(message, JSONRPCNotification)

    def test_parse_message_rejects_garbage(self):
        with pytest.raises(ValueError):
            JSONRPCHandler.parse_message({"jsonrpc": "2.0"})
        with pytest.raises(ValueError):
            JSONRPCHandler.parse_message("tools/list")

    def test_empty_batch_rejected(self):
        with pytest.raises(ValueError):
            JSONRPCHandler.validate_batch([])


class TestHandshake:
    """Initialize and ping."""

    @pytest.mark.asyncio
    async def test_initialize(self, mcp_server):
        result = await mcp_server.handle_payload(
            {
                "jsonrpc": "2.0",
                "id": "init-1",
                "method": MCPMethods.INITIALIZE,
                "params": {
                    "protocolVersion": MCP_PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": "TestClient", "version": "1.0.0"},
                },
            }
        )

        assert result["id"] == "init-1"
        assert result["result"]["protocolVersion"] == MCP_PROTOCOL_VERSION
        assert result["result"]["serverInfo"] == {
            "name": "Discord Notification MCP",
            "version": "1.0.0",
        }
        assert result["result"]["capabilities"] == {"tools": {"listChanged": False}}

    @pytest.mark.asyncio
    async def test_initialize_echoes_supported_older_version(self, mcp_server):
        result = await mcp_server.handle_payload(
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": MCPMethods.INITIALIZE,
                "params": {
                    "protocolVersion": "2024-11-05",
                    "capabilities": {},
                    "clientInfo": {"name": "TestClient", "version": "1.0.0"},
                },
            }
        )

        assert result["result"]["protocolVersion"] == "2024-11-05"

    @pytest.mark.asyncio
    async def test_initialize_unknown_version_falls_back(self, mcp_server):
        result = await mcp_server.handle_payload(
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": MCPMethods.INITIALIZE,
                "params": {
                    "protocolVersion": "1999-01-01",
                    "capabilities": {},
                    "clientInfo": {"name": "TestClient", "version": "1.0.0"},
                },
            }
        )

        assert result["result"]["protocolVersion"] == MCP_PROTOCOL_VERSION

    @pytest.mark.asyncio
    async def test_initialize_without_params(self, mcp_server):
        result = await mcp_server.handle_payload(
            {"jsonrpc": "2.0", "id": 1, "method": MCPMethods.INITIALIZE}
        )

        assert result["error"]["code"] == INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_ping(self, mcp_server):
        result = await mcp_server.handle_payload({"jsonrpc": "2.0", "id": 7, "method": "ping"})

        assert result == {"jsonrpc": "2.0", "id": 7, "result": {}}

    @pytest.mark.asyncio
    async def test_unknown_method(self, mcp_server):
        result = await mcp_server.handle_payload(
            {"jsonrpc": "2.0", "id": 1, "method": "resources/list"}
        )

        assert result["error"]["code"] == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_notification_has_no_response(self, mcp_server):
        result = await mcp_server.handle_payload(
            {"jsonrpc": "2.0", "method": MCPMethods.INITIALIZED}
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_batch(self, mcp_server):
        result = await mcp_server.handle_payload(
            [
                {"jsonrpc": "2.0", "method": MCPMethods.INITIALIZED},
                {"jsonrpc": "2.0", "id": 1, "method": "ping"},
                {"jsonrpc": "2.0", "id": 2, "method": "ping"},
            ]
        )

        assert [r["id"] for r in result] == [1, 2]


class TestToolsList:
    """tools/list schema and pagination."""

    @pytest.mark.asyncio
    async def test_lists_discord_tool(self, mcp_server):
        result = await mcp_server.handle_payload(
            {"jsonrpc": "2.0", "id": 1, "method": MCPMethods.TOOLS_LIST}
        )

        tools = result["result"]["tools"]
        assert len(tools) == 1
        assert "nextCursor" not in result["result"]

        tool = tools[0]
        assert tool["name"] == "send_discord_message"
        assert tool["description"] == "Send a message to Discord via webhook"

        schema = tool["inputSchema"]
        assert schema["type"] == "object"
        assert schema["required"] == ["content"]
        assert set(schema["properties"]) == {"content", "tts", "embeds", "allowed_mentions"}
        assert schema["properties"]["tts"]["type"] == "boolean"

    @pytest.mark.asyncio
    async def test_listed_tool_shape(self, mcp_server):
        result = await mcp_server.handle_payload(
            {"jsonrpc": "2.0", "id": 1, "method": MCPMethods.TOOLS_LIST}
        )

        tool = result["result"]["tools"][0]
        assert set(tool) == {"name", "description", "inputSchema"}
        assert tool["inputSchema"]["properties"]["content"] == {
            "type": "string",
            "description": "The message content to send",
        }
        assert set(tool["inputSchema"]["properties"]["embeds"]) == {"type", "description", "items"}

    @pytest.mark.asyncio
    async def test_nested_schema(self, mcp_server):
        result = await mcp_server.handle_payload(
            {"jsonrpc": "2.0", "id": 1, "method": MCPMethods.TOOLS_LIST}
        )
        properties = result["result"]["tools"][0]["inputSchema"]["properties"]

        embed = properties["embeds"]["items"]
        assert embed["type"] == "object"
        assert embed["properties"]["color"]["type"] == "integer"
        assert embed["properties"]["footer"]["required"] == ["text"]
        assert embed["properties"]["author"]["required"] == ["name"]
        assert embed["properties"]["fields"]["items"]["required"] == ["name", "value"]

        parse = properties["allowed_mentions"]["properties"]["parse"]
        assert parse["items"]["enum"] == ["roles", "users", "everyone"]
        assert properties["allowed_mentions"]["required"] == []

    @pytest.mark.asyncio
    async def test_pagination(self):
        config = Config()
        config.mcp.page_size = 2
        server = MCPServer(config, tools=[EchoTool(f"echo_{i}") for i in range(3)])

        first = await server.handle_payload(
            {"jsonrpc": "2.0", "id": 1, "method": MCPMethods.TOOLS_LIST}
        )
        assert [t["name"] for t in first["result"]["tools"]] == ["echo_0", "echo_1"]
        assert first["result"]["nextCursor"] == "2"

        second = await server.handle_payload(
            {
                "jsonrpc": "2.0",
                "id": 2,
                "method": MCPMethods.TOOLS_LIST,
                "params": {"cursor": "2"},
            }
        )
        assert [t["name"] for t in second["result"]["tools"]] == ["echo_2"]
        assert "nextCursor" not in second["result"]

    @pytest.mark.asyncio
    async def test_invalid_cursor(self, mcp_server):
        result = await mcp_server.handle_payload(
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": MCPMethods.TOOLS_LIST,
                "params": {"cursor": "abc"},
            }
        )

        assert result["error"]["code"] == INVALID_PARAMS


class TestToolsCall:
    """tools/call dispatch and validation."""

    @pytest.mark.asyncio
    async def test_send_message(self, mcp_server, discord_requests):
        result = await mcp_server.handle_payload(call("send_discord_message", {"content": "hi"}))

        assert result["result"] == {
            "content": [
                {"type": "text", "text": "Message sent successfully to Discord (message ID: 123)"}
            ],
            "isError": False,
        }
        assert len(discord_requests) == 1

    @pytest.mark.asyncio
    async def test_missing_content_rejected(self, mcp_server, discord_requests):
        result = await mcp_server.handle_payload(call("send_discord_message", {"tts": True}))

        assert result["result"]["isError"] is True
        assert "content" in result["result"]["content"][0]["text"]
        assert discord_requests == []

    @pytest.mark.asyncio
    async def test_wrong_type_rejected(self, mcp_server, discord_requests):
        result = await mcp_server.handle_payload(call("send_discord_message", {"content": 5}))

        assert result["result"]["isError"] is True
        assert discord_requests == []

    @pytest.mark.asyncio
    async def test_invalid_parse_value_rejected(self, mcp_server, discord_requests):
        result = await mcp_server.handle_payload(
            call(
                "send_discord_message",
                {"content": "hi", "allowed_mentions": {"parse": ["channels"]}},
            )
        )

        assert result["result"]["isError"] is True
        assert "must be one of" in result["result"]["content"][0]["text"]
        assert discord_requests == []

    @pytest.mark.asyncio
    async def test_nested_required_field_rejected(self, mcp_server, discord_requests):
        result = await mcp_server.handle_payload(
            call(
                "send_discord_message",
                {"content": "hi", "embeds": [{"title": "x", "footer": {"icon_url": "u"}}]},
            )
        )

        text = result["result"]["content"][0]["text"]
        assert result["result"]["isError"] is True
        assert "embeds[0].footer.text" in text
        assert discord_requests == []

    @pytest.mark.asyncio
    async def test_boolean_is_not_integer(self, mcp_server, discord_requests):
        result = await mcp_server.handle_payload(
            call("send_discord_message", {"content": "hi", "embeds": [{"color": True}]})
        )

        assert result["result"]["isError"] is True
        assert discord_requests == []

    @pytest.mark.asyncio
    async def test_unknown_tool(self, mcp_server):
        result = await mcp_server.handle_payload(call("delete_channel", {}))

        assert result["result"]["isError"] is True
        assert "not found" in result["result"]["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_error_result(self):
        server = MCPServer(Config(), tools=[EchoTool("echo", fail=True)])

        result = await server.handle_payload(call("echo", {"text": "x"}))

        assert result["result"] == {
            "content": [{"type": "text", "text": "boom"}],
            "isError": True,
        }

    @pytest.mark.asyncio
    async def test_missing_params(self, mcp_server):
        result = await mcp_server.handle_payload(
            {"jsonrpc": "2.0", "id": 1, "method": MCPMethods.TOOLS_CALL}
        )

        assert result["error"]["code"] == INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_response_model(self, mcp_server):
        request = JSONRPCRequest(
            id="x", method=MCPMethods.TOOLS_CALL, params={"name": "send_discord_message", "arguments": {"content": "hi"}}
        )

        response = await mcp_server._handle_request(request)

        assert isinstance(response, JSONRPCResponse)
        assert response.id == "x"
