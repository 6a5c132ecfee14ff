"""
Tests for the HTTP gateway.

Exercises the streamable HTTP endpoint, the SSE message endpoint and the
not-found fallback through FastAPI's TestClient.
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from common.config import Config
from gateway.app import MCPGateway
from mcp_server.server import MCPServer
from mcp_server.tools import SendDiscordMessageTool

WEBHOOK_URL = "https://discord.com/api/webhooks/1/token"


class FakeDiscord:
    """Fake Discord endpoint with a configurable response."""

    def __init__(self):
        self.status_code = 200
        self.body = '{"id":"123"}'
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.body)


@pytest.fixture
def discord() -> FakeDiscord:
    return FakeDiscord()


@pytest.fixture
def env():
    return {"WEBHOOK_URL": WEBHOOK_URL}


@pytest.fixture
def gateway(discord, env) -> MCPGateway:
    """Create a gateway whose tool posts to the fake Discord."""
    tool = SendDiscordMessageTool(env=env, http_transport=httpx.MockTransport(discord.handler))
    config = Config()
    return MCPGateway(config, MCPServer(config, tools=[tool]))


@pytest.fixture
def client(gateway) -> TestClient:
    return TestClient(gateway.app)


def tool_call(arguments, id=1):
    return {
        "jsonrpc": "2.0",
        "id": id,
        "method": "tools/call",
        "params": {"name": "send_discord_message", "arguments": arguments},
    }


def result_text(response) -> str:
    return response.json()["result"]["content"][0]["text"]


class TestStreamableHTTP:
    """POST /mcp."""

    def test_tool_call_success_with_id(self, client: TestClient, discord: FakeDiscord) -> None:
        response = client.post("/mcp", json=tool_call({"content": "deploy done"}))

        assert response.status_code == 200
        assert result_text(response) == "Message sent successfully to Discord (message ID: 123)"
        assert json.loads(discord.requests[0].content) == {"content": "deploy done"}
        assert discord.requests[0].url.params["wait"] == "true"

    def test_tool_call_no_content(self, client: TestClient, discord: FakeDiscord) -> None:
        discord.status_code = 204
        discord.body = ""

        response = client.post("/mcp", json=tool_call({"content": "deploy done"}))

        assert result_text(response) == "Message sent successfully to Discord"

    def test_tool_call_rejected(self, client: TestClient, discord: FakeDiscord) -> None:
        discord.status_code = 400
        discord.body = "bad request"

        response = client.post("/mcp", json=tool_call({"content": "deploy done"}))

        assert response.status_code == 200
        assert result_text(response) == "Error sending message: Discord API error: 400 bad request"
        assert response.json()["result"]["isError"] is False

    def test_tool_call_not_configured(self, client: TestClient, discord: FakeDiscord, env) -> None:
        env.clear()

        response = client.post("/mcp", json=tool_call({"content": "deploy done"}))

        assert result_text(response) == "Error: WEBHOOK_URL is not configured"
        assert discord.requests == []

    def test_notification_accepted(self, client: TestClient) -> None:
        response = client.post(
            "/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"}
        )

        assert response.status_code == 202
        assert response.content == b""

    def test_invalid_json(self, client: TestClient) -> None:
        response = client.post(
            "/mcp", content="{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700

    def test_invalid_message(self, client: TestClient) -> None:
        response = client.post("/mcp", json={"jsonrpc": "2.0", "params": {}})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32600

    def test_get_not_allowed(self, client: TestClient) -> None:
        response = client.get("/mcp")

        assert response.status_code == 405


class TestSSEMessages:
    """POST /sse/message."""

    def test_unknown_session(self, client: TestClient) -> None:
        response = client.post("/sse/message?sessionId=nope", json=tool_call({"content": "x"}))

        assert response.status_code == 404

    def test_missing_session(self, client: TestClient) -> None:
        response = client.post("/sse/message", json=tool_call({"content": "x"}))

        assert response.status_code == 404

    def test_message_response_queued(self, client: TestClient, gateway: MCPGateway) -> None:
        session_id = gateway.sse_transport.open_session()

        response = client.post(
            f"/sse/message?sessionId={session_id}", json=tool_call({"content": "x"}, id="sse-1")
        )

        assert response.status_code == 202
        queued = gateway.sse_transport.sessions[session_id].get_nowait()
        assert queued["id"] == "sse-1"
        assert queued["result"]["content"][0]["text"] == (
            "Message sent successfully to Discord (message ID: 123)"
        )

    def test_invalid_body(self, client: TestClient, gateway: MCPGateway) -> None:
        session_id = gateway.sse_transport.open_session()

        response = client.post(
            f"/sse/message?sessionId={session_id}",
            content="garbage",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400


class TestNotFound:
    """Unknown paths."""

    @pytest.mark.parametrize("method", ["GET", "POST"])
    @pytest.mark.parametrize(
        "path", ["/", "/health", "/mcp/", "/sse/", "/sse/message/", "/mcp/extra", "/sse/other"]
    )
    def test_unknown_path(self, method: str, path: str, gateway: MCPGateway) -> None:
        client = TestClient(gateway.app, follow_redirects=False)

        response = client.request(method, path)

        assert response.status_code == 404
        assert response.text == "Not found"
