"""
Send Discord Message Tool for MCP

Posts a notification to the Discord channel behind the configured webhook.

Standard MCP Tool: send_discord_message
- content is required; tts, embeds and allowed_mentions are optional
- WEBHOOK_URL is read from the environment on every invocation
- Every outcome, including delivery failures, is returned as result text
"""

import os
from typing import Any, Dict, Mapping, Optional

import httpx

from adapters.discord_models import AllowedMentionsType
from adapters.discord_webhook import send_discord_message
from common.config import WEBHOOK_URL_ENV
from common.logging import get_logger
from ..tool_registry import Tool, ToolHandler, ToolParameter, ToolParameterType

logger = get_logger(__name__)

TOOL_NAME = "send_discord_message"

NOT_CONFIGURED_MESSAGE = f"Error: {WEBHOOK_URL_ENV} is not configured"
SENT_MESSAGE = "Message sent successfully to Discord"


def _string(name: str, description: str = "", required: bool = False) -> ToolParameter:
    return ToolParameter(
        name=name, type=ToolParameterType.STRING, description=description, required=required
    )


def _boolean(name: str, description: str = "") -> ToolParameter:
    return ToolParameter(name=name, type=ToolParameterType.BOOLEAN, description=description)


def _string_list(name: str, description: str) -> ToolParameter:
    return ToolParameter(
        name=name,
        type=ToolParameterType.ARRAY,
        description=description,
        items=ToolParameter(type=ToolParameterType.STRING),
    )


EMBED_PARAMETER = ToolParameter(
    type=ToolParameterType.OBJECT,
    description="Embed object",
    properties=[
        _string("title"),
        _string("description"),
        _string("url"),
        ToolParameter(name="color", type=ToolParameterType.INTEGER, description="Color code"),
        _string("timestamp", "ISO8601 timestamp"),
        ToolParameter(
            name="footer",
            type=ToolParameterType.OBJECT,
            properties=[_string("text", required=True), _string("icon_url")],
        ),
        ToolParameter(
            name="author",
            type=ToolParameterType.OBJECT,
            properties=[_string("name", required=True), _string("url"), _string("icon_url")],
        ),
        ToolParameter(
            name="fields",
            type=ToolParameterType.ARRAY,
            items=ToolParameter(
                type=ToolParameterType.OBJECT,
                properties=[
                    _string("name", required=True),
                    _string("value", required=True),
                    _boolean("inline"),
                ],
            ),
        ),
    ],
)

ALLOWED_MENTIONS_PARAMETER = ToolParameter(
    name="allowed_mentions",
    type=ToolParameterType.OBJECT,
    description="Allowed mentions object",
    properties=[
        ToolParameter(
            name="parse",
            type=ToolParameterType.ARRAY,
            description="Mention types to parse from the content",
            items=ToolParameter(
                type=ToolParameterType.STRING,
                enum=[mention_type.value for mention_type in AllowedMentionsType],
            ),
        ),
        _string_list("roles", "Role IDs that may be mentioned"),
        _string_list("users", "User IDs that may be mentioned"),
        _boolean("replied_user", "Whether to mention the author of the replied message"),
    ],
)


class SendDiscordMessageTool(ToolHandler):
    """MCP tool that sends a message to Discord via the configured webhook."""

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the tool.

        Args:
            env: Mapping the webhook URL is read from; defaults to os.environ
            http_transport: httpx transport override for the outbound request
        """
        self.env = env
        self.http_transport = http_transport

    def get_tool_definition(self) -> Tool:
        """Get the standard MCP tool definition."""
        return Tool(
            name=TOOL_NAME,
            description="Send a message to Discord via webhook",
            parameters=[
                _string("content", "The message content to send", required=True),
                _boolean("tts", "True if this is a TTS message"),
                ToolParameter(
                    name="embeds",
                    type=ToolParameterType.ARRAY,
                    description="Array of embed objects",
                    items=EMBED_PARAMETER,
                ),
                ALLOWED_MENTIONS_PARAMETER,
            ],
        )

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send the message and describe the outcome.

        Args:
            arguments: Validated tool arguments

        Returns:
            Result with a human-readable 'message'
        """
        env = os.environ if self.env is None else self.env
        webhook_url = env.get(WEBHOOK_URL_ENV)

        if not webhook_url:
            logger.warning(event="discord_webhook_not_configured", env_var=WEBHOOK_URL_ENV)
            return self._result("error", NOT_CONFIGURED_MESSAGE)

        try:
            async with httpx.AsyncClient(transport=self.http_transport) as client:
                message = await send_discord_message(
                    webhook_url,
                    arguments["content"],
                    tts=arguments.get("tts"),
                    embeds=arguments.get("embeds"),
                    allowed_mentions=arguments.get("allowed_mentions"),
                    client=client,
                )
        except Exception as e:
            logger.error(
                event="discord_message_failed", error=str(e), error_type=type(e).__name__
            )
            return self._result("error", f"Error sending message: {str(e) or 'Unknown error'}")

        if message is not None:
            message_id = message.get("id") if isinstance(message, dict) else None
            logger.info(event="discord_message_sent", message_id=message_id)
            return self._result(
                "success", f"{SENT_MESSAGE} (message ID: {message_id})", message_id=message_id
            )

        logger.info(event="discord_message_sent", message_id=None)
        return self._result("success", SENT_MESSAGE)

    def _result(self, status: str, message: str, **extra: Any) -> Dict[str, Any]:
        return {"status": status, "message": message, "tool": TOOL_NAME, **extra}
