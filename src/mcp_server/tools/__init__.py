"""
MCP Tools Package

Tools exposed by the Discord notification MCP server.
"""

from .send_discord_message_tool import SendDiscordMessageTool

__all__ = [
    "SendDiscordMessageTool",
]
