"""
Model Context Protocol (MCP) implementation.

Exposes the send_discord_message tool over JSON-RPC 2.0, carried by the
streamable HTTP, SSE and stdio transports.
"""
