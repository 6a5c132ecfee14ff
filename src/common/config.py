"""
Configuration loader for the Discord notification MCP server.

Loads settings from config.yaml. Environment variables are used ONLY for secrets
(the Discord WEBHOOK_URL), which are read at tool invocation time and never logged.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

# Name of the environment variable holding the Discord webhook URL
WEBHOOK_URL_ENV = "WEBHOOK_URL"

_LOGGING_KEYS = (
    "enable_pretty_print",
    "enable_jq_json_formatting",
    "log_tool_calls_only",
    "save_to_file",
    "log_file_path",
    "max_log_file_size",
    "backup_count",
)


class ServerConfig(BaseModel):
    """Configuration for the HTTP server hosting the MCP transports."""

    host: str = Field(default="127.0.0.1", description="Host to bind to")
    port: int = Field(default=8787, description="Port to bind to")
    sse_keepalive_seconds: float = Field(
        default=15.0, description="Interval between SSE keep-alive comments"
    )


class MCPConfig(BaseModel):
    """Configuration for the MCP protocol layer."""

    server_name: str = Field(default="Discord Notification MCP", description="Advertised name")
    server_version: str = Field(default="1.0.0", description="Advertised version")
    page_size: int = Field(default=50, description="tools/list page size")


class Config(BaseModel):
    """Main configuration object."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    mcp: MCPConfig = Field(default_factory=MCPConfig)
    log_level: str = Field(default="INFO", description="Logging level")
    enable_pretty_print: bool = Field(
        default=False, description="Enable custom pretty print for debugging"
    )
    enable_jq_json_formatting: bool = Field(
        default=False, description="Enable jq-style JSON formatting for logs"
    )
    log_tool_calls_only: bool = Field(
        default=False, description="Suppress normal logs and print tool call JSON only"
    )
    save_to_file: bool = Field(default=False, description="Save logs to file")
    log_file_path: str = Field(default="server.log", description="Log file path (relative to root)")
    max_log_file_size: int = Field(
        default=10485760, description="Max log file size in bytes (10MB)"
    )
    backup_count: int = Field(default=5, description="Number of backup log files to keep")


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from YAML file.

    Environment variables are used ONLY for secrets (WEBHOOK_URL), not configuration.

    Args:
        config_path: Path to config.yaml file. Defaults to ./config.yaml

    Returns:
        Loaded configuration object
    """
    if config_path is None:
        config_path = Path("config.yaml")

    config_data: Dict[str, Any] = {}

    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    # Handle nested logging configuration
    logging_config = config_data.pop("logging", None) or {}
    if "level" in logging_config:
        config_data["log_level"] = logging_config["level"]
    for key in _LOGGING_KEYS:
        if key in logging_config:
            config_data[key] = logging_config[key]

    return Config(**config_data)
