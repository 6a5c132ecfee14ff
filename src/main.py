"""
Main application entry point for the Discord notification MCP server.

Runs the HTTP transports (streamable HTTP and SSE) under uvicorn, or the
stdio transport when started with --stdio.
"""

# Standard library imports
import argparse
import asyncio
import os
import sys
from pathlib import Path

# Third-party imports
import uvicorn
from dotenv import load_dotenv

# Local imports
from common.config import WEBHOOK_URL_ENV, load_config
from common.logging import get_logger, log_startup_message, setup_logging
from gateway.app import create_gateway_app
from mcp_server.server import get_mcp_server
from mcp_server.transports.stdio import StdioTransport

# Load environment variables (WEBHOOK_URL) from .env file at module level
load_dotenv()

logger = get_logger(__name__)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Discord Notification MCP Server")
    parser.add_argument("--port", type=int, help="Override the port to run on")
    parser.add_argument("--host", type=str, help="Override the host to run on")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument(
        "--stdio", action="store_true", help="Serve MCP over stdin/stdout instead of HTTP"
    )
    return parser.parse_args()


def main() -> None:
    """Main entry point."""
    try:
        args = parse_args()
        config = load_config(args.config)

        # stdout belongs to the JSON-RPC stream in stdio mode
        setup_logging(config, stream=sys.stderr if args.stdio else None)

        mcp_server = get_mcp_server(config)
        log_startup_message(
            "application_starting",
            transport="stdio" if args.stdio else "http",
            webhook_configured=bool(os.environ.get(WEBHOOK_URL_ENV)),
            **mcp_server.health_check(),
        )

        if args.stdio:
            asyncio.run(StdioTransport(mcp_server).run())
            return

        app = create_gateway_app(config, mcp_server)

        host = args.host or config.server.host
        port = args.port or config.server.port

        logger.info(event="starting_server", host=host, port=port)

        uvicorn.run(
            app,
            host=host,
            port=port,
            log_config=None,  # Use our custom logging setup
            access_log=False,
        )

    except KeyboardInterrupt:
        logger.info(event="application_shutdown", reason="Keyboard interrupt")
    except Exception as e:
        logger.critical(event="application_crashed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    main()
