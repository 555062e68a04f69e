"""
Xray MCP Server entry point.

Usage:
    xray-mcp-server
    xray-mcp-server --config config/xray.yaml --log-level DEBUG
    xray-mcp-server --env-file .env --transport http
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from xray_mcp import __version__
from xray_mcp.config.loader import ConfigLoader, ConfigurationError
from xray_mcp.server.tools import create_server
from xray_mcp.xray.client import XrayClient


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for the server."""
    parser = argparse.ArgumentParser(
        description="Xray Cloud MCP Server: test management tools over MCP"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Optional YAML/JSON settings file (XRAY_* environment variables override it)",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Optional .env file to load before reading settings",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--transport",
        default="stdio",
        choices=["stdio", "http"],
        help="MCP transport (default: stdio)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    # stdout carries the stdio transport
    logger.remove()
    logger.add(sys.stderr, level=level)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the Xray MCP server."""
    args = parse_args(argv)
    configure_logging(args.log_level)

    if args.env_file:
        load_dotenv(args.env_file)
    else:
        load_dotenv()

    try:
        config = ConfigLoader().load(args.config)
    except ConfigurationError as e:
        logger.error(f"[Server] {e}")
        logger.error("[Server] XRAY_CLIENT_ID and XRAY_CLIENT_SECRET must be set")
        return 1

    with XrayClient(config=config) as client:
        server = create_server(client)
        logger.info(f"[Server] Xray MCP server {__version__} running on {args.transport}")
        server.run(transport=args.transport)

    return 0


if __name__ == "__main__":
    sys.exit(main())
