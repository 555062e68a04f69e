"""
MCP Server Module.

Registers the Xray client operations as MCP tools.
"""

from xray_mcp.server.tools import SERVER_NAME, TOOL_NAMES, XrayTools, create_server

__all__ = ["SERVER_NAME", "TOOL_NAMES", "XrayTools", "create_server"]
