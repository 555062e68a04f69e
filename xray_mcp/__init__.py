"""
Xray MCP Server - Core Package.

This package contains:
- Xray: Cloud GraphQL client for tests, executions, plans and sets.
- Configuration: credential and endpoint settings with schema validation.
- Server: MCP tools dispatching to a single client instance.
"""

__version__ = "0.1.0"
