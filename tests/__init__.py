"""
Xray MCP Server - Test Suite Package.

Unit tests run against a ``responses``-mocked Xray Cloud; no test needs
network access or real credentials.
"""
