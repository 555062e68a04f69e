"""
Configuration Management Module.

Handles loading and validation of the Xray client settings from
YAML/JSON files and XRAY_* environment variables.
"""

from xray_mcp.config.loader import ConfigLoader, ConfigurationError

__all__ = ["ConfigLoader", "ConfigurationError"]
