"""
Configuration Loader Module.

Builds the Xray client settings from, in increasing precedence:
- Built-in defaults (Xray Cloud production endpoints).
- An optional YAML or JSON settings file with an ``xray`` mapping.
- ``XRAY_*`` environment variables.

The merged result is validated against the ``xray_config_schema`` JSON schema
before an XrayConfig is constructed. Every violation is reported, not just
the first.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import jsonschema
import yaml
from loguru import logger

from xray_mcp.xray.client import XrayConfig

DEFAULT_SCHEMA_PATH = Path(__file__).parent / "schemas" / "xray_config_schema.json"


class ConfigurationError(Exception):
    """Raised when settings are missing, invalid or cannot be loaded."""

    pass


# Environment variable -> settings key
ENV_VARS: Dict[str, str] = {
    "XRAY_CLIENT_ID": "client_id",
    "XRAY_CLIENT_SECRET": "client_secret",
    "XRAY_BASE_URL": "base_url",
    "XRAY_AUTH_URL": "auth_url",
    "XRAY_JIRA_BASE_URL": "jira_base_url",
    "XRAY_TIMEOUT_SEC": "timeout_sec",
    "XRAY_VERIFY_SSL": "verify_ssl",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigLoader:
    """
    Loads and validates Xray client settings.

    Attributes:
        schema_path: JSON schema (Draft 7) the merged settings must satisfy.
    """

    SUPPORTED_EXTENSIONS = {".yaml", ".yml", ".json"}

    def __init__(self, schema_path: str | Path = DEFAULT_SCHEMA_PATH) -> None:
        self.schema_path = Path(schema_path)
        self._validator: Optional[jsonschema.Draft7Validator] = None

    def load(
        self,
        config_file: str | Path | None = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> XrayConfig:
        """
        Build validated settings.

        Args:
            config_file: Optional YAML/JSON file. Its ``xray`` mapping (or the
                whole document when there is no such key) supplies settings.
            environ: Environment mapping (defaults to ``os.environ``).

        Returns:
            XrayConfig ready to hand to XrayClient.

        Raises:
            ConfigurationError: If a file cannot be read or the merged
                settings fail validation.
        """
        environ = os.environ if environ is None else environ

        settings: Dict[str, Any] = {}
        if config_file:
            settings.update(self._read_file(Path(config_file)))
        settings.update(self._from_environ(environ))

        self._validate(settings)

        config = XrayConfig(**settings)
        logger.info(f"Xray settings loaded, base_url={config.base_url}")
        return config

    def _read_file(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse a YAML or JSON settings file."""
        suffix = file_path.suffix.lower()
        if suffix not in self.SUPPORTED_EXTENSIONS:
            raise ConfigurationError(
                f"Unsupported file format '{suffix}'. "
                f"Supported: {sorted(self.SUPPORTED_EXTENSIONS)}"
            )

        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read file {file_path}: {e}") from e

        try:
            if suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to parse {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Settings file must contain a mapping (dict), "
                f"got {type(data).__name__}: {file_path}"
            )

        section = data.get("xray", data)
        if not isinstance(section, dict):
            raise ConfigurationError(f"'xray' section must be a mapping: {file_path}")

        logger.debug(f"Settings file read: {file_path}")
        return dict(section)

    @staticmethod
    def _from_environ(environ: Mapping[str, str]) -> Dict[str, Any]:
        settings: Dict[str, Any] = {}
        for var, key in ENV_VARS.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            if key == "timeout_sec":
                try:
                    settings[key] = float(raw)
                except ValueError as e:
                    raise ConfigurationError(f"{var} must be a number, got '{raw}'") from e
            elif key == "verify_ssl":
                lowered = raw.strip().lower()
                if lowered not in _TRUE_VALUES | _FALSE_VALUES:
                    raise ConfigurationError(f"{var} must be a boolean, got '{raw}'")
                settings[key] = lowered in _TRUE_VALUES
            else:
                settings[key] = raw
        return settings

    def _get_validator(self) -> jsonschema.Draft7Validator:
        if self._validator is None:
            try:
                schema = json.loads(self.schema_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigurationError(
                    f"Failed to load settings schema {self.schema_path}: {e}"
                ) from e
            self._validator = jsonschema.Draft7Validator(schema)
        return self._validator

    def _validate(self, settings: Dict[str, Any]) -> None:
        """Check merged settings against the schema, reporting every violation."""
        errors = sorted(
            self._get_validator().iter_errors(settings), key=lambda e: list(e.path)
        )
        if errors:
            problems = [
                f"[{'.'.join(str(p) for p in e.absolute_path) or 'settings'}] {e.message}"
                for e in errors
            ]
            raise ConfigurationError("Invalid Xray settings: " + "; ".join(problems))
