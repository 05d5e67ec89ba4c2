"""
Configuration handling for the MCP SSE client.

This module provides functionality to load, validate, and manage
configuration from JSON files and environment variables.
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from .errors import ConfigError
from .sse.transport import TransportConfig


logger = logging.getLogger(__name__)


class Config:
    """Configuration manager for the MCP SSE client."""

    # Default configuration values
    DEFAULT_CONFIG = {
        "server": {
            "baseUrl": "http://localhost:8777",
            "headers": {},
            "authToken": None
        },
        "client": {
            "name": "mcpclient",
            "version": "1.0.0"
        },
        "timeouts": {
            "connect": 10.0,
            "request": 30.0,
            "endpoint": 30.0
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": None
        }
    }

    ENV_MAPPINGS = {
        "MCPCLIENT_BASE_URL": ("server.baseUrl", "string"),
        "MCPCLIENT_AUTH_TOKEN": ("server.authToken", "string"),
        "MCPCLIENT_CLIENT_NAME": ("client.name", "string"),
        "MCPCLIENT_CLIENT_VERSION": ("client.version", "string"),
        "MCPCLIENT_CONNECT_TIMEOUT": ("timeouts.connect", "float"),
        "MCPCLIENT_REQUEST_TIMEOUT": ("timeouts.request", "float"),
        "MCPCLIENT_ENDPOINT_TIMEOUT": ("timeouts.endpoint", "float"),
        "MCPCLIENT_LOG_LEVEL": ("logging.level", "string"),
    }

    def __init__(self, config_path: Optional[str] = None, validate: bool = True):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to configuration file (optional)
            validate: Validate after loading; pass False when overrides are
                applied afterwards, then call `validate()` once
        """
        self.config: Dict[str, Any] = {}
        self.config_path = config_path
        self._load_config()
        if validate:
            self._validate_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        # Start with defaults
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path:
            self._load_from_file(self.config_path)

        # Override with environment variables
        self._load_from_env()

        logger.info(f"Configuration loaded from {self.config_path or 'defaults'}")

    def _load_from_file(self, config_path: str) -> None:
        """
        Load configuration from JSON file.

        Args:
            config_path: Path to configuration file

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            return

        try:
            with open(path, 'r') as f:
                file_config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to load config file: {e}")

        if not isinstance(file_config, dict):
            raise ConfigError("Config file must contain a JSON object")

        self._merge_config(self.config, file_config)
        logger.info(f"Loaded configuration from {config_path}")

    def _load_from_env(self) -> None:
        """Load configuration overrides from environment variables."""
        for env_var, (config_path, value_type) in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    parsed_value = self._parse_env_value(value, value_type)
                    self._set_nested_value(self.config, config_path, parsed_value)
                    logger.debug(f"Loaded {env_var}")
                except ValueError as e:
                    raise ConfigError(f"Failed to parse {env_var}: {e}", config_key=config_path)

    def _parse_env_value(self, value: str, value_type: str) -> Any:
        """
        Parse environment variable value based on type.

        Args:
            value: String value from environment
            value_type: Type to parse to (string, float)

        Returns:
            Parsed value

        Raises:
            ValueError: If value cannot be parsed
        """
        if value_type == "string":
            return value
        elif value_type == "float":
            if value.lower() in ("none", "off"):
                return None
            return float(value)
        else:
            raise ValueError(f"Unknown value type: {value_type}")

    def _merge_config(self, base: Dict, override: Dict) -> None:
        """
        Recursively merge override config into base config.

        Args:
            base: Base configuration dictionary (modified in place)
            override: Override configuration dictionary
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def _set_nested_value(self, config: Dict, path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation."""
        keys = path.split(".")
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def validate(self) -> None:
        """Re-validate after programmatic overrides."""
        self._validate_config()

    def _validate_config(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigError: If configuration is invalid
        """
        base_url = self.get_base_url()
        if not isinstance(base_url, str) or not base_url.startswith(("http://", "https://")):
            raise ConfigError(f"Invalid base URL: {base_url}", config_key="server.baseUrl")

        headers = self.get("server.headers")
        if not isinstance(headers, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in headers.items()
        ):
            raise ConfigError("Headers must map strings to strings", config_key="server.headers")

        for key in ("client.name", "client.version"):
            value = self.get(key)
            if not isinstance(value, str) or not value:
                raise ConfigError(f"Invalid value: {value!r}", config_key=key)

        for key in ("timeouts.connect", "timeouts.request", "timeouts.endpoint"):
            value = self.get(key)
            if value is None and key != "timeouts.connect":
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"Timeout must be a positive number, got: {value!r}", config_key=key)

        log_level = self.get_log_level()
        valid_levels = ("debug", "info", "warning", "error", "critical")
        if not isinstance(log_level, str) or log_level.lower() not in valid_levels:
            raise ConfigError(f"Invalid log level: {log_level}", config_key="logging.level")

    def get_base_url(self) -> str:
        """Get the event stream URL."""
        return self.config.get("server", {}).get("baseUrl", "http://localhost:8777")

    def get_client_name(self) -> str:
        return self.config.get("client", {}).get("name", "mcpclient")

    def get_client_version(self) -> str:
        return self.config.get("client", {}).get("version", "1.0.0")

    def get_request_timeout(self) -> Optional[float]:
        """Get the per-call deadline (None waits indefinitely)."""
        return self.config.get("timeouts", {}).get("request", 30.0)

    def get_endpoint_timeout(self) -> Optional[float]:
        """Get the deadline for the endpoint announcement."""
        return self.config.get("timeouts", {}).get("endpoint", 30.0)

    def get_connect_timeout(self) -> float:
        return self.config.get("timeouts", {}).get("connect", 10.0)

    def get_log_level(self) -> str:
        """Get client log level."""
        return self.config.get("logging", {}).get("level", "INFO")

    def get_log_format(self) -> str:
        """Get log format string."""
        return self.config.get("logging", {}).get(
            "format",
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    def get_log_file(self) -> Optional[str]:
        """Get log file path (None for console only)."""
        return self.config.get("logging", {}).get("file")

    def build_headers(self) -> Dict[str, str]:
        """
        Build the headers attached to every request.

        An auth token becomes a bearer Authorization header unless one is
        configured explicitly.
        """
        headers = dict(self.get("server.headers", {}))
        token = self.get("server.authToken")
        if token and not any(k.lower() == "authorization" for k in headers):
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def build_transport_config(self) -> TransportConfig:
        """Build the transport configuration from the timeout settings."""
        request_timeout = self.get_request_timeout()
        return TransportConfig(
            connection_timeout=self.get_connect_timeout(),
            request_timeout=request_timeout if request_timeout is not None else 30.0,
            endpoint_timeout=self.get_endpoint_timeout(),
        )

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by key.

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        current = self.config

        for k in keys:
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default

        return current

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self.config)
