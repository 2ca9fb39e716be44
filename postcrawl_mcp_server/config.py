"""Configuration management for PostCrawl MCP Server."""

import json
import os
from typing import Any, Dict, Optional
from dataclasses import dataclass, field


DEFAULT_BASE_URL = "https://edge.postcrawl.com"
DEFAULT_TIMEOUT = 300.0
BASE_URL_ENV_VAR = "POSTCRAWL_API_URL"


@dataclass
class ClientConfig:
    """Per-caller PostCrawl API client configuration."""
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class ServerConfig:
    """MCP server configuration."""
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/postcrawl_mcp_server.log"
    api_log_file: Optional[str] = "logs/postcrawl_api.log"


@dataclass
class Config:
    """Main configuration."""
    server: ServerConfig = field(default_factory=ServerConfig)
    api_base_url: str = DEFAULT_BASE_URL
    request_timeout: float = DEFAULT_TIMEOUT

    def client_config(self, api_key: str) -> ClientConfig:
        """Build a client configuration for one caller's API key."""
        return ClientConfig(
            api_key=api_key,
            base_url=self.api_base_url,
            timeout=self.request_timeout
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging setup."""
        return {
            "log_level": self.server.log_level,
            "host": self.server.host,
            "port": self.server.port,
            "log_file": self.server.log_file,
            "api_log_file": self.server.api_log_file
        }


def _resolve_base_url(configured: Optional[str]) -> str:
    """Environment override wins over the file, which wins over the built-in default."""
    return (os.environ.get(BASE_URL_ENV_VAR) or configured or DEFAULT_BASE_URL).rstrip("/")


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file."""
    if config_path is None:
        for path in ["config.json", "../config.json"]:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return Config(api_base_url=_resolve_base_url(None))

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise KeyError("Top-level configuration must be an object")

        server_config = ServerConfig(**data.get("server", {}))
        api_data = data.get("postcrawl", {})

        return Config(
            server=server_config,
            api_base_url=_resolve_base_url(api_data.get("base_url")),
            request_timeout=float(api_data.get("timeout", DEFAULT_TIMEOUT))
        )

    except (FileNotFoundError, json.JSONDecodeError, KeyError, TypeError) as e:
        raise ValueError(f"Failed to load config from {config_path}: {e}")
