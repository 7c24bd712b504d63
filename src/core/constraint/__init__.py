from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_PATH = Path("config.toml")
DEFAULT_TIMEZONE = "America/Caracas"
API_PREFIX = "/api/v1"
USER_AGENT = "docpress/0.1.0"

__all__ = ["API_PREFIX", "DEFAULT_CONFIG_PATH", "DEFAULT_TIMEZONE", "USER_AGENT"]
