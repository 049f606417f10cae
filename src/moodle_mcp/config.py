"""
Moodle MCP Configuration — Unified settings for the MCP server

Load order: env vars > ~/.moodle-mcp/config.env > defaults
"""

import os
from pathlib import Path

from moodle_mcp.errors import ConfigError


def _load_config_env():
    """Load key=value pairs from ~/.moodle-mcp/config.env if it exists."""
    config_file = Path.home() / ".moodle-mcp" / "config.env"
    if not config_file.exists():
        return
    for line in config_file.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" in line:
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Load config.env before reading env vars
_load_config_env()


class Config:
    # Server identity
    SERVER_NAME = "moodle-mcp"
    SERVER_VERSION = "0.1.0"
    PROTOCOL_VERSION = "2024-11-05"

    # Moodle connection
    MOODLE_URL = os.environ.get("MOODLE_URL", "")
    MOODLE_USERNAME = os.environ.get("MOODLE_USERNAME", "")
    MOODLE_PASSWORD = os.environ.get("MOODLE_PASSWORD", "")
    MOODLE_SERVICE = os.environ.get("MOODLE_SERVICE") or "moodle_mobile_app"
    REQUEST_TIMEOUT = _env_int("MOODLE_TIMEOUT", 30)

    # Upper bound on files enumerated by resources/list
    RESOURCE_LIST_LIMIT = _env_int("MOODLE_RESOURCE_LIMIT", 500)

    # Paths
    DATA_DIR = Path(os.environ.get("MOODLE_MCP_DATA_DIR", str(Path.home() / ".moodle-mcp")))
    LOG_DIR = DATA_DIR / "logs"

    # Logging (NEVER to stdout — would corrupt MCP protocol)
    LOG_LEVEL = os.environ.get("MOODLE_MCP_LOG_LEVEL", "INFO")
    LOG_FILE = LOG_DIR / "moodle-mcp.log"
    ERROR_LOG = LOG_DIR / "moodle-mcp-errors.log"

    @classmethod
    def ensure_dirs(cls):
        """Create required directories."""
        cls.DATA_DIR.mkdir(parents=True, exist_ok=True)
        cls.LOG_DIR.mkdir(parents=True, exist_ok=True)

    @classmethod
    def missing_settings(cls):
        """Names of required connection variables that are not set."""
        required = {
            "MOODLE_URL": cls.MOODLE_URL,
            "MOODLE_USERNAME": cls.MOODLE_USERNAME,
            "MOODLE_PASSWORD": cls.MOODLE_PASSWORD,
        }
        return [name for name, value in required.items() if not value]

    @classmethod
    def moodle_settings(cls):
        """Build client settings, refusing to proceed without credentials."""
        from moodle_mcp.moodle.client import MoodleSettings

        missing = cls.missing_settings()
        if missing:
            raise ConfigError(
                f"Required environment variables not set: {', '.join(missing)}"
            )
        return MoodleSettings(
            url=cls.MOODLE_URL,
            username=cls.MOODLE_USERNAME,
            password=cls.MOODLE_PASSWORD,
            service=cls.MOODLE_SERVICE,
            timeout=cls.REQUEST_TIMEOUT,
        )
