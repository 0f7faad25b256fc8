"""
Logging configuration for MCP Hub.
"""

import logging

from mcp_hub.configuration.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Per-request logging from the HTTP stack drowns out connection diagnostics
_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging based on settings."""
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level)

    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).debug(f"Logging configured with level: {settings.log_level}")
