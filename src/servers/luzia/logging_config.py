"""Centralized logging configuration for the MCP server.

This module provides a single source of truth for logging setup, so the stdio
and HTTP entry points log the same way. Logs always go to stderr because the
stdio transport owns stdout.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Settings

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "mcp")


def configure_logging(settings: Settings) -> None:
    """Configure logging for the MCP server.

    Sets up logging with:
    - Configurable log level from settings
    - Consistent format with timestamps, levels, and logger names
    - Stream handler to stderr for proper MCP communication

    Args:
        settings: Application settings containing log_level configuration
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,  # MCP uses stdout for protocol, stderr for logs
        force=True,
    )

    # Third-party request logs are only useful when debugging
    if log_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
