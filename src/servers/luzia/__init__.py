"""Luzia cryptocurrency market data MCP server."""

__version__ = "1.0.0"

from .server import create_server, main  # noqa: E402

__all__ = [
    "__version__",
    "create_server",
    "main",
]
