from __future__ import annotations

import sys
from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the Luzia MCP server.

    All settings can be configured via environment variables with the
    LUZIA_ prefix. For example:
        LUZIA_API_KEY=sk-live-...
        LUZIA_API_URL=https://api.luzia.dev
        LUZIA_TRANSPORT_TYPE=http
        LUZIA_HTTP_PORT=50060
    """

    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment environment the server runs in.",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )

    # Transport configuration
    transport_type: Literal["stdio", "http"] = Field(
        default="stdio",
        description="MCP transport protocol to use.",
    )
    http_host: str = Field(
        default="127.0.0.1",
        description="Host address for the HTTP transport.",
    )
    http_port: int = Field(
        default=50060,
        description="Port number for the HTTP transport.",
        ge=1,
        le=65535,
    )

    # Upstream pricing API configuration
    api_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the Luzia pricing API.",
    )
    api_key: str = Field(
        description="API key sent as a bearer token to the pricing API.",
        min_length=1,
    )
    request_timeout: float = Field(
        default=10.0,
        description="HTTP timeout (seconds) applied to pricing API requests.",
        gt=0.0,
        le=120.0,
    )

    # HTTP session bookkeeping
    session_idle_timeout: float = Field(
        default=1800.0,
        description="Seconds a session may stay idle before it is closed.",
        gt=0.0,
    )
    max_sessions: int = Field(
        default=1000,
        description="Maximum number of concurrent HTTP sessions.",
        ge=1,
    )
    session_sweep_interval: float = Field(
        default=60.0,
        description="Seconds between idle session sweeps.",
        gt=0.0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LUZIA_",
        case_sensitive=False,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Require an absolute http(s) URL and drop any trailing slash."""
        url = v.strip()
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("api_url must be an absolute http(s) URL")
        return url.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


def load_settings() -> Settings:
    """Load settings for process startup, exiting on invalid configuration."""

    try:
        return get_settings()
    except ValidationError as exc:
        lines = ["Invalid environment configuration:"]
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "settings"
            lines.append(f"  LUZIA_{field.upper()}: {error['msg']}")
        sys.stderr.write("\n".join(lines) + "\n")
        raise SystemExit(1) from exc
