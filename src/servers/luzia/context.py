from __future__ import annotations

from dataclasses import dataclass

from .api_client import LuziaApiClient, get_api_client
from .config import Settings


@dataclass(frozen=True)
class AppContext:
    """Process-wide dependencies handed to every handler."""

    settings: Settings
    client: LuziaApiClient

    @classmethod
    def from_settings(cls, settings: Settings) -> AppContext:
        return cls(settings=settings, client=get_api_client(settings))

    @classmethod
    def for_testing(cls, client: LuziaApiClient, settings: Settings | None = None) -> AppContext:
        """Build a context around a fake client with placeholder settings."""
        if settings is None:
            settings = Settings(api_key="test-key", environment="test")
        return cls(settings=settings, client=client)
