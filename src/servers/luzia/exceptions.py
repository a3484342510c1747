from __future__ import annotations

from enum import Enum

from fastmcp.exceptions import ToolError, ValidationError


class ErrorKind(str, Enum):
    """Classification used to pick the wording of an error response."""

    NOT_FOUND = "not_found"
    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    API = "api"
    INVALID_INPUT = "invalid_input"
    INTERNAL = "internal"


class LuziaError(ToolError):
    """Base exception for the Luzia MCP server."""


class LuziaValidationError(ValidationError, LuziaError):
    """Raised when user input fails validation."""


class ApiError(LuziaError):
    """Raised when the pricing API answers with a non-2xx status."""

    def __init__(self, status: int, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"ApiError(status={self.status!r}, message={self.message!r}, details={self.details!r})"

    def is_not_found(self) -> bool:
        return self.status == 404

    def is_auth_error(self) -> bool:
        return self.status in (401, 403)

    def is_rate_limit_error(self) -> bool:
        return self.status == 429

    def is_unavailable(self) -> bool:
        return self.status == 503

    @property
    def kind(self) -> ErrorKind:
        if self.is_not_found():
            return ErrorKind.NOT_FOUND
        if self.is_auth_error():
            return ErrorKind.AUTH
        if self.is_rate_limit_error():
            return ErrorKind.RATE_LIMITED
        if self.is_unavailable():
            return ErrorKind.UNAVAILABLE
        return ErrorKind.API

    @property
    def detail_text(self) -> str:
        """Upstream details when supplied, otherwise the message."""
        return self.details or self.message
