"""Three-way result of an upstream lookup.

Handlers never intercept exceptions from the API client directly. They await
``capture(...)`` and branch on the returned ``Found``, ``NotFound`` or
``Failed`` value, then render ``Failed`` through ``render_failure``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Generic, TypeVar, Union

import httpx

from .exceptions import ApiError, ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    detail: str | None = None


@dataclass(frozen=True)
class Failed:
    kind: ErrorKind
    message: str


Outcome = Union[Found[T], NotFound, Failed]


def failure_from_api_error(error: ApiError) -> Failed:
    return Failed(error.kind, error.detail_text)


async def capture(call: Awaitable[T | None]) -> Outcome[T]:
    """Await one API client call and classify how it ended."""
    try:
        value = await call
    except ApiError as exc:
        if exc.is_not_found():
            return NotFound(exc.detail_text)
        return failure_from_api_error(exc)
    except httpx.HTTPError as exc:
        logger.error(f"Pricing API transport failure: {exc!r}")
        return Failed(ErrorKind.INTERNAL, str(exc) or exc.__class__.__name__)
    except ValueError as exc:
        # Undecodable JSON or a payload that does not match the schema
        logger.error(f"Pricing API returned an unexpected payload: {exc}")
        return Failed(ErrorKind.INTERNAL, str(exc))
    if value is None:
        return NotFound()
    return Found(value)


def render_failure(failure: Failed, source: str) -> str:
    """Render a failure with the wording fixed for its kind.

    Args:
        failure: Classified failure to describe
        source: Tool or prompt name used in generic error messages

    Returns:
        Markdown-safe single line error text
    """
    if failure.kind is ErrorKind.RATE_LIMITED:
        return RATE_LIMIT_MESSAGE
    if failure.kind is ErrorKind.NOT_FOUND:
        return f"Not found: {failure.message}"
    if failure.kind is ErrorKind.UNAVAILABLE:
        return f"Service unavailable: {failure.message}"
    if failure.kind is ErrorKind.AUTH:
        return f"Authentication failed: {failure.message}"
    if failure.kind is ErrorKind.API:
        return f"API error: {failure.message}"
    if failure.kind is ErrorKind.INVALID_INPUT:
        return f"Invalid input: {failure.message}"
    return f"Error in {source}: {failure.message}"


def render_not_found(outcome: NotFound) -> str:
    return render_failure(Failed(ErrorKind.NOT_FOUND, outcome.detail or "resource not found"), "")
