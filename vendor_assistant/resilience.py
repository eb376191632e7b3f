"""
Retry and error mapping for external collaborator calls.

Classifier, catalog, geocoder, and narrator calls go through
``call_collaborator``. Transient failures (overload, rate limiting) are
retried with exponential backoff; everything else surfaces immediately
as a ``CollaboratorError`` so the caller can fall back.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from vendor_assistant.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_CODES: frozenset[Union[int, str]] = frozenset(
    {429, 503, "429", "503", "UNAVAILABLE", "RESOURCE_EXHAUSTED"}
)

HIGH_DEMAND_MESSAGE = "I'm currently experiencing high demand. Please try again in a few moments."
RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment and try again."
CONNECTIVITY_MESSAGE = (
    "I'm having trouble connecting right now. "
    "Please check your internet connection and try again."
)
GENERIC_ERROR_MESSAGE = (
    "I encountered an issue processing your request. Please try again in a moment."
)


class CollaboratorError(Exception):
    """An external collaborator call failed after any retries."""

    def __init__(
        self,
        message: str,
        collaborator: Optional[str] = None,
        status: Optional[Union[int, str]] = None,
    ) -> None:
        super().__init__(message)
        self.collaborator = collaborator
        self.status = status


class TransientCollaboratorError(CollaboratorError):
    """A failure worth retrying, e.g. overload or rate limiting."""


def _status_of(error: BaseException) -> Optional[Union[int, str]]:
    status = getattr(error, "status", None)
    if status is None:
        status = getattr(error, "code", None)
    return status


def is_transient(error: BaseException) -> bool:
    """Whether an error signals a temporary condition that a retry may clear."""
    if isinstance(error, TransientCollaboratorError):
        return True
    status = _status_of(error)
    return status is not None and status in TRANSIENT_CODES


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: Optional[int] = None,
    initial_delay: Optional[float] = None,
) -> T:
    """
    Await ``fn()``, retrying transient failures up to ``max_retries`` times.

    The delay before retry ``n`` (0-based) is ``initial_delay * 2**n``
    seconds. Non-transient errors, and the final transient one, propagate
    unchanged.
    """
    retries = settings.retry.max_retries if max_retries is None else max_retries
    delay = settings.retry.initial_delay_sec if initial_delay is None else initial_delay

    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if not is_transient(e) or attempt >= retries:
                raise
            wait = delay * (2 ** attempt)
            logger.warning(
                "Transient failure (%s); retry %d/%d after %.2fs",
                e, attempt + 1, retries, wait,
            )
            await asyncio.sleep(wait)
            attempt += 1


async def call_collaborator(
    name: str,
    fn: Callable[[], Awaitable[T]],
    max_retries: Optional[int] = None,
    initial_delay: Optional[float] = None,
) -> T:
    """Run a collaborator call with retries; any failure becomes CollaboratorError."""
    try:
        return await retry_with_backoff(fn, max_retries=max_retries, initial_delay=initial_delay)
    except CollaboratorError as e:
        if e.collaborator is None:
            e.collaborator = name
        raise
    except Exception as e:
        logger.error("Collaborator '%s' failed: %s", name, e)
        raise CollaboratorError(str(e), collaborator=name, status=_status_of(e)) from e


def user_friendly_error_message(error: Any) -> str:
    """Map a technical failure to a message safe to show the user."""
    message = str(error)
    status = _status_of(error) if isinstance(error, BaseException) else None

    if (
        status in (503, "503", "UNAVAILABLE")
        or "overloaded" in message
        or "503" in message
        or "Service Unavailable" in message
    ):
        return HIGH_DEMAND_MESSAGE

    if status in (429, "429", "RESOURCE_EXHAUSTED") or "429" in message or "rate limit" in message:
        return RATE_LIMIT_MESSAGE

    if any(marker in message for marker in ("fetch", "network", "ECONNREFUSED", "timeout")):
        return CONNECTIVITY_MESSAGE

    return GENERIC_ERROR_MESSAGE
