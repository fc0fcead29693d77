"""Retry controller — bounded doubling backoff for transient transport errors."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import litellm
from loguru import logger

from voidex.agent.cancellation import CancellationToken, RunCancelled

T = TypeVar("T")

_RETRYABLE_TYPES: tuple[type[BaseException], ...] = (
    litellm.RateLimitError,
    litellm.APIConnectionError,
    litellm.Timeout,
    httpx.TransportError,
    ConnectionError,
)
_RETRYABLE_MARKERS = ("429", "rate limit", "fetch failed", "connection")


def is_retryable(exc: BaseException) -> bool:
    """Rate limits and connectivity failures are worth another attempt."""
    if isinstance(exc, _RETRYABLE_TYPES):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _RETRYABLE_MARKERS)


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    on_status: Callable[[str], None] | None = None,
    token: CancellationToken | None = None,
    retries: int = 3,
    initial_delay: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call *fn* and retry transient failures up to *retries* times.

    The delay starts at *initial_delay* seconds and doubles after each
    attempt. Non-retryable errors and cancellation propagate immediately.
    """
    delay = initial_delay
    attempt = 0
    while True:
        try:
            if token is not None:
                return await token.race(fn())
            return await fn()
        except RunCancelled:
            raise
        except Exception as e:
            if token is not None and token.cancelled:
                raise RunCancelled() from e
            if attempt >= retries or not is_retryable(e):
                raise

        attempt += 1
        status = f"Connection unstable. Retrying in {delay:g}s..."
        logger.warning(f"{status} (attempt {attempt}/{retries})")
        if on_status:
            on_status(status)
        if token is not None:
            await token.race(sleep(delay))
        else:
            await sleep(delay)
        delay *= 2
