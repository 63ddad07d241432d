"""Retry with capped exponential backoff for transcription requests."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..core.errors import (
    ProviderApiError,
    ProviderError,
    ProviderNetworkError,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SERVER_ERROR_MARKERS = ("500", "502", "503", "504")
_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")
# 2**62 already exceeds any sane delay; keeps the float math finite
_MAX_EXPONENT = 62


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy. `max_retries` counts retries, so up to max_retries + 1 attempts are made."""
    max_retries: int = 3
    initial_delay_s: float = 0.5
    max_delay_s: float = 10.0
    retry_on_rate_limit: bool = True

    @classmethod
    def with_max_retries(cls, max_retries: int) -> "RetryConfig":
        return cls(max_retries=max_retries)

    def delay_for_attempt(self, attempt: int) -> float:
        """Delay in seconds after the 0-indexed failed attempt."""
        delay = self.initial_delay_s * (2 ** min(attempt, _MAX_EXPONENT))
        return min(delay, self.max_delay_s)


def _is_rate_limited(error: ProviderApiError) -> bool:
    if error.status_code == 429:
        return True
    text = str(error).lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


def _is_server_error(error: ProviderApiError) -> bool:
    if error.status_code is not None:
        return error.status_code >= 500
    text = str(error)
    return any(marker in text for marker in _SERVER_ERROR_MARKERS)


def is_retryable_error(error: BaseException, config: Optional[RetryConfig] = None) -> bool:
    """Network errors and timeouts always retry; API errors only on 5xx or rate limits."""
    if isinstance(error, (ProviderNetworkError, ProviderTimeoutError)):
        return True
    if isinstance(error, ProviderApiError):
        if _is_server_error(error):
            return True
        if _is_rate_limited(error):
            return config is None or config.retry_on_rate_limit
    return False


async def with_retry(
    config: RetryConfig,
    operation: Callable[[], Awaitable[T]],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run `operation` until it succeeds, fails terminally, or attempts run out.

    `operation` must build a fresh awaitable on each call; the request it makes
    must be safe to repeat.
    """
    attempts = config.max_retries + 1
    for attempt in range(attempts):
        try:
            return await operation()
        except ProviderError as e:
            if not is_retryable_error(e, config) or attempt == config.max_retries:
                raise

            delay = config.delay_for_attempt(attempt)
            logger.warning(
                f"Transcription request failed (attempt {attempt + 1}/{attempts}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            await sleep(delay)

    raise ProviderApiError("All retry attempts exhausted")
