"""Exponential backoff with jitter for calls to external model providers."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from document_chat.config import Settings, get_settings
from document_chat.utils.errors import FailureKind, ProviderError, classify_status
from document_chat.utils.logging import get_logger

logger = get_logger("retry")

T = TypeVar("T")

__all__ = ["RetryPolicy", "FailureKind", "classify_status", "is_retryable"]


def is_retryable(error: BaseException) -> bool:
    """Only classified provider failures are transient; everything else fails fast."""
    return isinstance(error, ProviderError) and error.is_retryable


def _log_before_sleep(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        f"Attempt {retry_state.attempt_number} failed, retrying in {delay:.2f}s: {error}"
    )


class RetryPolicy:
    """
    Run an async operation with bounded exponential backoff.

    The delay before retry ``k`` (0-indexed) is ``base_delay * 2**k`` capped at
    ``max_delay``, plus uniform jitter in ``[0, base_delay]``. At most
    ``max_retries`` retries are made, so the operation runs up to
    ``max_retries + 1`` times. When attempts are exhausted the last error is
    re-raised unchanged.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, max_retries: int, settings: Optional[Settings] = None) -> "RetryPolicy":
        """Build a policy using the shared backoff settings."""
        settings = settings or get_settings()
        return cls(
            max_retries=max_retries,
            base_delay=settings.retry.base_delay,
            max_delay=settings.retry.max_delay,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay)
            + wait_random(0, self.base_delay),
            retry=retry_if_exception(is_retryable),
            before_sleep=_log_before_sleep,
            sleep=self._sleep,
        )

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Invoke ``operation`` until it succeeds or retries are exhausted."""
        async for attempt in self._retrying():
            with attempt:
                return await operation()
        # unreachable due to reraise=True
        raise RuntimeError("Retry loop exited without a result")
