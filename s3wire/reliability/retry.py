"""
Retry Policy: Exponential Backoff with Jitter

Caller-side helper; the engine itself never retries except for the single
redirect-driven HEAD case.

- Exponential backoff: 100ms × 2^n, capped at 10s
- Full jitter: random(0, backoff)
- Only TransportError is retried by default; configuration, signing and
  server error responses fail on the first attempt
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Type, TypeVar, Union

from s3wire.core import constants as C
from s3wire.core.errors import (
    ConfigurationError,
    ErrorResponseError,
    ReliabilityError,
    S3WireError,
    SigningError,
    TransportError,
)
from s3wire.core.types import Result, Ok, Err

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry configuration."""

    max_retries: int = C.RETRY_MAX_ATTEMPTS
    base_delay_ms: int = C.RETRY_BASE_MS
    max_delay_ms: int = C.RETRY_MAX_MS
    exponential_base: float = 2.0
    jitter: bool = True  # Full jitter
    retryable_exceptions: tuple[Type[BaseException], ...] = (TransportError,)
    non_retryable_exceptions: tuple[Type[BaseException], ...] = (
        ConfigurationError,
        SigningError,
        ErrorResponseError,
    )
    global_timeout_s: Optional[float] = None

    @classmethod
    def default(cls) -> RetryPolicy:
        return cls()

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """No retries (for non-idempotent operations)."""
        return cls(max_retries=0)

    def should_retry(self, error: BaseException) -> bool:
        if isinstance(error, self.non_retryable_exceptions):
            return False
        if not isinstance(error, self.retryable_exceptions):
            return False
        # e.g. a source that ran dry will not refill on a second attempt
        if isinstance(error, S3WireError):
            return error.retryable
        return True


@dataclass
class RetryStats:
    """Retry attempt statistics."""
    total_attempts: int = 0
    failed_attempts: int = 0
    total_delay_ms: float = 0.0


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    stats: Optional[RetryStats] = None,
) -> Result[T, Union[S3WireError, BaseException]]:
    """
    Execute an async operation with retry and exponential backoff.

    Args:
        func: Zero-argument coroutine factory, called once per attempt
        policy: Retry configuration (default if None)
        stats: Optional collector for attempt counts and delays

    Returns:
        Ok with the result, Err with the original error when it is not
        retryable, or Err(ReliabilityError) after the retries ran out
    """
    if policy is None:
        policy = RetryPolicy.default()
    if stats is None:
        stats = RetryStats()

    last_error: Optional[BaseException] = None
    deadline = (
        time.monotonic() + policy.global_timeout_s
        if policy.global_timeout_s is not None
        else None
    )

    for attempt in range(policy.max_retries + 1):
        if deadline is not None and time.monotonic() >= deadline:
            break
        stats.total_attempts += 1
        try:
            return Ok(await func())
        except Exception as e:
            if not policy.should_retry(e):
                return Err(e)
            last_error = e
            stats.failed_attempts += 1
            logger.debug("Attempt %d failed: %s", attempt + 1, e)

        if attempt < policy.max_retries:
            delay = calculate_backoff(
                attempt=attempt,
                base_delay_ms=policy.base_delay_ms,
                max_delay_ms=policy.max_delay_ms,
                exponential_base=policy.exponential_base,
                jitter=policy.jitter,
            )
            stats.total_delay_ms += delay
            logger.debug("Retrying in %.0fms (attempt %d)", delay, attempt + 2)
            await asyncio.sleep(delay / 1000)

    return Err(ReliabilityError.retry_exhausted(
        attempts=stats.total_attempts,
        last_error=last_error,
    ))


def calculate_backoff(
    attempt: int,
    base_delay_ms: int,
    max_delay_ms: int,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """
    Backoff delay in milliseconds.

    Full jitter: random(0, min(cap, base * 2^attempt))
    """
    delay = min(max_delay_ms, base_delay_ms * (exponential_base ** attempt))
    if jitter:
        delay = random.uniform(0, delay)
    return delay


__all__ = ["RetryPolicy", "RetryStats", "retry_with_backoff", "calculate_backoff"]
