"""Exponential backoff for rate-limited Notion API calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .errors import is_rate_limited

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings for a single call site."""

    max_retries: int = 5
    base_delay_ms: int = 300

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds before retry number ``attempt`` (0-based)."""
        return self.base_delay_ms * (2 ** attempt) / 1000.0

    def wait(self) -> wait_exponential:
        """Tenacity wait strategy producing :meth:`delay_for` delays."""
        return wait_exponential(multiplier=self.base_delay_ms / 1000.0, exp_base=2)


async def with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 5,
    base_delay_ms: int = 300,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run one remote call, retrying on rate-limit errors.

    The n-th retry waits ``base_delay_ms * 2**n`` milliseconds. Errors
    that are not rate limits propagate immediately. When retries run
    out the last error is raised.

    Args:
        operation: Zero-argument coroutine factory performing the call
        max_retries: Number of retries after the first attempt
        base_delay_ms: Delay before the first retry
        sleep: Awaitable sleep, injectable for tests

    Returns:
        Result of the operation
    """
    policy = RetryPolicy(max_retries=max_retries, base_delay_ms=base_delay_ms)

    def log_retry(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Rate limited, retrying in {delay:.2f}s "
            f"(attempt {retry_state.attempt_number}/{policy.max_retries})"
        )

    retrying = AsyncRetrying(
        retry=retry_if_exception(is_rate_limited),
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=policy.wait(),
        sleep=sleep,
        before_sleep=log_retry,
        reraise=True,
    )
    return await retrying(operation)


async def call_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` through :func:`with_backoff` using a RetryPolicy."""
    return await with_backoff(
        operation,
        max_retries=policy.max_retries,
        base_delay_ms=policy.base_delay_ms,
        sleep=sleep,
    )
