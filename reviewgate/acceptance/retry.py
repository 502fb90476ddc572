"""
Bounded retry for transient backend failures.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

import httpx
from postgrest.exceptions import APIError

from .errors import PersistenceFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Network and backend failures. Validation errors are never in this set.
TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    httpx.HTTPError,
    APIError,
    OSError,
)


def linear_backoff(unit: float = 1.0) -> Callable[[int], float]:
    """Delay of ``attempt * unit`` after the given failed attempt."""

    def delay(attempt: int) -> float:
        return attempt * unit

    return delay


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay_fn: Callable[[int], float] = linear_backoff(),
    retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds or ``max_attempts`` is used up.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt
        max_attempts: Total attempts including the first
        delay_fn: Maps the number of the failed attempt to a delay in seconds
        retry_on: Exception types worth another attempt
        sleep: Awaitable sleep, replaceable in tests
        on_retry: Called with (attempt, error, delay) before each wait
        description: Label used in log messages

    Returns:
        Whatever ``operation`` returns on its first successful attempt

    Raises:
        PersistenceFailure: The last attempt failed with a retryable error
        Exception: Any non-retryable error, unchanged and immediately
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 1
    while True:
        try:
            return await operation()
        except retry_on as e:
            if attempt >= max_attempts:
                logger.error(
                    "%s failed after %d attempts: %s", description, attempt, e
                )
                raise PersistenceFailure(cause=e, attempts=attempt) from e

            delay = delay_fn(attempt)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                description,
                attempt,
                max_attempts,
                delay,
                e,
            )
            if on_retry:
                on_retry(attempt, e, delay)
            await sleep(delay)
            attempt += 1


class RetryPolicy:
    """
    Retry settings for persistence steps: a fixed attempt budget with
    linearly growing delays.

    Example:
        ```python
        policy = RetryPolicy(max_attempts=3, base_delay=1.0)
        invitation = await policy.run(
            lambda: gate.invites.get_by_token(token),
            description="fetch invitation",
        )
        ```
    """

    MAX_ATTEMPTS = 3

    def __init__(
        self,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
    ) -> None:
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep
        self.retry_on = retry_on

    def delay_for(self, attempt: int) -> float:
        return linear_backoff(self.base_delay)(attempt)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "operation",
        on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    ) -> T:
        return await with_retry(
            operation,
            max_attempts=self.max_attempts,
            delay_fn=linear_backoff(self.base_delay),
            retry_on=self.retry_on,
            sleep=self.sleep,
            on_retry=on_retry,
            description=description,
        )
