"""
Retry with exponential backoff for single fallible async operations.

The wait before attempt ``n + 1`` is ``base_delay * multiplier ** (n - 1)``.
Attempts run one after another; after the last failed attempt the original
error is re-raised.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    after_log,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from air_quality_mcp.errors import UpstreamError

T = TypeVar("T")

logger = logging.getLogger("air_quality.retry")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    multiplier: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (UpstreamError,),
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Await ``operation()`` until it succeeds or attempts run out

    Args:
        operation: Zero-argument coroutine function to call
        max_attempts: Maximum number of attempts (at least 1)
        base_delay: Wait in seconds after the first failure
        multiplier: Factor applied to the wait after each further failure
        retry_on: Exception types that trigger another attempt
        sleep: Async sleep function, for tests
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(retry_on),
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=base_delay, exp_base=multiplier, min=0),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        after=after_log(logger, logging.DEBUG),
        sleep=sleep or asyncio.sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await operation()
