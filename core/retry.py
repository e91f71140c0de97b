"""
Bounded exponential-backoff retry for async operations.

Used around paginated queries and metadata refreshes. Aggregation calls are
deliberately not wrapped.

Known gap: there is no cancellation propagation besides asyncio's own. A
caller that stops waiting on a shielded or detached task does not stop the
loop, and no per-attempt timeout is enforced.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from core.config import settings
from core.exceptions import RetriesExhaustedError, TransientFetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay to wait after failed attempt number ``attempt`` (1-indexed)."""
    return base_delay * (2 ** (attempt - 1))


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    retry_on: Tuple[Type[BaseException], ...] = (TransientFetchError,),
    operation_name: Optional[str] = None
) -> T:
    """
    Invoke ``operation`` up to ``max_attempts`` times.

    Between failed attempts waits ``base_delay * 2 ** (attempt - 1)`` seconds
    using ``sleep`` (injectable so tests do not wait). Only exceptions in
    ``retry_on`` are retried; anything else propagates unmodified on the
    first occurrence.

    Args:
        operation: Zero-argument coroutine factory
        max_attempts: Attempt budget (defaults to settings.MAX_RETRIES)
        base_delay: First backoff in seconds (defaults to settings.RETRY_BASE_DELAY_SECONDS)
        sleep: Awaitable sleep function
        retry_on: Exception types treated as transient
        operation_name: Label used in logs and error context

    Returns:
        The first successful result

    Raises:
        RetriesExhaustedError: When every attempt failed with a retryable error
        ValueError: If max_attempts is smaller than 1
    """
    if max_attempts is None:
        max_attempts = settings.MAX_RETRIES
    if base_delay is None:
        base_delay = settings.RETRY_BASE_DELAY_SECONDS
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    name = operation_name or getattr(operation, "__name__", "operation")
    last_exception: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            logger.debug(f"{name}: attempt {attempt}/{max_attempts}")
            return await operation()
        except retry_on as e:
            last_exception = e
            logger.error(f"{name} failed (attempt {attempt}/{max_attempts}): {e}")

            if attempt < max_attempts:
                delay = backoff_delay(attempt, base_delay)
                logger.info(f"{name}: retrying in {delay:.2f}s")
                await sleep(delay)

    raise RetriesExhaustedError(
        f"{name} failed after {max_attempts} attempts",
        context={"operation": name},
        original_exception=last_exception,
        attempts=max_attempts
    )
