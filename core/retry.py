"""
Bounded Retry Runner

Every network call made by the data sources goes through this module.
The policy is deliberately simple: a fixed number of attempts with a fixed
pause between them (no exponential backoff).

Usage:
    policy = RetryPolicy(attempts=5, delay=1.0)
    result = await policy.run(lambda: client.get_order_book("BTC-USDT"), "BTC-USDT book")
    if result.ok:
        book = result.value

Cancellation:
    asyncio.CancelledError is never treated as a failed attempt. Cancelling
    the task that awaits retry() interrupts the pending attempt or delay
    immediately, so no timer outlives the retry loop.
"""

import asyncio
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from core.logging import get_logger


T = TypeVar("T")

logger = get_logger(__name__)


class RetryResult(Generic[T]):
    """
    Outcome of a retried operation.

    Attributes:
        value: Result of the successful attempt (None on failure)
        error: Exception raised by the last attempt (None on success)
        attempts: Number of attempts made
    """

    __slots__ = ("value", "error", "attempts")

    def __init__(self, value: Optional[T] = None, error: Optional[BaseException] = None, attempts: int = 0):
        self.value = value
        self.error = error
        self.attempts = attempts

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the last error."""
        if self.error is not None:
            raise self.error
        return self.value

    def __repr__(self) -> str:
        if self.ok:
            return f"RetryResult(ok, attempts={self.attempts})"
        return f"RetryResult(error={self.error!r}, attempts={self.attempts})"


async def retry(
    max_attempts: int,
    delay: float,
    operation: Callable[[], Awaitable[T]],
    description: Optional[str] = None,
) -> RetryResult[T]:
    """
    Run an async operation up to max_attempts times.

    Args:
        max_attempts: Maximum number of attempts (>= 1)
        delay: Seconds to wait after each failed attempt, except the last
        operation: Zero-argument coroutine function to run
        description: Label used in log messages

    Returns:
        RetryResult: The first success, or the last failure once attempts run out

    Raises:
        ValueError: If max_attempts is lower than 1
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    label = description or getattr(operation, "__name__", "operation")
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            value = await operation()
            if attempt > 1:
                logger.debug(f"{label} succeeded on attempt {attempt}/{max_attempts}")
            return RetryResult(value=value, attempts=attempt)
        except Exception as e:
            last_error = e
            logger.debug(f"{label} failed (attempt {attempt}/{max_attempts}): {e}")

        if attempt < max_attempts and delay > 0:
            await asyncio.sleep(delay)

    logger.warning(f"{label} failed after {max_attempts} attempts: {last_error}")
    return RetryResult(error=last_error, attempts=max_attempts)


class RetryPolicy(BaseModel):
    """
    Attempt/delay budget for one kind of network call.

    Example:
        >>> policy = RetryPolicy(attempts=10, delay=1.0)
        >>> result = await policy.run(client.get_tickers, "kucoin tickers")
    """

    attempts: int = Field(default=3, ge=1, description="Maximum number of attempts")
    delay: float = Field(default=1.0, ge=0, description="Fixed pause between attempts (seconds)")

    model_config = ConfigDict(frozen=True)

    async def run(self, operation: Callable[[], Awaitable[Any]], description: Optional[str] = None) -> RetryResult:
        return await retry(self.attempts, self.delay, operation, description)
