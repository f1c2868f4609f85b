"""
Bounded retry for async operations.

Used by the result resolver and the transaction submitter. The attempt
count is the total number of executions, so ``attempts=3`` means the
operation runs at most three times and a success on the third run counts.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryOutcome:
    """Why a retried operation gave up."""

    attempts: int
    last_error: Optional[BaseException]


class RetryExhausted(Exception):
    """Raised when every allowed attempt failed."""

    def __init__(self, outcome: RetryOutcome):
        super().__init__(
            f"Gave up after {outcome.attempts} attempt(s): {outcome.last_error}"
        )
        self.outcome = outcome


def backoff_delay(attempt: int, base_delay: float, max_delay: float = 30.0) -> float:
    """Exponential delay before the attempt after ``attempt`` (1-based)."""
    if base_delay <= 0:
        return 0.0
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 0.0,
    max_delay: float = 30.0,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds or ``attempts`` executions have failed.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        attempts: Maximum number of executions (must be >= 1)
        base_delay: Base delay between attempts; 0 retries immediately
        max_delay: Upper bound for a single delay
        description: Label used in log lines

    Returns:
        The operation's result

    Raises:
        RetryExhausted: When all attempts failed
        asyncio.CancelledError: Always propagated untouched
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    last_error: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            if attempt >= attempts:
                break
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                f"{description} failed: {e}, retry {attempt}/{attempts - 1}"
                + (f" in {delay:.1f}s" if delay else "")
            )
            if delay:
                await asyncio.sleep(delay)

    raise RetryExhausted(RetryOutcome(attempts=attempts, last_error=last_error))
