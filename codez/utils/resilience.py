"""
Resilience utilities for error handling and fault tolerance.

This module provides:
- retry_with_backoff decorator for transient errors
- best_effort helper for cosmetic side effects that must never fail a run
- Deadline, the single wall-clock budget threaded through a run
"""

import asyncio
import time
import logging
from typing import Awaitable, Callable, Optional, TypeVar, ParamSpec
from functools import wraps

from codez.utils.errors import TimeoutExceededError

logger = logging.getLogger(__name__)

# Type variables for generic decorator
P = ParamSpec('P')
T = TypeVar('T')


class TransientError(Exception):
    """Base class for transient errors that should be retried."""
    pass


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (Exception,)
):
    """
    Decorator for retrying functions with exponential backoff.

    Applied to GitHub API calls and downloads where a 5xx or a dropped
    connection is worth another attempt.

    Args:
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Initial delay in seconds between retries (default: 1.0)
        max_delay: Maximum delay in seconds between retries (default: 60.0)
        exponential_base: Base for exponential backoff calculation (default: 2.0)
        exceptions: Tuple of exception types to catch and retry (default: all exceptions)

    Returns:
        Decorated function with retry logic

    Example:
        @retry_with_backoff(max_retries=3, base_delay=1.0, exceptions=(TransientError,))
        async def fetch_data():
            return await api_client.get_data()
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception = None

            for attempt in range(max_retries):
                try:
                    result = await func(*args, **kwargs)

                    if attempt > 0:
                        logger.info(
                            f"{func.__name__} succeeded on attempt {attempt + 1}/{max_retries}"
                        )

                    return result

                except exceptions as e:
                    last_exception = e

                    if attempt == max_retries - 1:
                        logger.error(
                            f"{func.__name__} failed after {max_retries} attempts: {e}"
                        )
                        raise

                    delay = min(base_delay * (exponential_base ** attempt), max_delay)

                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{max_retries}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )

                    await asyncio.sleep(delay)

            raise last_exception

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception = None

            for attempt in range(max_retries):
                try:
                    result = func(*args, **kwargs)

                    if attempt > 0:
                        logger.info(
                            f"{func.__name__} succeeded on attempt {attempt + 1}/{max_retries}"
                        )

                    return result

                except exceptions as e:
                    last_exception = e

                    if attempt == max_retries - 1:
                        logger.error(
                            f"{func.__name__} failed after {max_retries} attempts: {e}"
                        )
                        raise

                    delay = min(base_delay * (exponential_base ** attempt), max_delay)

                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{max_retries}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )

                    time.sleep(delay)

            raise last_exception

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator


async def best_effort(description: str, operation: Awaitable[T]) -> Optional[T]:
    """
    Await a cosmetic side effect, logging and swallowing any failure.

    Reactions, title edits and progress updates go through here so that a
    failure in one of them never changes the outcome of a run.

    Args:
        description: Short description used in the warning
        operation: Awaitable to run

    Returns:
        The awaitable's result, or None if it raised
    """
    try:
        return await operation
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"Failed to {description}: {e}")
        return None


class Deadline:
    """
    Wall-clock budget for a run.

    Created once from the configured timeout and threaded through every step
    that can block: ``run`` bounds a whole pipeline, ``remaining`` hands the
    leftover budget to subprocesses that enforce their own hard timeout.

    Example:
        deadline = Deadline(600)
        outcome = await deadline.run(pipeline())
    """

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        if seconds <= 0:
            raise ValueError("Deadline budget must be positive")
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        """Seconds left before expiry, never negative."""
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, step: str = "") -> None:
        """
        Raise if the budget is already spent.

        Raises:
            TimeoutExceededError: If the deadline has passed
        """
        if self.expired:
            raise TimeoutExceededError(self._message(step))

    async def run(self, awaitable: Awaitable[T], step: str = "") -> T:
        """
        Await ``awaitable`` within the remaining budget.

        The awaitable is cancelled when the budget runs out.

        Raises:
            TimeoutExceededError: If the deadline passes first
        """
        if self.expired:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise TimeoutExceededError(self._message(step))
        try:
            return await asyncio.wait_for(awaitable, timeout=self.remaining())
        except asyncio.TimeoutError as e:
            raise TimeoutExceededError(self._message(step)) from e

    def _message(self, step: str) -> str:
        suffix = f" during {step}" if step else ""
        return f"Timed out after {self.seconds:g} seconds{suffix}"
