"""
Retry Logic for Network Operations

Provides a retry decorator with exponential backoff and jitter. Which
failures are retried is decided by a predicate, so callers keep the
classification of errors next to the code that raises them.

Usage:
    from autofill_core.retry import retry_async

    @retry_async(max_attempts=3)
    async def answer(batch):
        ...
"""

import asyncio
import logging
import random
from functools import wraps
from typing import Awaitable, Callable, Optional

from .exceptions import RetryExhaustedError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 0.4
DEFAULT_MAX_DELAY = 5.0
DEFAULT_JITTER = 0.25


def is_retryable(error: BaseException) -> bool:
    """Default predicate: honour a ``retryable`` attribute, plus bare timeouts."""
    if getattr(error, "retryable", False):
        return True
    return isinstance(error, asyncio.TimeoutError)


def backoff_delay(
    attempt: int,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    exponential_base: float = 2.0,
    jitter: float = DEFAULT_JITTER,
    rand: Callable[[float, float], float] = random.uniform,
) -> float:
    """
    Delay (seconds) before the attempt following ``attempt``.

    ``min(max_delay, initial_delay * base ** (attempt - 1)) + U(0, jitter)``
    """
    delay = min(max_delay, initial_delay * (exponential_base ** (attempt - 1)))
    if jitter > 0:
        delay += rand(0.0, jitter)
    return delay


def retry_async(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    exponential_base: float = 2.0,
    jitter: float = DEFAULT_JITTER,
    retry_if: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
):
    """
    Decorator for retrying async functions with exponential backoff.

    Args:
        max_attempts: Total attempts, including the first one
        initial_delay: Delay after the first failure (seconds)
        max_delay: Cap for the exponential part of the delay
        exponential_base: Growth factor between attempts
        jitter: Upper bound of the random delay added on top
        retry_if: Predicate deciding whether a failure is retried
        sleep: Awaitable sleep, replaceable in tests
        on_retry: Called with (attempt, error, delay) before sleeping

    Non-retryable errors propagate unchanged on the attempt that raised them.
    When every attempt failed with a retryable error, RetryExhaustedError is
    raised with ``last_error`` set.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not retry_if(e):
                        raise

                    if attempt == max_attempts:
                        logger.error(
                            f"Retry exhausted for {func.__name__} after {max_attempts} attempts: {e}"
                        )
                        raise RetryExhaustedError(
                            f"Failed after {max_attempts} attempts: {e}", last_error=e
                        ) from e

                    delay = backoff_delay(
                        attempt,
                        initial_delay=initial_delay,
                        max_delay=max_delay,
                        exponential_base=exponential_base,
                        jitter=jitter,
                    )
                    logger.warning(
                        f"Attempt {attempt}/{max_attempts} failed for {func.__name__}: {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    if on_retry is not None:
                        on_retry(attempt, e, delay)
                    await sleep(delay)

        return wrapper
    return decorator


async def execute_with_retry(func: Callable, *args, **retry_kwargs):
    """
    Execute an async callable once under :func:`retry_async`.

    ``retry_kwargs`` are the decorator's keyword arguments; the callable is
    invoked without arguments beyond ``args``.
    """
    wrapped = retry_async(**retry_kwargs)(func)
    return await wrapped(*args)
