"""
Retry Utilities
---------------
Exponential backoff for the async LLM, embedding and web-search calls.
"""

import asyncio
import logging
import random
from functools import wraps
from typing import Callable, Tuple, Type

logger = logging.getLogger(__name__)


def calculate_backoff_delay(attempt: int, initial_delay: float, max_delay: float, exponential_base: float, jitter: bool = True) -> float:
    """Delay before retry number `attempt` (0-indexed), with optional ±25% jitter."""
    delay = min(initial_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        jitter_range = delay * 0.25
        delay += random.uniform(-jitter_range, jitter_range)
    return max(0, delay)


def retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 8.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
):
    """
    Decorator for retrying coroutine functions with exponential backoff.

    The last exception is re-raised unchanged once `max_attempts` is reached,
    so callers translate it into their own error type. Exceptions outside
    `retry_on` are raised immediately.

    Usage:
        @retry(max_attempts=3, retry_on=(httpx.TransportError,))
        async def fetch():
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    if attempt == max_attempts - 1:
                        logger.error(f"[RETRY] {func.__name__} failed after {max_attempts} attempts: {e}")
                        raise
                    delay = calculate_backoff_delay(attempt, initial_delay, max_delay, exponential_base, jitter)
                    logger.warning(
                        f"[RETRY] {func.__name__} attempt {attempt + 1}/{max_attempts} failed: {e}. "
                        f"Retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
