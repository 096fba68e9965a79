"""Retry utility with exponential backoff.

Transient vs permanent failures are told apart either by exception type
(retryable_exceptions) or by a predicate (should_retry), so callers can
reuse the error classifier to decide what is worth another attempt.
"""

import asyncio
import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before retry number ``attempt + 1``: base_delay * 2^attempt."""
    return base_delay * (2**attempt)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    retryable_exceptions: tuple[type[Exception], ...] | None = None,
    should_retry: Callable[[Exception], bool] | None = None,
) -> Callable:
    """Decorator for retrying async functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts. Zero disables retrying.
        base_delay: Base delay in seconds before first retry (default 1.0).
        retryable_exceptions: Exception types eligible for retry. If None,
            every exception type is eligible.
        should_retry: Optional predicate applied after the type check; a
            False result makes the failure permanent.

    Permanent failures are re-raised immediately with _retry_count attached.
    After exhausting retries the last error is re-raised the same way.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    permanent = (
                        retryable_exceptions is not None
                        and not isinstance(exc, retryable_exceptions)
                    ) or (should_retry is not None and not should_retry(exc))
                    if permanent or attempt >= max_retries:
                        exc._retry_count = attempt  # type: ignore[attr-defined]
                        raise
                    delay = backoff_delay(attempt, base_delay)
                    attempt += 1
                    logger.warning(
                        "Retry %d/%d for %s after %.1fs: %s",
                        attempt,
                        max_retries,
                        func.__name__,
                        delay,
                        exc,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
