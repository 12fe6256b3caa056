"""Retry with exponential backoff for provider and AI calls."""

import asyncio
import random
from functools import wraps
from typing import Any, Callable, TypeVar

import httpx
import structlog

logger = structlog.get_logger()

T = TypeVar("T")

# Transport-level failures worth another attempt. HTTP status errors and
# missing credentials are not transient and surface immediately.
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    ConnectionError,
)


def _backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
    jitter: bool,
) -> float:
    delay = min(base_delay * (exponential_base**attempt), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


def retry_with_backoff(
    max_retries: int = 2,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for async retry with exponential backoff.

    Args:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff calculation
        jitter: Add randomness to delay to prevent thundering herd
        retryable_exceptions: Tuple of exception types to retry on

    Returns:
        Decorated async function with retry logic
    """
    max_attempts = max(1, max_retries + 1)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_exception = e

                    if attempt < max_attempts - 1:
                        delay = _backoff_delay(
                            attempt, base_delay, max_delay, exponential_base, jitter
                        )
                        logger.warning(
                            "retry_attempt",
                            function=func.__name__,
                            attempt=attempt + 1,
                            max_attempts=max_attempts,
                            delay=round(delay, 2),
                            error=str(e),
                        )
                        await asyncio.sleep(delay)

            logger.error(
                "retry_exhausted",
                function=func.__name__,
                max_attempts=max_attempts,
                error=str(last_exception),
            )
            raise last_exception  # type: ignore

        return wrapper  # type: ignore

    return decorator


async def retry_once(
    func: Callable[..., T],
    *args: Any,
    max_retries: int = 2,
    base_delay: float = 0.5,
    retryable_exceptions: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
    **kwargs: Any,
) -> T:
    """Execute a single call with retry logic (non-decorator version).

    Used where the retry budget comes from configuration at call time,
    e.g. one strategy run inside the aggregator.

    Raises:
        Last exception if all retries fail
    """
    last_exception: Exception | None = None
    max_attempts = max(1, max_retries + 1)

    for attempt in range(max_attempts):
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as e:
            last_exception = e
            if attempt < max_attempts - 1:
                delay = _backoff_delay(attempt, base_delay, 10.0, 2.0, True)
                logger.debug(
                    "retry_scheduled",
                    function=getattr(func, "__name__", repr(func)),
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                )
                await asyncio.sleep(delay)

    raise last_exception  # type: ignore
