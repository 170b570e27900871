"""Retry policy for remote calls."""

import asyncio
import ssl
from functools import wraps
from typing import Callable, Tuple, Type

import httpx

from ..utils.logger import get_logger

# Network errors, timeouts and HTTP status errors; 4xx other than 429 are
# filtered out in the wrapper
RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    httpx.TransportError,
    httpx.HTTPStatusError,
    ConnectionResetError,
    ConnectionAbortedError,
    ssl.SSLError,
)

RATE_LIMIT_MULTIPLIER = 5


def retry_on_error(
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = RETRYABLE_EXCEPTIONS,
    sleep: Callable = asyncio.sleep,
):
    """
    Decorator to retry async functions on transient failures.

    Waits ``backoff_factor ** attempt`` seconds between attempts, five times
    longer when rate limited (HTTP 429). Client errors other than 429 are
    raised immediately.
    """

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger()
            last_exception: Exception = RuntimeError(f"{func.__name__} was not attempted")
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    wait_time = backoff_factor**attempt
                    if isinstance(e, httpx.HTTPStatusError):
                        status = e.response.status_code
                        if status < 500 and status != 429:
                            raise
                        if status == 429:
                            wait_time *= RATE_LIMIT_MULTIPLIER

                    if attempt == max_retries - 1:
                        break

                    logger.warning(
                        f"Transient error in {func.__name__}, retrying",
                        extra={"attempt": attempt + 1, "wait_seconds": wait_time, "error": str(e)},
                    )
                    await sleep(wait_time)

            raise last_exception

        return wrapper

    return decorator
