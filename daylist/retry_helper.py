"""
Exponential backoff for Subsonic API calls.

Only transient failures (RetryableError subclasses) are retried; API errors
such as bad credentials fail immediately.
"""
import logging
import time
from functools import wraps
from typing import Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class RetryableError(Exception):
    """Base exception for errors that should trigger a retry"""
    pass


class ServerError(RetryableError):
    """Server answered with a 5xx status"""
    pass


class NetworkError(RetryableError):
    """Connection failed or timed out"""
    pass


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_multiplier: float = 2.0,
    max_delay: float = 30.0,
    exceptions: Tuple[Type[Exception], ...] = (RetryableError,),
    sleep: Optional[Callable[[float], None]] = None,
):
    """
    Decorator that retries a function with exponential backoff.

    Args:
        max_retries: Retries after the first attempt
        initial_delay: Seconds before the first retry
        backoff_multiplier: Delay growth per retry
        max_delay: Upper bound on the delay
        exceptions: Exception types that trigger a retry
        sleep: Sleep function (defaults to time.sleep)

    Example:
        @retry_with_backoff(max_retries=2)
        def ping(self):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            delay = initial_delay
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        logger.error("%s failed after %d retries: %s", func.__name__, max_retries, e)
                        raise
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                        func.__name__, attempt + 1, max_retries + 1, delay, e,
                    )
                    (sleep or time.sleep)(delay)
                    delay = min(delay * backoff_multiplier, max_delay)
        return wrapper
    return decorator
