"""Retry decorator for handling GitHub API rate limits.

This module provides a decorator that implements retry logic for GitHub API calls
rejected by a rate limit, respecting the wait time GitHub asks for and falling back
to exponential backoff.
"""

import asyncio
import functools
import inspect
import time
from typing import Any, Callable, TypeVar

import structlog
from githubkit.exception import PrimaryRateLimitExceeded, RequestFailed, SecondaryRateLimitExceeded

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def is_rate_limited(exc: RequestFailed) -> bool:
    """Whether a failed request was rejected by a rate limit rather than for good."""
    if isinstance(exc, (PrimaryRateLimitExceeded, SecondaryRateLimitExceeded)):
        return True
    status_code = exc.response.status_code
    if status_code == 429:
        return True
    if status_code != 403:
        return False
    if exc.response.headers.get("x-ratelimit-remaining") == "0":
        return True
    try:
        body = exc.response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and "rate limit" in str(body.get("message", "")).lower()


def _wait_from_headers(exc: RequestFailed, default: float, function_name: str) -> float:
    """Seconds to wait according to the retry-after or x-ratelimit-reset headers."""
    retry_after = exc.response.headers.get("retry-after")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            logger.warning("Invalid retry-after header value", retry_after=retry_after, function=function_name)
        return default

    rate_limit_reset = exc.response.headers.get("x-ratelimit-reset")
    if rate_limit_reset:
        try:
            reset_timestamp = int(rate_limit_reset)
        except ValueError:
            logger.warning("Invalid x-ratelimit-reset header value", rate_limit_reset=rate_limit_reset, function=function_name)
            return default
        current_timestamp = int(time.time())
        if reset_timestamp > current_timestamp:
            return reset_timestamp - current_timestamp + 1
    return default


def retry_on_rate_limit(
    max_retries: int = 5,
    initial_delay: float = 10.0,
    max_delay: float = 300.0,
    exponential_base: float = 2.0,
) -> Callable[[F], F]:
    """Decorator for retrying async functions when they encounter GitHub rate limits.

    This decorator handles:
    - Primary and secondary rate limits detected by githubkit
    - Other 429 responses, and 403 responses reporting a rate limit
    - Respects retry-after and x-ratelimit-reset headers
    - Implements exponential backoff when GitHub gives no hint

    Other exceptions propagate immediately.

    Args:
        max_retries: Maximum number of retry attempts (default: 5)
        initial_delay: Initial delay in seconds between retries (default: 10.0)
        max_delay: Maximum delay in seconds between retries (default: 300.0)
        exponential_base: Base for exponential backoff calculation (default: 2.0)

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"Function {func.__name__} decorated with @retry_on_rate_limit must be async.")

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except (PrimaryRateLimitExceeded, SecondaryRateLimitExceeded) as e:
                    if attempt == max_retries:
                        logger.error(
                            "Max retries reached for GitHub rate limit error",
                            function=func.__name__,
                            attempt=attempt + 1,
                            error_type=type(e).__name__,
                            retry_after=str(e.retry_after) if e.retry_after else "unknown",
                        )
                        raise

                    # githubkit already turned the headers into a timedelta
                    if e.retry_after:
                        wait_time = min(e.retry_after.total_seconds(), max_delay)
                    else:
                        wait_time = min(delay, max_delay)

                    logger.warning(
                        f"GitHub rate limit exceeded, waiting {wait_time} seconds",
                        function=func.__name__,
                        rate_limit_type="primary" if isinstance(e, PrimaryRateLimitExceeded) else "secondary",
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        wait_time=wait_time,
                    )

                    await asyncio.sleep(wait_time)
                    delay = min(delay * exponential_base, max_delay)

                except RequestFailed as e:
                    if not is_rate_limited(e):
                        raise

                    if attempt == max_retries:
                        logger.error(
                            "Max retries reached for rate limit error",
                            function=func.__name__,
                            attempt=attempt + 1,
                            status_code=e.response.status_code,
                            error=str(e),
                        )
                        raise

                    wait_time = min(_wait_from_headers(e, delay, func.__name__), max_delay)

                    logger.warning(
                        f"Rate limit hit, retrying in {wait_time} seconds",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        wait_time=wait_time,
                        status_code=e.response.status_code,
                    )

                    await asyncio.sleep(wait_time)
                    delay = min(delay * exponential_base, max_delay)

        return async_wrapper  # type: ignore

    return decorator
