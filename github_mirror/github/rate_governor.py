"""Blocks outbound GitHub requests while the primary rate limit budget is exhausted."""

import asyncio
import time
from typing import Awaitable, Callable, Mapping

import structlog

from github_mirror.synchronize.models import RateLimitStatus
from github_mirror.utils.constants import DEFAULT_RATE_LIMIT_SAFETY_MARGIN

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RateGovernor:
    """Tracks the remaining request budget and waits out exhaustion.

    ``before_request`` is awaited before every request and ``after_response``
    is called with every response's headers. When the budget is zero the caller
    is held until ``reset + safety_margin``. If the initial budget lookup fails the
    governor is disabled and never blocks for the rest of the run.
    """

    def __init__(
        self,
        safety_margin: float = DEFAULT_RATE_LIMIT_SAFETY_MARGIN,
        clock: Clock = time.time,
        sleep: Sleeper | None = None,
    ) -> None:
        """Initialize the governor; ``clock`` and ``sleep`` can be replaced in tests."""
        self.safety_margin = safety_margin
        self.clock = clock
        self._sleep = sleep or self._cancellable_wait
        self._cancelled = asyncio.Event()
        self.enabled = True
        self.remaining: int | None = None
        self.reset: float | None = None
        self.requests_made = 0
        self.total_wait = 0.0

    async def initialize(self, fetch_status: Callable[[], Awaitable[RateLimitStatus]]) -> None:
        """Seed the budget from the rate limit endpoint, degrading on failure."""
        try:
            status = await fetch_status()
        except Exception as exc:
            self.enabled = False
            logger.warning("Rate limit lookup failed, requests will not be throttled", error=str(exc), error_type=type(exc).__name__)
            return
        self.remaining = status.remaining
        self.reset = status.reset
        logger.info("Rate limit budget", remaining=self.remaining, reset=self.reset)

    async def before_request(self) -> None:
        """Wait until the budget allows another request."""
        self.requests_made += 1
        if not self.enabled or self.remaining is None or self.reset is None:
            return
        if self.remaining > 0:
            return
        resume_at = self.reset + self.safety_margin
        wait_time = resume_at - self.clock()
        if wait_time > 0:
            logger.warning(f"Rate limit exhausted, waiting {round(wait_time, 1)} seconds", reset=self.reset, wait_time=wait_time)
            self.total_wait += wait_time
            await self._sleep(wait_time)
        # The budget refills at the reset time; the next response tells us the real figure.
        self.remaining = None
        self.reset = None

    def after_response(self, headers: Mapping[str, str]) -> None:
        """Update the budget from ``X-RateLimit-*`` response headers."""
        remaining = headers.get("x-ratelimit-remaining")
        reset = headers.get("x-ratelimit-reset")
        if remaining is None or reset is None:
            return
        try:
            self.remaining = int(remaining)
            self.reset = float(reset)
        except ValueError:
            logger.warning("Invalid rate limit headers", remaining=remaining, reset=reset)

    def cancel(self) -> None:
        """Wake up the pending (or next) wait early. Later waits sleep in full."""
        self._cancelled.set()

    async def _cancellable_wait(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return
        self._cancelled.clear()
        logger.info("Rate limit wait cancelled")
