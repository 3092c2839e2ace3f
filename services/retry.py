"""
Bounded retry with exponential backoff and jitter for insight generation.
"""
import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)

logger = logging.getLogger(__name__)

JITTER_RATIO = 0.15
RETRYABLE_CLIENT_STATUSES = {408, 429}


def is_retryable(error: BaseException) -> bool:
    """Client errors (4xx) are permanent except timeouts and rate limiting."""
    if not isinstance(error, Exception):
        return False
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int) and 400 <= status_code < 500:
        return status_code in RETRYABLE_CLIENT_STATUSES
    return True


class RetryController:
    """Runs an async operation up to ``max_attempts`` times.

    The delay after failed attempt ``n`` is ``base_delay * backoff_factor ** (n - 1)``,
    scaled by a uniform factor in ``[0.85, 1.15]`` when jitter is on.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        backoff_factor: float = 2.0,
        jitter: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings, **overrides) -> "RetryController":
        options = dict(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            backoff_factor=settings.backoff_factor,
            jitter=settings.jitter,
        )
        options.update(overrides)
        return cls(**options)

    def compute_delay(self, attempt_number: int) -> float:
        delay = self.base_delay * self.backoff_factor ** (attempt_number - 1)
        if self.jitter:
            delay *= 1 + self._rng.uniform(-JITTER_RATIO, JITTER_RATIO)
        return max(0.0, delay)

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.compute_delay(retry_state.attempt_number)

    async def run(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """
        Await ``operation()`` until it succeeds, a permanent error occurs, or
        attempts run out. The last error is re-raised unchanged.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(is_retryable),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                result = await operation()
        return result
