"""
In-process result cache and request coalescing for AI-backed analytics.

Both stores are plain dicts touched only from the event loop thread, so every
check-and-set below must complete without an ``await`` in between.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


def analytics_key(user_id: int) -> str:
    return f"analytics-{user_id}"


def goal_key(user_id: int, goal_amount: float, timeframe: int) -> str:
    return f"goal-{user_id}-{float(goal_amount):.2f}-{int(timeframe)}"


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float


class ResultCache:
    """Last successful result per key. Entries are never evicted on age;
    staleness is decided by the reader through ``is_fresh``."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def put(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, stored_at=self._clock())
        self._entries[key] = entry
        return entry

    def invalidate(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.info(f"Invalidated cache entry {key}")

    def is_fresh(self, entry: CacheEntry, expiration_seconds: float) -> bool:
        return (self._clock() - entry.stored_at) < expiration_seconds

    def __len__(self) -> int:
        return len(self._entries)


class RequestCoalescer:
    """At most one in-flight computation per key; later callers share it."""

    def __init__(self):
        self._in_flight: Dict[str, asyncio.Future] = {}

    def begin(self, key: str, computation: Callable[[], Awaitable[Any]]) -> asyncio.Future:
        """
        Return the shared future for ``key``, starting ``computation`` only if
        nothing is already running for it.

        Registration happens before this method returns, so a concurrent
        caller can never observe the key as free while work is pending.
        """
        existing = self._in_flight.get(key)
        if existing is not None and not existing.done():
            logger.info(f"Attaching to in-flight computation for {key}")
            return existing

        task = asyncio.ensure_future(computation())
        self._in_flight[key] = task
        task.add_done_callback(lambda finished: self._settle(key, finished))
        logger.info(f"Started computation for {key}")
        return task

    def _settle(self, key: str, finished: asyncio.Future) -> None:
        if self._in_flight.get(key) is finished:
            del self._in_flight[key]
        # Mark the outcome as observed so an abandoned failure is not reported
        # as "exception never retrieved" when every waiter timed out.
        if not finished.cancelled():
            finished.exception()

    def is_in_flight(self, key: str) -> bool:
        future = self._in_flight.get(key)
        return future is not None and not future.done()

    def __len__(self) -> int:
        return len(self._in_flight)


class AnalyticsCache:
    """Owns the result cache and the in-flight map for one application."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.results = ResultCache(clock=clock)
        self.in_flight = RequestCoalescer()
