"""Keyed sliding-window request budgets.

The device endpoints are limited per push token and ``/broadcast`` per
client address, each with its own :class:`SlidingWindowLimiter`.  A
phone reporting its location every few seconds therefore never eats into
the SOS budget of other phones behind the same carrier NAT.

State lives in the process, which fits the single-instance deployment.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable

import structlog

from safepulse.errors import RateLimitExceededError

logger = structlog.get_logger(__name__)


class SlidingWindowLimiter:
    """At most *limit* hits per key within any *window_seconds* span.

    A *limit* of 0 disables the limiter.  Only called from the event
    loop thread and never awaits, so no lock is needed.
    """

    __slots__ = ("_clock", "_hits", "_hits_since_sweep", "_limit", "_name", "_window")

    _SWEEP_EVERY = 1000

    def __init__(
        self,
        name: str,
        limit: int,
        *,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 0:
            raise ValueError("limit must not be negative")
        self._name = name
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._hits_since_sweep = 0

    @property
    def limit(self) -> int:
        return self._limit

    def hit(self, key: str) -> int:
        """Record a request for *key* and return the remaining budget.

        Raises :class:`RateLimitExceededError` when the window is full;
        a rejected request is not counted.
        """
        if self._limit == 0:
            return 0

        now = self._clock()
        self._hits_since_sweep += 1
        if self._hits_since_sweep >= self._SWEEP_EVERY:
            self._sweep(now)

        window = self._hits.setdefault(key, deque())
        while window and window[0] <= now - self._window:
            window.popleft()

        if len(window) >= self._limit:
            retry_after = max(1, int(self._window - (now - window[0])) + 1)
            logger.warning(
                "rate_limit.exceeded",
                limiter=self._name,
                key=key[:12],
                limit=self._limit,
            )
            raise RateLimitExceededError(retry_after_seconds=retry_after, limit=self._limit)

        window.append(now)
        return self._limit - len(window)

    def _sweep(self, now: float) -> None:
        self._hits_since_sweep = 0
        cutoff = now - self._window
        idle = [key for key, window in self._hits.items() if not window or window[-1] <= cutoff]
        for key in idle:
            del self._hits[key]
        if idle:
            logger.debug("rate_limit.swept", limiter=self._name, removed=len(idle))

    def __len__(self) -> int:
        return len(self._hits)
