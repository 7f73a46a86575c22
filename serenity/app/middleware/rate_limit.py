"""Per-client fixed-window rate limiting.

Each client key gets a bucket holding the tokens left in the current window
and the time that window opened. The whole bucket is refilled once the window
has elapsed, so a client can spend a full window's worth of requests right
before a boundary and another full window right after it.
"""

import asyncio
import math
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional

from fastapi import Request

from serenity.app.core.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None


@dataclass
class RateBucket:
    """Fixed-window state for one client key."""
    remaining: int
    window_start: float = field(default_factory=time.time)


class FixedWindowRateLimiter:
    """In-memory fixed-window rate limiter.

    Suitable for a single process. The bucket table is an OrderedDict used as
    an LRU: it never holds more than ``max_entries`` keys, and ``cleanup``
    drops buckets whose window has already expired.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        capacity: int = 60,
        window_seconds: float = 60,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize rate limiter.

        Args:
            capacity: Requests allowed per window
            window_seconds: Window length in seconds
            max_entries: Maximum number of buckets kept (LRU eviction)
            clock: Time source, seconds since epoch
        """
        self.capacity = capacity
        self.window_seconds = window_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._buckets: OrderedDict[str, RateBucket] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._buckets)

    def _enforce_lru_limit(self) -> None:
        while len(self._buckets) >= self._max_entries:
            evicted, _ = self._buckets.popitem(last=False)
            logger.debug("Evicted rate limit bucket", extra={"client_key": evicted})

    def _consume(self, key: str) -> RateLimitResult:
        now = self._clock()
        bucket = self._buckets.get(key)

        if bucket is None:
            self._enforce_lru_limit()
            bucket = RateBucket(remaining=self.capacity, window_start=now)
            self._buckets[key] = bucket
        else:
            self._buckets.move_to_end(key)

        if now - bucket.window_start > self.window_seconds:
            bucket.remaining = self.capacity
            bucket.window_start = now

        reset_time = int(bucket.window_start + self.window_seconds)

        if bucket.remaining <= 0:
            retry_after = max(1, math.ceil(self.window_seconds - (now - bucket.window_start)))
            return RateLimitResult(
                allowed=False,
                limit=self.capacity,
                remaining=0,
                reset_time=reset_time,
                retry_after=retry_after,
            )

        bucket.remaining -= 1
        return RateLimitResult(
            allowed=True,
            limit=self.capacity,
            remaining=bucket.remaining,
            reset_time=reset_time,
        )

    async def is_allowed(self, key: str) -> RateLimitResult:
        """Consume one token for ``key`` if its window has any left."""
        async with self._lock:
            return self._consume(key)

    async def check_and_consume(self, key: str) -> bool:
        result = await self.is_allowed(key)
        return result.allowed

    async def cleanup(self) -> int:
        """Drop buckets whose window has expired.

        Returns:
            Number of buckets removed
        """
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, bucket in self._buckets.items()
                if now - bucket.window_start > self.window_seconds
            ]
            for key in expired:
                del self._buckets[key]
        return len(expired)

    async def run_sweeper(self, interval: float) -> None:
        """Call ``cleanup`` every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            removed = await self.cleanup()
            if removed:
                logger.debug(
                    f"Swept {removed} expired rate limit buckets",
                    extra={"remaining_buckets": len(self._buckets)},
                )


def get_client_key(request: Request) -> str:
    """Rate limit key for a request.

    First entry of X-Forwarded-For, else the peer address, else "unknown".
    Clients behind a proxy that doesn't set the header share one bucket.
    """
    forwarded = request.headers.get("X-Forwarded-For", "")
    client_ip = forwarded.split(",")[0].strip()
    if client_ip:
        return client_ip
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT
