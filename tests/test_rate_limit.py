"""Tests for the fixed-window rate limiter."""

import asyncio

import pytest
from starlette.requests import Request

from serenity.app.middleware.rate_limit import (
    FixedWindowRateLimiter,
    RateLimitResult,
    get_client_key,
)


class TestFixedWindowRateLimiter:
    """Tests for window accounting."""

    @pytest.fixture
    def limiter(self, clock):
        return FixedWindowRateLimiter(capacity=5, window_seconds=60, clock=clock)

    @pytest.mark.asyncio
    async def test_allows_requests_up_to_capacity(self, limiter):
        for expected_remaining in (4, 3, 2, 1, 0):
            result = await limiter.is_allowed("1.2.3.4")
            assert result.allowed is True
            assert result.remaining == expected_remaining
            assert result.limit == 5

    @pytest.mark.asyncio
    async def test_rejects_request_over_capacity(self, limiter):
        for _ in range(5):
            assert await limiter.check_and_consume("1.2.3.4") is True

        result = await limiter.is_allowed("1.2.3.4")
        assert result.allowed is False
        assert result.remaining == 0
        assert result.retry_after == 60

    @pytest.mark.asyncio
    async def test_retry_after_counts_down_with_the_window(self, limiter, clock):
        for _ in range(5):
            await limiter.is_allowed("k")
        clock.advance(45.5)

        result = await limiter.is_allowed("k")
        assert result.allowed is False
        assert result.retry_after == 15

    @pytest.mark.asyncio
    async def test_window_resets_after_duration(self, limiter, clock):
        for _ in range(5):
            await limiter.is_allowed("k")
        assert await limiter.check_and_consume("k") is False

        clock.advance(60.001)
        result = await limiter.is_allowed("k")
        assert result.allowed is True
        assert result.remaining == 4

    @pytest.mark.asyncio
    async def test_window_still_open_at_exact_duration(self, limiter, clock):
        for _ in range(5):
            await limiter.is_allowed("k")

        clock.advance(60)
        assert await limiter.check_and_consume("k") is False

    @pytest.mark.asyncio
    async def test_rejected_requests_do_not_extend_the_window(self, limiter, clock):
        for _ in range(5):
            await limiter.is_allowed("k")
        for _ in range(10):
            clock.advance(5)
            await limiter.is_allowed("k")

        clock.advance(10.5)
        assert await limiter.check_and_consume("k") is True

    @pytest.mark.asyncio
    async def test_burst_across_window_boundary(self, limiter, clock):
        """A fixed window accepts almost twice the capacity around a boundary."""
        assert await limiter.check_and_consume("k") is True

        clock.advance(59.9)
        accepted = 0
        for _ in range(10):
            accepted += await limiter.check_and_consume("k")

        clock.advance(0.2)
        for _ in range(10):
            accepted += await limiter.check_and_consume("k")

        assert accepted == 4 + 5

    @pytest.mark.asyncio
    async def test_different_keys_independent(self, limiter):
        for _ in range(5):
            await limiter.is_allowed("key1")
        assert await limiter.check_and_consume("key1") is False
        assert await limiter.check_and_consume("key2") is True

    @pytest.mark.asyncio
    async def test_concurrent_requests_never_exceed_capacity(self, limiter):
        results = await asyncio.gather(*(limiter.check_and_consume("k") for _ in range(20)))
        assert sum(results) == 5


class TestBucketTableBounds:
    """Tests for LRU eviction and expiry sweeps."""

    @pytest.mark.asyncio
    async def test_lru_eviction_caps_bucket_count(self, clock):
        limiter = FixedWindowRateLimiter(capacity=1, window_seconds=60, max_entries=2, clock=clock)

        await limiter.is_allowed("a")
        await limiter.is_allowed("b")
        await limiter.is_allowed("c")

        assert len(limiter) == 2
        # "a" was evicted, so it starts over with a full bucket
        assert await limiter.check_and_consume("a") is True
        assert await limiter.check_and_consume("c") is False

    @pytest.mark.asyncio
    async def test_recently_used_key_survives_eviction(self, clock):
        limiter = FixedWindowRateLimiter(capacity=1, window_seconds=60, max_entries=2, clock=clock)

        await limiter.is_allowed("a")
        await limiter.is_allowed("b")
        await limiter.is_allowed("a")
        await limiter.is_allowed("c")

        assert await limiter.check_and_consume("a") is False
        assert len(limiter) == 2

    @pytest.mark.asyncio
    async def test_cleanup_removes_expired_buckets(self, clock):
        limiter = FixedWindowRateLimiter(capacity=5, window_seconds=60, clock=clock)
        await limiter.is_allowed("old")
        clock.advance(61)
        await limiter.is_allowed("fresh")

        removed = await limiter.cleanup()

        assert removed == 1
        assert len(limiter) == 1

    @pytest.mark.asyncio
    async def test_sweeper_runs_until_cancelled(self, clock):
        limiter = FixedWindowRateLimiter(capacity=5, window_seconds=60, clock=clock)
        await limiter.is_allowed("old")
        clock.advance(61)

        task = asyncio.create_task(limiter.run_sweeper(0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(limiter) == 0


def _request(headers=None, client=("9.9.9.9", 4321)) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/therapist",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestClientKey:
    """Tests for deriving the rate limit key."""

    def test_uses_first_forwarded_for_entry(self):
        request = _request({"X-Forwarded-For": " 1.2.3.4 , 10.0.0.1"})
        assert get_client_key(request) == "1.2.3.4"

    def test_falls_back_to_peer_address(self):
        assert get_client_key(_request()) == "9.9.9.9"

    def test_empty_forwarded_for_falls_back_to_peer(self):
        assert get_client_key(_request({"X-Forwarded-For": " "})) == "9.9.9.9"

    def test_unknown_without_any_address(self):
        assert get_client_key(_request(client=None)) == "unknown"


def test_result_creation():
    result = RateLimitResult(allowed=True, limit=60, remaining=59, reset_time=1060)
    assert result.retry_after is None
