"""
Unit tests for rate limiter.

Tests cover the token bucket algorithm, permit acquisition, cancellation and
statistics tracking with deterministic time.
"""
import asyncio

import pytest

from tcg_catalog.core import Cancelled, FakeTimeProvider, RateLimiter, TokenBucket


@pytest.fixture
def rate_limiter(fake_time):
    """Fixture providing rate limiter with fake time (10/s, burst 20)."""
    return RateLimiter(steady_rate=10.0, burst=20, time_provider=fake_time, host="api.example.com")


class TestTokenBucket:
    """Test token bucket algorithm."""

    def test_starts_full(self, fake_time):
        bucket = TokenBucket(rate=10.0, capacity=5, time_provider=fake_time)

        assert bucket.peek() == 5
        for _ in range(5):
            assert bucket.consume(1)
        assert not bucket.consume(1)

    def test_refill_over_time(self, fake_time):
        bucket = TokenBucket(rate=10.0, capacity=20, time_provider=fake_time, initial_tokens=0)

        fake_time.advance(0.5)
        assert bucket.peek() == pytest.approx(5.0)

        fake_time.advance(10.0)
        assert bucket.peek() == pytest.approx(20.0)  # capped at capacity

    def test_time_until_tokens(self, fake_time):
        bucket = TokenBucket(rate=4.0, capacity=1, time_provider=fake_time, initial_tokens=0)

        assert bucket.time_until_tokens(1) == pytest.approx(0.25)
        fake_time.advance(0.25)
        assert bucket.time_until_tokens(1) == 0.0


class TestAcquire:
    """Test permit acquisition."""

    async def test_initial_burst(self, rate_limiter, fake_time):
        """Test that initial burst allows multiple rapid requests."""
        for _ in range(20):
            permit = await rate_limiter.acquire()
            assert permit.wait_time == 0.0

        assert fake_time.sleep_history == []

    async def test_steady_rate_throttling(self, rate_limiter, fake_time):
        """Test throttling at steady rate after burst."""
        for _ in range(20):
            await rate_limiter.acquire()

        permit = await rate_limiter.acquire()

        # One token at 10 tokens/sec takes 0.1s
        assert permit.wait_time == pytest.approx(0.1, abs=0.01)
        assert fake_time.sleep_history[0] == pytest.approx(0.1, abs=0.01)

    async def test_permits_never_exceed_burst_plus_rate(self, fake_time):
        """Permits granted within any window W stay <= burst + rate * W."""
        rate, burst = 5.0, 3
        limiter = RateLimiter(steady_rate=rate, burst=burst, time_provider=fake_time)

        grants = []
        for _ in range(40):
            permit = await limiter.acquire()
            grants.append(permit.granted_at)

        for i, start in enumerate(grants):
            for end in grants[i:]:
                window = end - start
                count = sum(1 for g in grants if start <= g <= end)
                assert count <= burst + rate * window + 1e-6

    async def test_concurrent_acquire_respects_rate(self, fake_time):
        """Many tasks acquiring at once still only get burst permits for free."""
        limiter = RateLimiter(steady_rate=10.0, burst=5, time_provider=fake_time)
        start = fake_time.now()

        permits = await asyncio.gather(*(limiter.acquire() for _ in range(25)))

        immediate = [p for p in permits if p.granted_at == start]
        assert len(immediate) == 5
        elapsed = max(p.granted_at for p in permits) - start
        assert len(permits) <= 5 + 10.0 * elapsed + 1e-6

    async def test_stats_tracking(self, rate_limiter):
        for _ in range(21):
            await rate_limiter.acquire()

        stats = rate_limiter.get_stats()
        assert stats.requests_total == 21
        assert stats.requests_throttled == 1
        assert stats.total_wait_time > 0

        rate_limiter.reset_stats()
        assert rate_limiter.get_stats().requests_total == 0

    async def test_telemetry_events(self, rate_limiter, telemetry_recorder):
        for _ in range(21):
            await rate_limiter.acquire(endpoint="/catalog/products")

        decisions = [e.decision for e in telemetry_recorder.get_events()]
        assert decisions.count("allow") == 20
        assert decisions.count("throttle") == 1
        assert telemetry_recorder.get_events()[0].endpoint == "/catalog/products"


class TestCancellation:
    """Test cancellation of permit waits."""

    async def test_already_cancelled(self, rate_limiter):
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(Cancelled):
            await rate_limiter.acquire(cancel)

        assert rate_limiter.get_stats().requests_cancelled == 1
        assert rate_limiter.get_stats().requests_total == 0

    async def test_cancel_while_waiting(self):
        """A waiter blocked on an empty bucket is released by the cancel event."""
        limiter = RateLimiter(steady_rate=0.001, burst=1)  # real clock, ~17 minutes per token
        await limiter.acquire()

        cancel = asyncio.Event()
        waiter = asyncio.ensure_future(limiter.acquire(cancel))
        await asyncio.sleep(0.05)
        assert not waiter.done()

        cancel.set()
        with pytest.raises(Cancelled):
            await asyncio.wait_for(waiter, timeout=2)

    async def test_uncancelled_event_does_not_block(self, rate_limiter):
        permit = await rate_limiter.acquire(asyncio.Event())

        assert permit.wait_time == 0.0


class TestConstruction:

    @pytest.mark.parametrize("rate,burst", [(0, 1), (-1, 1), (1, 0)])
    def test_invalid_settings(self, rate, burst):
        with pytest.raises(ValueError):
            RateLimiter(steady_rate=rate, burst=burst)

    def test_defaults_to_system_time(self):
        limiter = RateLimiter(steady_rate=1, burst=1)

        assert not isinstance(limiter.time_provider, FakeTimeProvider)
