"""
Token bucket rate limiter shared by every outbound API call.

This module implements the throttle that sits in front of the transport:
- Uses token bucket algorithm for rate limiting (steady rate + burst)
- Blocks callers until a permit is available
- Supports a cancellation signal while waiting
- Emits structured telemetry for monitoring
"""
import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import Cancelled
from .telemetry import TelemetryDecision, create_event, get_recorder

logger = logging.getLogger(__name__)

# Absorbs float drift in refill arithmetic so a waiter never spins on 0.9999...
_EPSILON = 1e-9


class TimeProvider(ABC):
    """Protocol for providing time values, allows injection of fake time in tests."""

    @abstractmethod
    def now(self) -> float:
        """Return current time in seconds since epoch."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for the given number of seconds."""
        pass


class SystemTimeProvider(TimeProvider):
    """Real time provider using system clock."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class FakeTimeProvider(TimeProvider):
    """Fake time provider for deterministic tests."""

    def __init__(self, initial_time: float = 1000.0):
        self._current_time = initial_time
        self._lock = threading.Lock()
        self.sleep_history: list[float] = []

    def now(self) -> float:
        with self._lock:
            return self._current_time

    async def sleep(self, seconds: float) -> None:
        """Simulate sleep by advancing time, yielding once to the loop."""
        with self._lock:
            self.sleep_history.append(seconds)
            self._current_time += max(0.0, seconds)
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        """Advance time by given seconds."""
        with self._lock:
            self._current_time += seconds

    def set(self, time: float) -> None:
        """Set absolute time."""
        with self._lock:
            self._current_time = time


async def sleep_unless_cancelled(
    time_provider: TimeProvider,
    delay: float,
    cancel: Optional[asyncio.Event],
) -> None:
    """Sleep for delay seconds, returning early if cancel fires."""
    if cancel is None:
        await time_provider.sleep(delay)
        return

    sleeper = asyncio.ensure_future(time_provider.sleep(delay))
    watcher = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, watcher):
            if not task.done():
                task.cancel()


class TokenBucket:
    """
    Token bucket for rate limiting with configurable refill rate.

    Starts full, so up to ``capacity`` permits are available immediately and
    at most ``capacity + rate * W`` permits are ever issued in a window of W
    seconds.
    """

    def __init__(
        self,
        rate: float,
        capacity: int,
        time_provider: TimeProvider,
        initial_tokens: Optional[float] = None
    ):
        """
        Initialize token bucket.

        Args:
            rate: Token refill rate (tokens per second)
            capacity: Maximum tokens in bucket (burst capacity)
            time_provider: Time provider for getting current time
            initial_tokens: Initial number of tokens (defaults to capacity)
        """
        self.rate = rate
        self.capacity = capacity
        self.time_provider = time_provider
        self._tokens = float(initial_tokens if initial_tokens is not None else capacity)
        self._last_refill = self.time_provider.now()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        """Refill tokens based on elapsed time."""
        now = self.time_provider.now()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last_refill = now

    def consume(self, tokens: int = 1) -> bool:
        """
        Try to consume tokens from bucket.

        Args:
            tokens: Number of tokens to consume

        Returns:
            True if tokens were consumed, False if insufficient tokens
        """
        with self._lock:
            self._refill()
            if self._tokens + _EPSILON >= tokens:
                self._tokens = max(0.0, self._tokens - tokens)
                return True
            return False

    def peek(self) -> float:
        """Get current token count without consuming."""
        with self._lock:
            self._refill()
            return self._tokens

    def time_until_tokens(self, tokens: int = 1) -> float:
        """
        Calculate time until specified tokens are available.

        Args:
            tokens: Number of tokens needed

        Returns:
            Seconds until tokens available (0 if already available)
        """
        with self._lock:
            self._refill()
            if self._tokens + _EPSILON >= tokens:
                return 0.0

            tokens_needed = tokens - self._tokens
            return tokens_needed / self.rate if self.rate > 0 else float('inf')


@dataclass
class RateLimiterStats:
    """Statistics for rate limiter telemetry."""

    requests_total: int = 0
    requests_throttled: int = 0
    requests_cancelled: int = 0
    total_wait_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "requests_total": self.requests_total,
            "requests_throttled": self.requests_throttled,
            "requests_cancelled": self.requests_cancelled,
            "total_wait_time": self.total_wait_time,
        }


@dataclass(frozen=True)
class Permit:
    """
    Capacity unit returned by RateLimiter.acquire().

    Attributes:
        wait_time: Time spent waiting for the permit
        granted_at: Time the permit was issued
    """

    wait_time: float = 0.0
    granted_at: float = 0.0


class RateLimiter:
    """
    Shared token bucket throttle.

    Many tasks may call acquire() concurrently; permits are handed out in no
    particular order but never faster than the bucket allows.
    """

    def __init__(
        self,
        steady_rate: float,
        burst: int,
        time_provider: Optional[TimeProvider] = None,
        host: str = "",
    ):
        """
        Initialize rate limiter.

        Args:
            steady_rate: Permits per second once the burst is used up
            burst: Bucket capacity
            time_provider: Optional time provider (defaults to system time)
            host: Host name used to label telemetry events
        """
        if steady_rate <= 0:
            raise ValueError("steady_rate must be positive")
        if burst <= 0:
            raise ValueError("burst must be positive")

        self.host = host
        self.time_provider = time_provider or SystemTimeProvider()
        self._bucket = TokenBucket(
            rate=steady_rate,
            capacity=burst,
            time_provider=self.time_provider,
        )

        self._stats = RateLimiterStats()
        self._stats_lock = threading.Lock()

    @property
    def bucket(self) -> TokenBucket:
        return self._bucket

    async def _wait(self, delay: float, cancel: Optional[asyncio.Event]) -> None:
        await sleep_unless_cancelled(self.time_provider, delay, cancel)

    def _cancelled(self, endpoint: str) -> Cancelled:
        with self._stats_lock:
            self._stats.requests_cancelled += 1
        logger.debug(f"Permit wait cancelled for {endpoint or self.host}")
        return Cancelled("rate limiter wait cancelled")

    async def acquire(
        self,
        cancel: Optional[asyncio.Event] = None,
        endpoint: str = "",
    ) -> Permit:
        """
        Wait for a permit.

        Args:
            cancel: Optional event; when set, waiting stops with Cancelled
            endpoint: Endpoint being called, for telemetry only

        Returns:
            Permit with wait time information

        Raises:
            Cancelled: If the cancel event is set before a permit is available
        """
        if cancel is not None and cancel.is_set():
            raise self._cancelled(endpoint)

        start = self.time_provider.now()
        while not self._bucket.consume(1):
            if cancel is not None and cancel.is_set():
                raise self._cancelled(endpoint)
            await self._wait(self._bucket.time_until_tokens(1), cancel)
            if cancel is not None and cancel.is_set():
                raise self._cancelled(endpoint)

        granted_at = self.time_provider.now()
        wait_time = max(0.0, granted_at - start)

        with self._stats_lock:
            self._stats.requests_total += 1
            if wait_time > 0:
                self._stats.requests_throttled += 1
                self._stats.total_wait_time += wait_time

        decision = TelemetryDecision.THROTTLE if wait_time > 0 else TelemetryDecision.ALLOW
        get_recorder().record(create_event(
            host=self.host,
            endpoint=endpoint,
            decision=decision,
            sleep_s=wait_time,
            tokens_available=self._bucket.peek(),
        ))

        logger.debug(f"Acquired permit for {endpoint or self.host}, waited {wait_time:.3f}s")
        return Permit(wait_time=wait_time, granted_at=granted_at)

    def get_stats(self) -> RateLimiterStats:
        """Get current statistics."""
        with self._stats_lock:
            return RateLimiterStats(
                requests_total=self._stats.requests_total,
                requests_throttled=self._stats.requests_throttled,
                requests_cancelled=self._stats.requests_cancelled,
                total_wait_time=self._stats.total_wait_time,
            )

    def reset_stats(self) -> None:
        """Reset statistics."""
        with self._stats_lock:
            self._stats = RateLimiterStats()
