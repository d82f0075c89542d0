"""Fixed-window rate limiting per caller (and per provider quota).

Each key gets at most ``max_requests`` admissions per window. A window is reset
lazily by the first request that arrives after it ends, so no background timer
is needed.

Known limitation: a fixed window allows a burst of up to 2x the limit around a
window boundary (N requests at the end of one window, N more at the start of
the next). Use a sliding window or token bucket if that matters.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Protocol

import redis.asyncio as redis

from tripsearch.config import Settings, settings
from tripsearch.errors import RateLimitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds
    retry_after: float  # seconds, 0 when allowed


@dataclass
class RateLimitRecord:
    window_start: float
    count: int


class RateLimitStore(Protocol):
    async def hit(self, key: str, now: float, window: float, limit: int) -> tuple[bool, int, float]:
        """Count one request; return (allowed, count, window_start)."""
        ...


class InMemoryRateLimitStore:
    """Process-local store. Windows are anchored at each key's first request.

    Every ``sweep_every`` hits, records whose window has ended are dropped so
    one-off callers do not accumulate.
    """

    def __init__(self, sweep_every: int = 256):
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = asyncio.Lock()
        self._sweep_every = max(1, sweep_every)
        self._hits = 0

    async def hit(self, key: str, now: float, window: float, limit: int) -> tuple[bool, int, float]:
        async with self._lock:
            self._hits += 1
            if self._hits % self._sweep_every == 0:
                self._sweep(now, window)
            record = self._records.get(key)
            if record is None or now >= record.window_start + window:
                record = RateLimitRecord(window_start=now, count=0)
                self._records[key] = record
            # Rejected requests are not counted
            if record.count >= limit:
                return False, record.count, record.window_start
            record.count += 1
            return True, record.count, record.window_start

    def _sweep(self, now: float, window: float) -> None:
        expired = [k for k, r in self._records.items() if now >= r.window_start + window]
        for key in expired:
            del self._records[key]

    async def reset(self, key: str | None = None) -> None:
        async with self._lock:
            if key is None:
                self._records.clear()
            else:
                self._records.pop(key, None)

    def __len__(self) -> int:
        return len(self._records)


class RedisRateLimitStore:
    """Shared store using INCR + EXPIRE on window-aligned keys."""

    def __init__(self, url: str, prefix: str = "ratelimit"):
        self._url = url
        self._prefix = prefix
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self._url, encoding="utf-8", decode_responses=True)
        return self._redis

    async def hit(self, key: str, now: float, window: float, limit: int) -> tuple[bool, int, float]:
        r = await self._get_redis()
        window_start = math.floor(now / window) * window
        redis_key = f"{self._prefix}:{key}:{int(window_start)}"
        count = await r.incr(redis_key)
        if count == 1:
            await r.expire(redis_key, max(1, math.ceil(window)))
        return count <= limit, count, window_start

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


class FixedWindowRateLimiter:
    def __init__(
        self,
        store: RateLimitStore,
        window_ms: int,
        max_requests: int,
        namespace: str = "caller",
        clock: Callable[[], float] = time.time,
    ):
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self._store = store
        self._window = window_ms / 1000
        self.max_requests = max_requests
        self.namespace = namespace
        self._clock = clock

    async def check(self, key: str) -> RateLimitDecision:
        """Admit or reject one request for ``key``. Store errors fail open."""
        now = self._clock()
        try:
            allowed, count, window_start = await self._store.hit(
                f"{self.namespace}:{key}", now, self._window, self.max_requests)
        except Exception as e:
            logger.warning(f"Rate limit store failed for {key}, allowing request: {e}")
            return RateLimitDecision(
                allowed=True, limit=self.max_requests, remaining=self.max_requests,
                reset_at=now + self._window, retry_after=0.0,
            )

        reset_at = window_start + self._window
        if not allowed:
            return RateLimitDecision(
                allowed=False, limit=self.max_requests, remaining=0,
                reset_at=reset_at, retry_after=max(0.0, reset_at - now),
            )
        return RateLimitDecision(
            allowed=True, limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_at=reset_at, retry_after=0.0,
        )

    async def enforce(self, key: str) -> RateLimitDecision:
        """Like check(), but raises RateLimitError when the request is rejected."""
        decision = await self.check(key)
        if not decision.allowed:
            raise RateLimitError(key, decision.retry_after, decision.limit)
        return decision

    async def close(self):
        close = getattr(self._store, "close", None)
        if close is not None:
            await close()


def build_rate_limit_store(config: Settings = settings) -> RateLimitStore:
    if config.rate_limit_backend == "redis":
        return RedisRateLimitStore(config.redis_url)
    return InMemoryRateLimitStore()


def build_caller_limiter(config: Settings = settings) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(
        build_rate_limit_store(config),
        window_ms=config.rate_limit_window_ms,
        max_requests=config.rate_limit_max_requests,
    )


def build_provider_limiter(config: Settings = settings) -> FixedWindowRateLimiter | None:
    """Per-provider quota shared by all callers; None when disabled."""
    if config.provider_rate_limit_max_requests <= 0:
        return None
    return FixedWindowRateLimiter(
        build_rate_limit_store(config),
        window_ms=config.provider_rate_limit_window_ms,
        max_requests=config.provider_rate_limit_max_requests,
        namespace="provider",
    )
