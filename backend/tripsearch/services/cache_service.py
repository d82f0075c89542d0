"""Search result cache — fingerprint → serialized RankedResult with typed TTLs.

The cache only knows fingerprints and blobs; backends are swappable between an
in-process dict and Redis without touching the search pipeline.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

import redis.asyncio as redis
from pydantic import ValidationError

from tripsearch.config import Settings, settings
from tripsearch.schemas.result import RankedResult

logger = logging.getLogger(__name__)

KEY_PREFIX = "search:"


class CacheBackend(Protocol):
    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def set(self, key: str, value: dict[str, Any], ttl: int) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def clear(self) -> int: ...

    async def size(self) -> int: ...


class InMemoryCache:
    """Process-local backend.

    TTL is enforced on read, and every ``sweep_every`` writes the whole map is
    swept so keys that are never read again do not pile up.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_every: int = 256):
        self._store: dict[str, tuple[float, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._sweep_every = max(1, sweep_every)
        self._writes = 0
        self.evictions = 0

    async def get(self, key: str) -> dict[str, Any] | None:
        async with self._lock:
            value = self._store.get(key)
            if value is None:
                return None
            expires_at, payload = value
            if expires_at <= self._clock():
                del self._store[key]
                self.evictions += 1
                return None
            return payload

    async def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        async with self._lock:
            now = self._clock()
            self._writes += 1
            if self._writes % self._sweep_every == 0:
                self._sweep(now)
            self._store[key] = (now + ttl, value)

    def _sweep(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._store.items() if expires_at <= now]
        for key in expired:
            del self._store[key]
        self.evictions += len(expired)
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._store.pop(key, None) is not None

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._store)
            self._store.clear()
            return count

    async def size(self) -> int:
        async with self._lock:
            return len(self._store)


class RedisCache:
    """Redis backend; entries expire server-side via EX."""

    def __init__(self, url: str):
        self._url = url
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self._url, encoding="utf-8", decode_responses=True)
        return self._redis

    async def get(self, key: str) -> dict[str, Any] | None:
        r = await self._get_redis()
        raw = await r.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        r = await self._get_redis()
        await r.set(key, json.dumps(value, default=str), ex=ttl)

    async def delete(self, key: str) -> bool:
        r = await self._get_redis()
        return bool(await r.delete(key))

    async def clear(self) -> int:
        r = await self._get_redis()
        keys = [k async for k in r.scan_iter(match=f"{KEY_PREFIX}*")]
        if not keys:
            return 0
        return await r.delete(*keys)

    async def size(self) -> int:
        r = await self._get_redis()
        return len([k async for k in r.scan_iter(match=f"{KEY_PREFIX}*")])

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0
    errors: int = 0


class SearchCache:
    """Typed wrapper over a backend. Errors are logged and treated as misses."""

    def __init__(self, backend: CacheBackend, clock: Callable[[], float] = time.time):
        self._backend = backend
        self._clock = clock
        self._stats = CacheStats()

    @staticmethod
    def key(fingerprint: str) -> str:
        return f"{KEY_PREFIX}{fingerprint}"

    async def get(self, fingerprint: str) -> RankedResult | None:
        """Return the cached result flagged as cached, or None on miss or error."""
        try:
            entry = await self._backend.get(self.key(fingerprint))
        except Exception as e:
            self._stats.errors += 1
            logger.warning(f"Cache get failed for {fingerprint}: {e}")
            return None

        if entry is None:
            self._stats.misses += 1
            return None

        # Backends may outlive their own expiry (clock skew, lazy eviction)
        if entry.get("expires_at", float("inf")) <= self._clock():
            self._stats.misses += 1
            await self.invalidate(fingerprint)
            return None

        try:
            result = RankedResult.model_validate(entry["result"])
        except (KeyError, ValidationError) as e:
            self._stats.errors += 1
            logger.warning(f"Dropping unreadable cache entry {fingerprint}: {e}")
            await self.invalidate(fingerprint)
            return None

        self._stats.hits += 1
        cached_at = datetime.fromtimestamp(entry["cached_at"], tz=timezone.utc)
        metadata = result.metadata.model_copy(update={"cached": True, "cached_at": cached_at})
        return result.model_copy(update={"metadata": metadata})

    async def put(self, fingerprint: str, result: RankedResult, ttl: int) -> bool:
        now = self._clock()
        entry = {
            "result": result.model_dump(mode="json"),
            "cached_at": now,
            "expires_at": now + ttl,
        }
        try:
            await self._backend.set(self.key(fingerprint), entry, ttl)
        except Exception as e:
            self._stats.errors += 1
            logger.warning(f"Cache put failed for {fingerprint}: {e}")
            return False
        self._stats.writes += 1
        return True

    async def invalidate(self, fingerprint: str) -> bool:
        try:
            return await self._backend.delete(self.key(fingerprint))
        except Exception as e:
            logger.warning(f"Cache invalidate failed for {fingerprint}: {e}")
            return False

    async def clear(self) -> int:
        try:
            cleared = await self._backend.clear()
        except Exception as e:
            logger.warning(f"Cache clear failed: {e}")
            return 0
        logger.info(f"Cleared {cleared} cached search results")
        return cleared

    async def stats(self) -> dict[str, Any]:
        try:
            entries = await self._backend.size()
        except Exception:
            entries = None
        return {
            "backend": type(self._backend).__name__,
            "entries": entries,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "writes": self._stats.writes,
            "errors": self._stats.errors,
            "evictions": getattr(self._backend, "evictions", None),
        }

    async def close(self):
        close = getattr(self._backend, "close", None)
        if close is not None:
            await close()


def build_cache(config: Settings = settings) -> SearchCache:
    if config.cache_backend == "redis":
        logger.info("Using Redis search cache")
        return SearchCache(RedisCache(config.redis_url))
    return SearchCache(InMemoryCache())
