"""Search cache: TTL on read, error tolerance, stats."""

from helpers import FakeClock, flight_offer
from tripsearch.schemas.result import RankedResult, ResultMetadata
from tripsearch.services.cache_service import InMemoryCache, SearchCache


def _result(fp: str = "flight:abc") -> RankedResult:
    return RankedResult(
        offers=[flight_offer(price="480", amenities=("wifi",))],
        metadata=ResultMetadata(fingerprint=fp, strategy="fanout", currency="USD", providers_succeeded=["alpha"]),
    )


class BrokenBackend:
    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, value, ttl):
        raise ConnectionError("redis down")

    async def delete(self, key):
        raise ConnectionError("redis down")

    async def clear(self):
        raise ConnectionError("redis down")

    async def size(self):
        raise ConnectionError("redis down")


async def test_hit_returns_result_flagged_cached():
    clock = FakeClock()
    cache = SearchCache(InMemoryCache(clock=clock), clock=clock)
    original = _result()

    await cache.put("flight:abc", original, ttl=900)
    hit = await cache.get("flight:abc")

    assert hit is not None
    assert hit.metadata.cached is True
    assert hit.metadata.cached_at is not None
    assert hit.offers == original.offers
    assert original.metadata.cached is False


async def test_expired_entry_is_a_miss_and_evicted():
    clock = FakeClock()
    backend = InMemoryCache(clock=clock)
    cache = SearchCache(backend, clock=clock)

    await cache.put("flight:abc", _result(), ttl=900)
    clock.advance(901)

    assert await cache.get("flight:abc") is None
    assert await backend.size() == 0
    stats = await cache.stats()
    assert stats["misses"] == 1
    assert stats["evictions"] == 1


async def test_entry_valid_until_ttl():
    clock = FakeClock()
    cache = SearchCache(InMemoryCache(clock=clock), clock=clock)

    await cache.put("hotel:abc", _result("hotel:abc"), ttl=1800)
    clock.advance(1799)

    assert await cache.get("hotel:abc") is not None


async def test_backend_errors_never_raise():
    cache = SearchCache(BrokenBackend())

    assert await cache.put("flight:abc", _result(), ttl=60) is False
    assert await cache.get("flight:abc") is None
    assert await cache.invalidate("flight:abc") is False
    assert await cache.clear() == 0
    assert (await cache.stats())["errors"] == 2


async def test_invalidate_and_clear():
    cache = SearchCache(InMemoryCache())
    await cache.put("flight:a", _result("flight:a"), ttl=60)
    await cache.put("flight:b", _result("flight:b"), ttl=60)

    assert await cache.invalidate("flight:a") is True
    assert await cache.get("flight:a") is None
    assert await cache.clear() == 1
    assert (await cache.stats())["entries"] == 0


async def test_writes_sweep_entries_that_are_never_read_again():
    clock = FakeClock()
    backend = InMemoryCache(clock=clock, sweep_every=1)

    await backend.set("search:a", {"v": 1}, ttl=10)
    await backend.set("search:b", {"v": 2}, ttl=10)
    clock.advance(11)
    await backend.set("search:c", {"v": 3}, ttl=10)

    assert await backend.size() == 1
    assert backend.evictions == 2
    assert await backend.get("search:c") == {"v": 3}
