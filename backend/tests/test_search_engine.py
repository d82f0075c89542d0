"""End-to-end behaviour of SearchEngine.search with fake adapters."""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest

from helpers import (
    DEPARTURE,
    FakeAdapter,
    build_engine,
    flight_offer,
    flight_request,
    hotel_offer,
    hotel_request,
    make_settings,
)
from tripsearch.errors import AdapterError, FailureKind, RateLimitError, SearchValidationError
from tripsearch.services import telemetry as events
from tripsearch.services.currency_service import StaticRateSource
from tripsearch.services.normalizer import CURRENCY_UNAVAILABLE, DUPLICATE, FILTERED


async def test_duplicate_flight_merges_into_cheaper_richer_offer():
    one_stop = flight_offer(provider="alpha", price="500", stops=1)
    richer = flight_offer(provider="beta", price="480", stops=1, flight_number="BA178", cabin_class="economy")
    engine = build_engine([FakeAdapter("alpha", [one_stop]), FakeAdapter("beta", [richer])])

    result = await engine.search("caller-1", flight_request())

    assert len(result.offers) == 1
    best = result.best_offer
    assert best.price.amount == Decimal("480")
    assert best.provider == "beta"
    assert [s.flight_number for s in best.segments] == ["BA178", "BA178"]
    assert best.stops == 1
    assert result.metadata.dropped == {DUPLICATE: 1}
    assert result.metadata.providers_succeeded == ["alpha", "beta"]
    assert not result.metadata.synthetic


async def test_identical_requests_hit_the_cache():
    adapter = FakeAdapter("alpha", [flight_offer()])
    engine = build_engine([adapter])

    first = await engine.search("caller-1", flight_request())
    second = await engine.search("caller-1", flight_request(origin="nyc", locale="en-GB"))

    assert adapter.calls == 1
    assert not first.metadata.cached
    assert second.metadata.cached
    assert second.metadata.cached_at is not None
    assert [o.id for o in second.offers] == [o.id for o in first.offers]
    assert second.metadata.fingerprint == first.metadata.fingerprint


async def test_different_filters_miss_the_cache():
    adapter = FakeAdapter("alpha", [flight_offer()])
    engine = build_engine([adapter])

    await engine.search("caller-1", flight_request())
    await engine.search("caller-1", flight_request(filters={"max_stops": 0}))

    assert adapter.calls == 2


async def test_all_providers_failing_returns_flagged_synthetic_offers():
    adapter = FakeAdapter("alpha", error=AdapterError(FailureKind.UPSTREAM_ERROR, "HTTP 503", 503))
    engine = build_engine([adapter])

    result = await engine.search("caller-1", hotel_request())

    assert result.offers
    assert result.metadata.synthetic
    assert all(o.synthetic for o in result.offers)
    assert result.metadata.providers_failed == {"alpha": FailureKind.UPSTREAM_ERROR}
    assert "synthetic" in result.metadata.providers_consulted


async def test_synthetic_results_are_not_cached():
    adapter = FakeAdapter("alpha", error=AdapterError(FailureKind.TIMEOUT, "slow"))
    engine = build_engine([adapter])

    await engine.search("caller-1", flight_request())
    again = await engine.search("caller-1", flight_request())

    assert adapter.calls == 2
    assert not again.metadata.cached
    assert (await engine.cache.stats())["entries"] == 0


@pytest.mark.parametrize("filters", [{"max_price": "10"}, {"max_price": "10", "max_stops": 0}])
async def test_synthetic_offers_survive_filters_that_match_none_of_them(filters):
    engine = build_engine([FakeAdapter("alpha", error=AdapterError(FailureKind.UPSTREAM_ERROR, "HTTP 500", 500))])

    result = await engine.search("caller-1", flight_request(filters=filters))

    assert result.offers
    assert result.metadata.synthetic
    assert all(o.synthetic for o in result.offers)


async def test_filters_can_legitimately_empty_the_result():
    engine = build_engine([FakeAdapter("alpha", [flight_offer(price="500")])])

    result = await engine.search("caller-1", flight_request(filters={"max_price": "100"}))

    assert result.offers == []
    assert not result.metadata.synthetic
    assert result.metadata.dropped == {FILTERED: 1}


async def test_unconvertible_currency_drops_only_that_offer():
    offers = [
        flight_offer(provider="alpha", price="400", currency="EUR"),
        flight_offer(provider="alpha", price="300", currency="GBP", departs=DEPARTURE + timedelta(hours=3)),
    ]
    rates = StaticRateSource({"USD": "1", "EUR": "1.10"})
    engine = build_engine([FakeAdapter("alpha", offers)], rate_source=rates)

    result = await engine.search("caller-1", flight_request())

    assert len(result.offers) == 1
    assert result.offers[0].price.amount == Decimal("440.00")
    assert result.offers[0].price.currency == "USD"
    assert result.metadata.dropped == {CURRENCY_UNAVAILABLE: 1}


async def test_hotels_from_two_providers_collapse_by_property_name():
    engine = build_engine([
        FakeAdapter("alpha", [hotel_offer(provider="alpha", name="Hôtel Café Royal", price="900", amenities=("wifi",))]),
        FakeAdapter("beta", [hotel_offer(provider="beta", name="Hotel Cafe Royal", price="870", amenities=("spa",))]),
    ])

    result = await engine.search("caller-1", hotel_request())

    assert len(result.offers) == 1
    assert result.offers[0].provider == "beta"
    assert result.offers[0].amenities == frozenset({"wifi", "spa"})


async def test_rate_limit_rejects_the_request_after_the_limit():
    engine = build_engine([FakeAdapter("alpha", [flight_offer()])], make_settings(rate_limit_max_requests=2))

    for day in (1, 2):
        await engine.search("caller-1", flight_request(start_date=date(2024, 6, day), end_date=None))
    with pytest.raises(RateLimitError) as exc_info:
        await engine.search("caller-1", flight_request(start_date=date(2024, 6, 3), end_date=None))

    assert exc_info.value.limit == 2
    assert exc_info.value.retry_after > 0
    # Other callers have their own budget
    await engine.search("caller-2", flight_request(start_date=date(2024, 6, 3), end_date=None))


async def test_cache_hits_do_not_consume_rate_limit():
    engine = build_engine([FakeAdapter("alpha", [flight_offer()])], make_settings(rate_limit_max_requests=1))

    await engine.search("caller-1", flight_request())
    cached = await engine.search("caller-1", flight_request())

    assert cached.metadata.cached


async def test_invalid_request_dict_raises_validation_error():
    adapter = FakeAdapter("alpha", [flight_offer()])
    engine = build_engine([adapter])

    with pytest.raises(SearchValidationError) as exc_info:
        await engine.search("caller-1", {"kind": "flight", "origin": "NYC", "start_date": "2024-06-01"})

    assert exc_info.value.errors
    assert adapter.calls == 0


async def test_request_dict_is_accepted():
    engine = build_engine([FakeAdapter("alpha", [flight_offer()])])

    result = await engine.search("caller-1", {
        "kind": "flight", "origin": "New York", "destination": "London", "start_date": "2024-06-01",
    })

    assert len(result.offers) == 1


async def test_blank_caller_id_is_rejected():
    engine = build_engine([FakeAdapter("alpha", [flight_offer()])])

    with pytest.raises(SearchValidationError):
        await engine.search("  ", flight_request())


async def test_ranking_puts_the_best_offer_first():
    cheap_slow = flight_offer(provider="alpha", price="300", stops=1, duration=900)
    pricey_direct = flight_offer(provider="alpha", price="320", departs=DEPARTURE + timedelta(hours=2))
    premium = flight_offer(provider="alpha", price="1000", departs=DEPARTURE + timedelta(hours=4))
    engine = build_engine([FakeAdapter("alpha", [cheap_slow, pricey_direct, premium])])

    result = await engine.search("caller-1", flight_request())

    assert [o.price.amount for o in result.offers] == [Decimal("320"), Decimal("300"), Decimal("1000")]
    assert result.offers[0].score > result.offers[1].score


async def test_usage_counts_cache_and_provider_events():
    engine = build_engine([FakeAdapter("alpha", [flight_offer()])])

    await engine.search("caller-1", flight_request())
    await engine.search("caller-1", flight_request())

    usage = engine.usage()
    assert usage["providers"]["alpha"]["calls"] == 1
    assert usage["events"][events.CACHE_MISS] == 1
    assert usage["events"][events.CACHE_HIT] == 1
    assert usage["events"][events.SEARCH_COMPLETED] == 1


async def test_sequential_search_moves_past_an_adapter_whose_offers_all_drop():
    swiss = FakeAdapter("alpha", [flight_offer(provider="alpha", price="400", currency="CHF")], priority=30)
    fallback = FakeAdapter("beta", [flight_offer(provider="beta", price="450")], priority=10)
    engine = build_engine(
        [swiss, fallback],
        make_settings(search_mode="sequential"),
        rate_source=StaticRateSource({"USD": "1"}),
    )

    result = await engine.search("caller-1", flight_request())

    assert swiss.calls == 1
    assert fallback.calls == 1
    assert not result.metadata.synthetic
    assert [o.provider for o in result.offers] == ["beta"]
    assert result.metadata.dropped == {CURRENCY_UNAVAILABLE: 1}


async def test_cancelled_search_leaves_nothing_in_the_cache():
    adapter = FakeAdapter("alpha", [flight_offer()], delay=5)
    engine = build_engine([adapter])

    task = asyncio.create_task(engine.search("caller-1", flight_request()))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.01)

    assert adapter.cancelled
    assert (await engine.cache.stats())["entries"] == 0
