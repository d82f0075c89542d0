"""Rate sources and conversion."""

from decimal import Decimal

import httpx
import pytest

from helpers import make_settings
from tripsearch.errors import CurrencyRateUnavailable
from tripsearch.services.currency_service import (
    HttpRateSource,
    StaticRateSource,
    build_rate_source,
    convert,
)


async def test_static_cross_rate_goes_through_usd():
    source = StaticRateSource()

    rate = await source.get_rate("GBP", "EUR")

    assert convert(Decimal("100"), rate) == Decimal("117.59")
    assert await source.get_rate("usd", "USD") == Decimal(1)


async def test_static_source_without_a_rate_raises():
    source = StaticRateSource({"USD": "1"})

    with pytest.raises(CurrencyRateUnavailable):
        await source.get_rate("SEK", "USD")


def test_convert_rounds_to_cents():
    assert convert(Decimal("19.999"), Decimal("1")) == Decimal("20.00")
    assert convert(Decimal("10"), Decimal("0.333")) == Decimal("3.33")


async def test_http_source_caches_each_pair():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(dict(request.url.params))
        return httpx.Response(200, json={"amount": 1.0, "base": "EUR", "rates": {"USD": 1.0856}})

    source = HttpRateSource("https://fx.test", transport=httpx.MockTransport(handler))

    first = await source.get_rate("EUR", "USD")
    second = await source.get_rate("eur", "usd")
    await source.close()

    assert first == second == Decimal("1.0856")
    assert requests == [{"from": "EUR", "to": "USD"}]


@pytest.mark.parametrize("response", [
    httpx.Response(500),
    httpx.Response(200, json={"rates": {}}),
    httpx.Response(200, content=b"not json"),
])
async def test_http_source_failures_raise_rate_unavailable(response):
    source = HttpRateSource("https://fx.test", transport=httpx.MockTransport(lambda request: response))

    with pytest.raises(CurrencyRateUnavailable):
        await source.get_rate("EUR", "USD")


def test_build_rate_source_follows_settings():
    assert isinstance(build_rate_source(make_settings()), StaticRateSource)
    assert isinstance(build_rate_source(make_settings(fx_source="http")), HttpRateSource)
