"""Currency rate sources — static table and live rates over HTTP."""

import asyncio
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Protocol

import httpx

from tripsearch.config import Settings, settings
from tripsearch.data.currency import EXCHANGE_RATES_TO_USD
from tripsearch.errors import CurrencyRateUnavailable

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class RateSource(Protocol):
    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal: ...


class StaticRateSource:
    """Cross rates derived from a USD table."""

    def __init__(self, rates_to_usd: dict[str, str] | None = None):
        table = rates_to_usd or EXCHANGE_RATES_TO_USD
        self._rates = {code.upper(): Decimal(rate) for code, rate in table.items()}

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        src, dst = from_currency.upper(), to_currency.upper()
        if src == dst:
            return Decimal(1)
        try:
            from_usd = self._rates[src]
            to_usd = self._rates[dst]
        except KeyError as e:
            raise CurrencyRateUnavailable(src, dst, f"no static rate for {e.args[0]}") from None
        if to_usd == 0:
            raise CurrencyRateUnavailable(src, dst, "zero rate")
        return from_usd / to_usd


class HttpRateSource:
    """Live rates from the Frankfurter API, cached in memory per pair."""

    def __init__(self, base_url: str, ttl_seconds: int = 6 * 60 * 60, timeout: float = 5.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        self._base_url = base_url
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._cache: dict[tuple[str, str], tuple[float, Decimal]] = {}
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        src, dst = from_currency.upper(), to_currency.upper()
        if src == dst:
            return Decimal(1)

        async with self._lock:
            hit = self._cache.get((src, dst))
            if hit and hit[0] > time.monotonic():
                return hit[1]

        client = await self._get_client()
        try:
            resp = await client.get("/latest", params={"from": src, "to": dst})
            resp.raise_for_status()
            rate = Decimal(str(resp.json()["rates"][dst]))
        except (httpx.HTTPError, KeyError, TypeError, ValueError, InvalidOperation) as e:
            logger.warning(f"FX lookup {src}->{dst} failed: {e}")
            raise CurrencyRateUnavailable(src, dst, str(e)) from e

        async with self._lock:
            self._cache[(src, dst)] = (time.monotonic() + self._ttl, rate)
        return rate

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


def convert(amount: Decimal, rate: Decimal) -> Decimal:
    return (amount * rate).quantize(CENT)


def build_rate_source(config: Settings = settings) -> RateSource:
    if config.fx_source == "http":
        return HttpRateSource(config.fx_base_url, ttl_seconds=config.fx_cache_ttl_seconds)
    return StaticRateSource()
