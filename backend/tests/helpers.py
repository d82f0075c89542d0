"""Shared builders and fakes for the test suite."""

import asyncio
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from tripsearch.config import Settings
from tripsearch.schemas.offer import Money, Offer, Segment
from tripsearch.schemas.search import SearchKind, SearchRequest
from tripsearch.services.cache_service import InMemoryCache, SearchCache
from tripsearch.services.coordinator import FallbackCoordinator
from tripsearch.services.currency_service import StaticRateSource
from tripsearch.services.providers.base import ProviderAdapter
from tripsearch.services.rate_limiter import FixedWindowRateLimiter, InMemoryRateLimitStore
from tripsearch.services.search_engine import SearchEngine
from tripsearch.services.telemetry import UsageTelemetry

DEPARTURE = datetime(2024, 6, 1, 9, 0)


def make_settings(**overrides: Any) -> Settings:
    values = {
        "search_mode": "fanout",
        "overall_timeout_ms": 2000,
        "per_adapter_timeout_ms": 1000,
        "rate_limit_window_ms": 60_000,
        "rate_limit_max_requests": 100,
        "provider_rate_limit_max_requests": 0,
        "cache_backend": "memory",
        "rate_limit_backend": "memory",
        "fx_source": "static",
        "rapidapi_key": "",
        "amadeus_client_id": "",
        "amadeus_client_secret": "",
        "google_flights_enabled": False,
    }
    values.update(overrides)
    return Settings(**values)


def flight_request(**overrides: Any) -> SearchRequest:
    values = {
        "kind": "flight",
        "origin": "NYC",
        "destination": "LON",
        "start_date": date(2024, 6, 1),
        "end_date": date(2024, 6, 8),
        "party": {"adults": 1},
        "currency": "USD",
    }
    values.update(overrides)
    return SearchRequest.model_validate(values)


def hotel_request(**overrides: Any) -> SearchRequest:
    values = {
        "kind": "hotel",
        "location": "London",
        "start_date": date(2024, 6, 1),
        "end_date": date(2024, 6, 4),
        "party": {"adults": 2, "rooms": 1},
        "currency": "USD",
    }
    values.update(overrides)
    return SearchRequest.model_validate(values)


def flight_offer(
    provider: str = "alpha",
    price: str = "500",
    currency: str = "USD",
    departs: datetime = DEPARTURE,
    operator: str = "British Airways",
    stops: int = 0,
    duration: int = 420,
    flight_number: str | None = None,
    cabin_class: str | None = None,
    offer_id: str | None = None,
    amenities: tuple = (),
    confidence: float = 0.8,
    deep_link: str | None = None,
) -> Offer:
    arrives = departs + timedelta(minutes=duration)
    if stops:
        leg = (duration - 60) // 2
        hub_arrival = departs + timedelta(minutes=leg)
        segments = [
            Segment(origin="JFK", destination="DUB", departs_at=departs, arrives_at=hub_arrival,
                    operator=operator, flight_number=flight_number, cabin_class=cabin_class),
            Segment(origin="DUB", destination="LHR", departs_at=hub_arrival + timedelta(minutes=60),
                    arrives_at=arrives, operator=operator, flight_number=flight_number, cabin_class=cabin_class),
        ]
    else:
        segments = [
            Segment(origin="JFK", destination="LHR", departs_at=departs, arrives_at=arrives,
                    operator=operator, flight_number=flight_number, cabin_class=cabin_class),
        ]
    return Offer(
        id=offer_id or f"{provider}-{price}-{departs:%H%M}",
        provider=provider,
        kind=SearchKind.FLIGHT,
        price=Money(amount=Decimal(price), currency=currency),
        segments=segments,
        total_duration_minutes=duration,
        stops=stops,
        amenities=amenities,
        deep_link=deep_link,
        confidence=confidence,
    )


def hotel_offer(
    provider: str = "alpha",
    name: str = "Grand Hyatt London",
    price: str = "600",
    currency: str = "USD",
    guest_rating: float | None = 8.5,
    star_rating: float | None = 4.0,
    amenities: tuple = ("wifi",),
    offer_id: str | None = None,
    rooms: int = 1,
) -> Offer:
    check_in, check_out = date(2024, 6, 1), date(2024, 6, 4)
    return Offer(
        id=offer_id or f"{provider}-{name}",
        provider=provider,
        kind=SearchKind.HOTEL,
        price=Money(amount=Decimal(price), currency=currency),
        segments=[
            Segment(origin="london", destination="london",
                    departs_at=datetime(2024, 6, 1, 15), arrives_at=datetime(2024, 6, 4, 11), operator=name),
        ],
        amenities=amenities,
        property_name=name,
        check_in=check_in,
        check_out=check_out,
        rooms=rooms,
        star_rating=star_rating,
        guest_rating=guest_rating,
        confidence=0.8,
    )


class FakeAdapter(ProviderAdapter):
    """Adapter returning canned offers, with a call counter and optional delay or error."""

    def __init__(
        self,
        name: str,
        offers: list | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        priority: int = 10,
        quality_weight: float = 0.8,
        kinds: frozenset = frozenset({SearchKind.FLIGHT, SearchKind.HOTEL}),
        configured: bool = True,
        config: Settings | None = None,
    ):
        super().__init__(config or make_settings())
        self.name = name
        self.offers = offers or []
        self.error = error
        self.delay = delay
        self.priority = priority
        self.quality_weight = quality_weight
        self.kinds = kinds
        self.configured = configured
        self.calls = 0
        self.cancelled = False

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def _fetch(self, request: SearchRequest) -> list:
        self.calls += 1
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return list(self.offers)

    def _parse_record(self, record, request: SearchRequest) -> Offer:
        if not isinstance(record, Offer):
            raise ValueError(f"not an offer: {record!r}")
        return record


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_engine(adapters: list[ProviderAdapter], config: Settings | None = None, **kwargs: Any) -> SearchEngine:
    config = config or make_settings()
    telemetry = kwargs.pop("telemetry", None) or UsageTelemetry()
    limiter = kwargs.pop("rate_limiter", None) or FixedWindowRateLimiter(
        InMemoryRateLimitStore(),
        window_ms=config.rate_limit_window_ms,
        max_requests=config.rate_limit_max_requests,
    )
    return SearchEngine(
        config,
        adapters=adapters,
        cache=kwargs.pop("cache", None) or SearchCache(InMemoryCache()),
        rate_limiter=limiter,
        rate_source=kwargs.pop("rate_source", None) or StaticRateSource(),
        telemetry=telemetry,
        coordinator=kwargs.pop("coordinator", None) or FallbackCoordinator(config, telemetry=telemetry),
    )
