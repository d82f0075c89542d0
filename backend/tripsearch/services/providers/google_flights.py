"""Google Flights adapter using the fast-flights library.

Scrapes Google Flights via protobuf, no API key required. fast-flights is
synchronous, so each search runs in the default thread executor.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from fast_flights import FlightData, Passengers, get_flights

from tripsearch.data.currency import CURRENCY_PREFIXES
from tripsearch.data.locations import primary_airport
from tripsearch.data.timezones import anchor_leg, localize
from tripsearch.schemas.offer import Money, Offer, Segment
from tripsearch.schemas.search import SearchKind, SearchRequest
from tripsearch.services.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


def parse_price(price_str: str | None) -> tuple[Decimal, str] | None:
    """Parse a price string like 'CA$326' or '€1,050' into (amount, currency)."""
    if not price_str:
        return None
    cleaned = price_str.replace(",", "").strip()
    for prefix, currency in CURRENCY_PREFIXES:
        if cleaned.startswith(prefix):
            try:
                return Decimal(cleaned[len(prefix):].strip()), currency
            except InvalidOperation:
                return None
    return None


def parse_duration(dur: str | None) -> int:
    """Parse duration like '10 hr 10 min' into minutes."""
    if not dur:
        return 0
    minutes = 0
    parts = dur.lower().replace("hours", "hr").replace("hour", "hr").replace("mins", "min")
    if "hr" in parts:
        h_part, parts = parts.split("hr", 1)
        minutes += int(h_part.strip()) * 60
    if "min" in parts:
        m_part = parts.replace("min", "").strip()
        if m_part:
            minutes += int(m_part)
    return minutes


def parse_clock_time(value: str, on_date: date, days_ahead: int = 0) -> datetime:
    """Parse '8:45 PM on Mon, Jun 15' (only the time part is used) onto a date."""
    time_part = value.split(" on ")[0].strip()
    t = datetime.strptime(time_part, "%I:%M %p")
    return datetime.combine(on_date + timedelta(days=days_ahead), t.time())


def parse_days_ahead(time_ahead: str | None) -> int:
    if not time_ahead:
        return 0
    digits = "".join(ch for ch in time_ahead if ch.isdigit())
    return int(digits) if digits else 0


class GoogleFlightsAdapter(ProviderAdapter):
    name = "google_flights"
    kinds = frozenset({SearchKind.FLIGHT})
    priority = 10
    quality_weight = 0.6
    cost_hint = 0.0

    @property
    def is_configured(self) -> bool:
        return self.config.google_flights_enabled

    async def _fetch(self, request: SearchRequest) -> list[Any]:
        origin = primary_airport(request.origin)
        destination = primary_airport(request.destination)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            lambda: get_flights(
                flight_data=[
                    FlightData(
                        date=request.start_date.isoformat(),
                        from_airport=origin,
                        to_airport=destination,
                    )
                ],
                trip="one-way",
                seat="economy",
                passengers=Passengers(adults=request.party.adults, children=request.party.children),
            ),
        )
        if not result or not result.flights:
            return []
        return list(result.flights)

    def _parse_record(self, flight: Any, request: SearchRequest) -> Offer:
        parsed = parse_price(flight.price)
        if parsed is None:
            raise ValueError(f"unparseable price {flight.price!r}")
        amount, currency = parsed
        if amount <= 0:
            raise ValueError("non-positive price")

        origin = primary_airport(request.origin)
        destination = primary_airport(request.destination)

        local_departure = parse_clock_time(flight.departure, request.start_date)
        duration = parse_duration(flight.duration)
        # Clock times are airport-local; the duration is the reliable span
        if duration:
            departs_at = localize(local_departure, origin) or local_departure
            arrives_at = departs_at + timedelta(minutes=duration)
        else:
            departs_at, arrives_at = anchor_leg(
                local_departure,
                parse_clock_time(flight.arrival, request.start_date, parse_days_ahead(flight.arrival_time_ahead)),
                origin,
                destination,
            )
        operator = (flight.name or "Unknown").split(",")[0].strip()
        stops = flight.stops if isinstance(flight.stops, int) else 0

        return Offer(
            id=f"{self.name}-{origin}{destination}-{departs_at:%Y%m%d%H%M}-{operator}",
            provider=self.name,
            kind=SearchKind.FLIGHT,
            price=Money(amount=amount, currency=currency),
            segments=[
                Segment(
                    origin=origin,
                    destination=destination,
                    departs_at=departs_at,
                    arrives_at=arrives_at,
                    operator=operator,
                )
            ],
            total_duration_minutes=duration,
            stops=stops,
            confidence=0.7 if getattr(flight, "is_best", False) else 0.55,
        )
