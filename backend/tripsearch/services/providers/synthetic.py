"""Deterministic placeholder offers used when no real provider produced any.

Every offer is tagged ``synthetic=True`` with a low confidence so callers can
tell fabricated inventory apart from real prices.
"""

import hashlib
import logging
import random
from datetime import datetime, time as dt_time, timedelta
from decimal import Decimal
from typing import Any

from tripsearch.data.airlines import HUB_AIRPORTS, airline_name
from tripsearch.data.locations import primary_airport
from tripsearch.schemas.offer import Money, Offer, Segment
from tripsearch.schemas.search import SearchKind, SearchRequest
from tripsearch.services.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)

SYNTHETIC_CONFIDENCE = 0.1

ROUTE_AIRLINES = ["AA", "DL", "UA", "BA", "LH", "AF", "KL", "AC", "EK", "QR"]

HOTEL_CHAINS = [
    ("Marriott", ["Courtyard by Marriott", "Residence Inn", "Fairfield Inn"]),
    ("Hilton", ["Hilton Garden Inn", "Hampton Inn", "DoubleTree by Hilton"]),
    ("IHG", ["Holiday Inn Express", "Crowne Plaza", "InterContinental"]),
    ("Hyatt", ["Hyatt Place", "Hyatt Regency", "Grand Hyatt"]),
    ("Best Western", ["Best Western Plus", "Best Western Premier"]),
    (None, ["City Center Hotel", "The Metropolitan", "Urban Suites", "Park View Hotel"]),
]

HOTEL_AMENITIES = ["wifi", "breakfast", "parking", "gym", "pool", "restaurant", "spa"]

LONG_HAUL_CODES = {"LON", "LHR", "PAR", "CDG", "TYO", "NRT", "HND", "DXB", "SIN", "SYD", "BOM", "DEL"}
EXPENSIVE_CITIES = ["new york", "san francisco", "london", "tokyo", "paris", "zurich"]


def seeded_rng(request: SearchRequest) -> random.Random:
    """Same request, same placeholders."""
    seed_str = (
        f"{request.kind.value}|{request.origin}|{request.destination}|{request.location}|"
        f"{request.start_date}|{request.end_date}|{request.party.adults}|{request.party.rooms}"
    )
    seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
    return random.Random(seed)


class SyntheticAdapter(ProviderAdapter):
    name = "synthetic"
    kinds = frozenset({SearchKind.FLIGHT, SearchKind.HOTEL})
    priority = -1
    quality_weight = 0.1
    cost_hint = 0.0
    synthetic = True

    async def _fetch(self, request: SearchRequest) -> list[Any]:
        rng = seeded_rng(request)
        if request.kind is SearchKind.FLIGHT:
            records = self._flight_records(request, rng)
        else:
            records = self._hotel_records(request, rng)
        logger.info(f"Generated {len(records)} synthetic {request.kind.value} offers for {request.describe()}")
        return records

    @staticmethod
    def _flight_records(request: SearchRequest, rng: random.Random) -> list[dict]:
        long_haul = request.origin in LONG_HAUL_CODES or request.destination in LONG_HAUL_CODES
        base_price = 650 if long_haul else 280
        base_duration = 420 if long_haul else 180

        records = []
        for i in range(rng.randint(4, 8)):
            airline = rng.choice(ROUTE_AIRLINES)
            stops = rng.choices([0, 1], weights=[65, 35])[0]
            departs = datetime.combine(request.start_date, dt_time(rng.randint(6, 21), rng.choice([0, 15, 30, 45])))
            records.append({
                "index": i,
                "airline": airline,
                "flight_number": f"{airline}{rng.randint(100, 9999)}",
                "departs_at": departs,
                "duration": base_duration + stops * rng.randint(45, 90),
                "stops": stops,
                "hub": rng.choice([h for h in HUB_AIRPORTS if h not in (request.origin, request.destination)]),
                "layover": rng.randint(50, 150),
                "price": round(base_price * rng.uniform(0.8, 1.6) * request.party.adults, 2),
            })
        return records

    @staticmethod
    def _hotel_records(request: SearchRequest, rng: random.Random) -> list[dict]:
        base_rate = 280 if any(c in request.location for c in EXPENSIVE_CITIES) else 180
        nights = max(1, request.nights)

        records = []
        for i in range(rng.randint(5, 10)):
            chain, names = rng.choice(HOTEL_CHAINS)
            star = rng.choice([3.0, 3.5, 4.0, 4.5, 5.0])
            multiplier = {3.0: 0.7, 3.5: 0.85, 4.0: 1.0, 4.5: 1.25, 5.0: 1.6}[star]
            nightly = base_rate * multiplier * rng.uniform(0.8, 1.3)
            records.append({
                "index": i,
                "chain": chain,
                "name": f"{rng.choice(names)} {request.location.title()}",
                "star": star,
                "guest_rating": round(rng.uniform(6.4, 9.6), 1),
                "total": round(nightly * nights * request.party.rooms, 2),
                "amenities": rng.sample(HOTEL_AMENITIES, rng.randint(2, 5)),
            })
        return records

    def _parse_record(self, record: dict, request: SearchRequest) -> Offer:
        if request.kind is SearchKind.FLIGHT:
            return self._flight_offer(record, request)
        return self._hotel_offer(record, request)

    def _flight_offer(self, record: dict, request: SearchRequest) -> Offer:
        origin = primary_airport(request.origin)
        destination = primary_airport(request.destination)
        operator = airline_name(record["airline"])
        departs = record["departs_at"]
        arrives = departs + timedelta(minutes=record["duration"])

        if record["stops"]:
            # Split the trip around the hub, layover included in the total
            flying = record["duration"] - record["layover"]
            first_arrival = departs + timedelta(minutes=flying // 2)
            segments = [
                Segment(origin=origin, destination=record["hub"], departs_at=departs,
                        arrives_at=first_arrival, operator=operator, flight_number=record["flight_number"]),
                Segment(origin=record["hub"], destination=destination,
                        departs_at=first_arrival + timedelta(minutes=record["layover"]),
                        arrives_at=arrives, operator=operator),
            ]
        else:
            segments = [
                Segment(origin=origin, destination=destination, departs_at=departs,
                        arrives_at=arrives, operator=operator, flight_number=record["flight_number"]),
            ]

        return Offer(
            id=f"{self.name}-{request.kind.value}-{record['index']}",
            provider=self.name,
            kind=SearchKind.FLIGHT,
            price=Money(amount=Decimal(str(record["price"])), currency=request.currency),
            segments=segments,
            total_duration_minutes=record["duration"],
            stops=record["stops"],
            confidence=SYNTHETIC_CONFIDENCE,
            synthetic=True,
        )

    def _hotel_offer(self, record: dict, request: SearchRequest) -> Offer:
        stay = Segment(
            origin=request.location,
            destination=request.location,
            departs_at=datetime.combine(request.start_date, dt_time(15, 0)),
            arrives_at=datetime.combine(request.end_date, dt_time(11, 0)),
            operator=record["chain"] or record["name"],
        )
        return Offer(
            id=f"{self.name}-{request.kind.value}-{record['index']}",
            provider=self.name,
            kind=SearchKind.HOTEL,
            price=Money(amount=Decimal(str(record["total"])), currency=request.currency),
            segments=[stay],
            amenities=record["amenities"],
            property_name=record["name"],
            check_in=request.start_date,
            check_out=request.end_date,
            rooms=request.party.rooms,
            star_rating=record["star"],
            guest_rating=record["guest_rating"],
            confidence=SYNTHETIC_CONFIDENCE,
            synthetic=True,
        )
