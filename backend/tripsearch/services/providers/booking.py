"""Booking.com adapter (RapidAPI) — hotel partner inventory."""

import logging
from datetime import datetime, time as dt_time
from decimal import Decimal
from typing import Any

from tripsearch.errors import AdapterError, FailureKind
from tripsearch.schemas.offer import Money, Offer, Segment
from tripsearch.schemas.search import SearchKind, SearchRequest
from tripsearch.services.providers.base import HttpProviderAdapter, expect_list

logger = logging.getLogger(__name__)

MAX_RESULTS = 20

# Boolean flags on a search result that map to amenity names
AMENITY_FLAGS = {
    "breakfast_included": "breakfast",
    "free_cancellation": "free_cancellation",
    "has_free_parking": "parking",
    "has_swimming_pool": "pool",
    "is_free_wifi": "wifi",
}


class BookingAdapter(HttpProviderAdapter):
    name = "booking"
    kinds = frozenset({SearchKind.HOTEL})
    priority = 30
    quality_weight = 0.85
    cost_hint = 1.0

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._dest_ids: dict[str, str] = {}

    @property
    def base_url(self) -> str:
        return f"https://{self.config.booking_host}/v1/hotels"

    @property
    def is_configured(self) -> bool:
        return bool(self.config.rapidapi_key)

    def _default_headers(self) -> dict[str, str]:
        return {
            "X-RapidAPI-Key": self.config.rapidapi_key,
            "X-RapidAPI-Host": self.config.booking_host,
        }

    async def _destination_id(self, location: str) -> str:
        if location in self._dest_ids:
            return self._dest_ids[location]

        data = await self._get_json("/locations", params={"name": location, "locale": "en-gb"})
        if not isinstance(data, list):
            raise AdapterError(FailureKind.MALFORMED_RESPONSE, "locations response is not a list")
        if not data or not data[0].get("dest_id"):
            raise AdapterError(FailureKind.UPSTREAM_ERROR, f"destination not found: {location}")

        dest_id = str(data[0]["dest_id"])
        self._dest_ids[location] = dest_id
        return dest_id

    async def _fetch(self, request: SearchRequest) -> list[Any]:
        dest_id = await self._destination_id(request.location)
        params = {
            "dest_id": dest_id,
            "dest_type": "city",
            "checkin_date": request.start_date.isoformat(),
            "checkout_date": request.end_date.isoformat(),
            "adults_number": request.party.adults,
            "children_number": request.party.children,
            "room_number": request.party.rooms,
            "filter_by_currency": request.currency,
            "locale": request.locale.lower(),
            "order_by": "price",
            "units": "metric",
        }
        data = await self._get_json("/search", params=params)
        return expect_list(data, "result")[:MAX_RESULTS]

    def _parse_record(self, record: dict, request: SearchRequest) -> Offer:
        breakdown = record["composite_price_breakdown"]
        gross = breakdown.get("gross_amount") or {}
        if gross.get("value") is not None:
            total = Decimal(str(gross["value"]))
            currency = gross.get("currency") or request.currency
        else:
            nightly = breakdown["gross_amount_per_night"]
            total = Decimal(str(nightly["value"])) * request.nights
            currency = nightly.get("currency") or request.currency

        name = record["hotel_name"]
        stars = record.get("class")
        review = record.get("review_score")

        amenities = {amenity for flag, amenity in AMENITY_FLAGS.items() if record.get(flag)}

        stay = Segment(
            origin=request.location,
            destination=request.location,
            departs_at=datetime.combine(request.start_date, dt_time(15, 0)),
            arrives_at=datetime.combine(request.end_date, dt_time(11, 0)),
            operator=record.get("brand") or name,
        )
        return Offer(
            id=f"{self.name}-{record['hotel_id']}",
            provider=self.name,
            kind=SearchKind.HOTEL,
            price=Money(amount=total.quantize(Decimal("0.01")), currency=currency),
            segments=[stay],
            amenities=amenities,
            deep_link=record.get("url"),
            property_name=name,
            check_in=request.start_date,
            check_out=request.end_date,
            rooms=request.party.rooms,
            star_rating=float(stars) if stars else None,
            guest_rating=float(review) if review is not None else None,
            confidence=0.85,
        )
