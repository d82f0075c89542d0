"""Amadeus Self-Service adapter — GDS source for flights and hotels (OAuth2)."""

import asyncio
import logging
import time
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from typing import Any

import httpx

from tripsearch.config import Settings, settings
from tripsearch.data.airlines import CABIN_MAP, airline_name
from tripsearch.data.locations import resolve_location_code
from tripsearch.data.timezones import anchor_leg
from tripsearch.errors import AdapterError, FailureKind
from tripsearch.schemas.offer import Money, Offer, Segment
from tripsearch.schemas.search import SearchKind, SearchRequest
from tripsearch.services.providers.base import HttpProviderAdapter, expect_list

logger = logging.getLogger(__name__)

MAX_FLIGHT_RESULTS = 50
MAX_HOTELS_PER_CITY = 20
HOTEL_CHECK_IN = dt_time(15, 0)
HOTEL_CHECK_OUT = dt_time(11, 0)


def parse_iso_duration(duration_str: str | None) -> int:
    """Parse ISO 8601 duration (PT2H30M, P1DT2H) to minutes."""
    if not duration_str or not duration_str.startswith("P"):
        return 0
    days = 0
    rest = duration_str[1:]
    if "T" in rest:
        day_part, rest = rest.split("T", 1)
        if day_part.endswith("D"):
            days = int(day_part[:-1])
    hours = 0
    minutes = 0
    if "H" in rest:
        h_part, rest = rest.split("H")
        hours = int(h_part)
    if "M" in rest:
        m_part = rest.replace("M", "")
        if m_part:
            minutes = int(m_part)
    return days * 24 * 60 + hours * 60 + minutes


class AmadeusAdapter(HttpProviderAdapter):
    name = "amadeus"
    kinds = frozenset({SearchKind.FLIGHT, SearchKind.HOTEL})
    priority = 20
    quality_weight = 0.8
    cost_hint = 2.0

    def __init__(self, config: Settings = settings, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(config, transport)
        self._token: str | None = None
        self._token_expires: float = 0.0
        self._token_lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(10)  # 10 req/s on the test tier

    @property
    def base_url(self) -> str:
        return self.config.amadeus_base_url

    @property
    def is_configured(self) -> bool:
        return bool(self.config.amadeus_client_id and self.config.amadeus_client_secret)

    async def _ensure_token(self) -> str:
        """Get or refresh the OAuth2 client-credentials token."""
        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expires:
                return self._token

            client = await self._get_client()
            resp = await client.post(
                "/v1/security/oauth2/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.config.amadeus_client_id,
                    "client_secret": self.config.amadeus_client_secret,
                },
            )
            resp.raise_for_status()
            data = resp.json()
            try:
                self._token = data["access_token"]
            except (KeyError, TypeError):
                raise AdapterError(FailureKind.AUTH_ERROR, "token response without access_token") from None
            # Refresh a minute early
            self._token_expires = time.monotonic() + int(data.get("expires_in", 1799)) - 60
            logger.info("Amadeus token refreshed")
            return self._token

    async def _authorized_get(self, path: str, params: dict) -> Any:
        async with self._semaphore:
            token = await self._ensure_token()
            return await self._get_json(path, params=params, headers={"Authorization": f"Bearer {token}"})

    async def _fetch(self, request: SearchRequest) -> list[Any]:
        if request.kind is SearchKind.FLIGHT:
            return await self._fetch_flights(request)
        return await self._fetch_hotels(request)

    async def _fetch_flights(self, request: SearchRequest) -> list[Any]:
        params = {
            "originLocationCode": request.origin,
            "destinationLocationCode": request.destination,
            "departureDate": request.start_date.isoformat(),
            "adults": request.party.adults,
            "currencyCode": request.currency,
            "max": MAX_FLIGHT_RESULTS,
        }
        if request.end_date is not None:
            params["returnDate"] = request.end_date.isoformat()
        if request.party.children:
            params["children"] = request.party.children
        if request.filters.max_stops == 0:
            params["nonStop"] = "true"

        data = await self._authorized_get("/v2/shopping/flight-offers", params)
        return expect_list(data, "data")

    async def _fetch_hotels(self, request: SearchRequest) -> list[Any]:
        city_code = resolve_location_code(request.location)
        listing = await self._authorized_get(
            "/v1/reference-data/locations/hotels/by-city", {"cityCode": city_code}
        )
        hotel_ids = [h["hotelId"] for h in expect_list(listing, "data") if isinstance(h, dict) and "hotelId" in h]
        if not hotel_ids:
            return []

        data = await self._authorized_get(
            "/v3/shopping/hotel-offers",
            {
                "hotelIds": ",".join(hotel_ids[:MAX_HOTELS_PER_CITY]),
                "checkInDate": request.start_date.isoformat(),
                "checkOutDate": request.end_date.isoformat(),
                "adults": request.party.adults,
                "roomQuantity": request.party.rooms,
                "currency": request.currency,
            },
        )
        return expect_list(data, "data")

    def _parse_record(self, record: dict, request: SearchRequest) -> Offer:
        if request.kind is SearchKind.FLIGHT:
            return self._parse_flight(record)
        return self._parse_hotel(record, request)

    def _parse_flight(self, offer: dict) -> Offer:
        price = Decimal(str(offer["price"]["grandTotal"]))
        currency = offer["price"]["currency"]

        itin = offer["itineraries"][0]
        raw_segments = itin["segments"]

        cabin = None
        amenities = set()
        traveler_pricings = offer.get("travelerPricings") or []
        if traveler_pricings:
            fare_details = traveler_pricings[0].get("fareDetailsBySegment") or []
            if fare_details:
                cabin = CABIN_MAP.get(fare_details[0].get("cabin", "ECONOMY"), "economy")
                bags = fare_details[0].get("includedCheckedBags") or {}
                if bags.get("quantity", 0) > 0 or bags.get("weight", 0) > 0:
                    amenities.add("checked_bag")

        itinerary_minutes = parse_iso_duration(itin.get("duration"))
        segments = []
        for s in raw_segments:
            # "at" is local to each airport
            minutes = parse_iso_duration(s.get("duration"))
            if not minutes and len(raw_segments) == 1:
                minutes = itinerary_minutes
            departs_at, arrives_at = anchor_leg(
                datetime.fromisoformat(s["departure"]["at"]),
                datetime.fromisoformat(s["arrival"]["at"]),
                s["departure"]["iataCode"],
                s["arrival"]["iataCode"],
                minutes,
            )
            segments.append(Segment(
                origin=s["departure"]["iataCode"],
                destination=s["arrival"]["iataCode"],
                departs_at=departs_at,
                arrives_at=arrives_at,
                operator=airline_name(s["carrierCode"]),
                flight_number=f"{s['carrierCode']}{s['number']}",
                cabin_class=cabin,
            ))

        seats = offer.get("numberOfBookableSeats")
        return Offer(
            id=f"{self.name}-{offer['id']}",
            provider=self.name,
            kind=SearchKind.FLIGHT,
            price=Money(amount=price, currency=currency),
            segments=segments,
            total_duration_minutes=itinerary_minutes,
            stops=len(segments) - 1,
            amenities=amenities,
            # Fewer bookable seats means the fare is less likely to hold
            confidence=0.8 if seats is None or seats > 3 else 0.6,
        )

    def _parse_hotel(self, record: dict, request: SearchRequest) -> Offer:
        hotel = record["hotel"]
        offers = record["offers"]
        if not offers:
            raise ValueError(f"hotel {hotel.get('hotelId')} has no offers")
        best = min(offers, key=lambda o: Decimal(str(o["price"]["total"])))

        check_in = date.fromisoformat(best.get("checkInDate") or request.start_date.isoformat())
        check_out = date.fromisoformat(best.get("checkOutDate") or request.end_date.isoformat())
        name = hotel["name"]
        rating = hotel.get("rating")

        amenities = set()
        board = (best.get("boardType") or "").upper()
        if board in ("BREAKFAST", "HALF_BOARD", "FULL_BOARD", "ALL_INCLUSIVE"):
            amenities.add("breakfast")
        if (best.get("policies") or {}).get("cancellations"):
            amenities.add("free_cancellation")

        stay = Segment(
            origin=hotel.get("cityCode") or request.location,
            destination=hotel.get("cityCode") or request.location,
            departs_at=datetime.combine(check_in, HOTEL_CHECK_IN),
            arrives_at=datetime.combine(check_out, HOTEL_CHECK_OUT),
            operator=hotel.get("chainCode") or name,
        )
        return Offer(
            id=f"{self.name}-{hotel['hotelId']}-{best['id']}",
            provider=self.name,
            kind=SearchKind.HOTEL,
            price=Money(amount=Decimal(str(best["price"]["total"])), currency=best["price"]["currency"]),
            segments=[stay],
            amenities=amenities,
            property_name=name,
            check_in=check_in,
            check_out=check_out,
            rooms=request.party.rooms,
            star_rating=float(rating) if rating else None,
            confidence=0.75,
        )
