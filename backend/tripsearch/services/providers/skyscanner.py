"""Skyscanner adapter (RapidAPI) — primary flight aggregator."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from tripsearch.data.timezones import anchor_leg
from tripsearch.schemas.offer import Money, Offer, Segment
from tripsearch.schemas.search import SearchKind, SearchRequest
from tripsearch.services.providers.base import HttpProviderAdapter, expect_list

logger = logging.getLogger(__name__)


class SkyscannerAdapter(HttpProviderAdapter):
    name = "skyscanner"
    kinds = frozenset({SearchKind.FLIGHT})
    priority = 30
    quality_weight = 0.9
    cost_hint = 1.0

    @property
    def base_url(self) -> str:
        return f"https://{self.config.skyscanner_host}/api/v1"

    @property
    def is_configured(self) -> bool:
        return bool(self.config.rapidapi_key)

    def _default_headers(self) -> dict[str, str]:
        return {
            "X-RapidAPI-Key": self.config.rapidapi_key,
            "X-RapidAPI-Host": self.config.skyscanner_host,
        }

    async def _fetch(self, request: SearchRequest) -> list[Any]:
        params = {
            "fromId": request.origin,
            "toId": request.destination,
            "departDate": request.start_date.isoformat(),
            "adults": request.party.adults,
            "currency": request.currency,
            "locale": request.locale,
        }
        path = "/flights/search-one-way"
        if request.end_date is not None:
            params["returnDate"] = request.end_date.isoformat()
            path = "/flights/search-roundtrip"
        if request.party.children:
            params["children"] = request.party.children

        data = await self._get_json(path, params=params)
        return expect_list(data, "data", "itineraries")

    def _parse_record(self, record: dict, request: SearchRequest) -> Offer:
        leg = record["legs"][0]
        price = Decimal(str(record["price"]["raw"]))

        carriers = leg.get("carriers", {}).get("marketing", [])
        leg_operator = carriers[0]["name"] if carriers else "Unknown Airline"

        leg_minutes = int(leg.get("durationInMinutes") or 0)
        raw_segments = leg.get("segments") or []
        if raw_segments:
            segments = []
            for seg in raw_segments:
                origin, destination = seg["origin"]["displayCode"], seg["destination"]["displayCode"]
                minutes = int(seg.get("durationInMinutes") or 0)
                if not minutes and len(raw_segments) == 1:
                    minutes = leg_minutes
                departs_at, arrives_at = anchor_leg(
                    datetime.fromisoformat(seg["departure"]),
                    datetime.fromisoformat(seg["arrival"]),
                    origin, destination, minutes,
                )
                segments.append(Segment(
                    origin=origin,
                    destination=destination,
                    departs_at=departs_at,
                    arrives_at=arrives_at,
                    operator=seg.get("marketingCarrier", {}).get("name") or leg_operator,
                    flight_number=seg.get("flightNumber"),
                ))
        else:
            departs_at, arrives_at = anchor_leg(
                datetime.fromisoformat(leg["departure"]),
                datetime.fromisoformat(leg["arrival"]),
                leg["origin"]["id"], leg["destination"]["id"], leg_minutes,
            )
            segments = [
                Segment(
                    origin=leg["origin"]["id"],
                    destination=leg["destination"]["id"],
                    departs_at=departs_at,
                    arrives_at=arrives_at,
                    operator=leg_operator,
                )
            ]

        origin_id = leg["origin"]["id"]
        destination_id = leg["destination"]["id"]
        return Offer(
            id=f"{self.name}-{record['id']}",
            provider=self.name,
            kind=SearchKind.FLIGHT,
            price=Money(amount=price, currency=request.currency),
            segments=segments,
            total_duration_minutes=leg_minutes,
            stops=int(leg.get("stopCount") or len(segments) - 1),
            deep_link=f"https://www.skyscanner.com/transport/flights/{origin_id}/{destination_id}",
            confidence=0.85,
        )
