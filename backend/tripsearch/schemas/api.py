"""Request bodies for the HTTP search endpoints."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from tripsearch.schemas.search import SearchKind


class FiltersBody(BaseModel):
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    min_rating: float | None = None
    max_stops: int | None = None
    amenities: list[str] = []


class FlightSearchBody(BaseModel):
    origin: str
    destination: str
    departure_date: date
    return_date: date | None = None
    adults: int = 1
    children: int = 0
    currency: str = "USD"
    locale: str = "en-US"
    filters: FiltersBody | None = None

    def to_request(self) -> dict:
        return {
            "kind": SearchKind.FLIGHT,
            "origin": self.origin,
            "destination": self.destination,
            "start_date": self.departure_date,
            "end_date": self.return_date,
            "party": {"adults": self.adults, "children": self.children},
            "currency": self.currency,
            "locale": self.locale,
            "filters": self.filters.model_dump() if self.filters else None,
        }


class HotelSearchBody(BaseModel):
    location: str
    check_in: date
    check_out: date
    adults: int = 1
    children: int = 0
    rooms: int = 1
    currency: str = "USD"
    locale: str = "en-US"
    filters: FiltersBody | None = None

    def to_request(self) -> dict:
        return {
            "kind": SearchKind.HOTEL,
            "location": self.location,
            "start_date": self.check_in,
            "end_date": self.check_out,
            "party": {"adults": self.adults, "children": self.children, "rooms": self.rooms},
            "currency": self.currency,
            "locale": self.locale,
            "filters": self.filters.model_dump() if self.filters else None,
        }
