from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tripsearch.data.currency import is_iso_currency
from tripsearch.data.locations import normalize_place, resolve_location_code

MAX_FLIGHT_ADULTS = 9
MAX_HOTEL_NIGHTS = 30
MAX_ROOMS = 10
MAX_GUESTS_PER_ROOM = 10


class SearchKind(str, Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"


class Party(BaseModel):
    model_config = ConfigDict(frozen=True)

    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    rooms: int = Field(default=1, ge=1)

    @property
    def travellers(self) -> int:
        return self.adults + self.children


class SearchFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_price: Decimal | None = Field(default=None, ge=0)
    max_price: Decimal | None = Field(default=None, ge=0)
    min_rating: float | None = Field(default=None, ge=0, le=10)
    max_stops: int | None = Field(default=None, ge=0)
    amenities: frozenset[str] = frozenset()

    @field_validator("amenities", mode="before")
    @classmethod
    def _normalize_amenities(cls, v):
        if v is None:
            return frozenset()
        return frozenset(str(a).strip().lower().replace(" ", "_") for a in v if str(a).strip())

    @model_validator(mode="after")
    def _check_price_range(self) -> "SearchFilters":
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must not exceed max_price")
        return self


class SearchRequest(BaseModel):
    """Canonical search query for flights or hotels.

    Flights use origin/destination with start_date as departure and an
    optional end_date as return. Hotels use location with start_date and
    end_date as check-in and check-out.
    """

    model_config = ConfigDict(frozen=True)

    kind: SearchKind
    origin: str | None = None
    destination: str | None = None
    location: str | None = None
    start_date: date
    end_date: date | None = None
    party: Party = Party()
    currency: str = "USD"
    locale: str = "en-US"
    filters: SearchFilters = SearchFilters()

    @field_validator("origin", "destination", mode="after")
    @classmethod
    def _resolve_codes(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not v.strip():
            raise ValueError("must not be blank")
        return resolve_location_code(v)

    @field_validator("location", mode="after")
    @classmethod
    def _normalize_location(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not v.strip():
            raise ValueError("must not be blank")
        return normalize_place(v)

    @field_validator("currency", mode="after")
    @classmethod
    def _check_currency(cls, v: str) -> str:
        code = v.strip().upper()
        if not is_iso_currency(code):
            raise ValueError(f"{v!r} is not an ISO 4217 currency code")
        return code

    @field_validator("party", "filters", mode="before")
    @classmethod
    def _default_when_none(cls, v, info):
        if v is None:
            return Party() if info.field_name == "party" else SearchFilters()
        return v

    @model_validator(mode="after")
    def _check_shape(self) -> "SearchRequest":
        if self.kind is SearchKind.FLIGHT:
            self._check_flight()
        else:
            self._check_hotel()
        return self

    def _check_flight(self) -> None:
        if not self.origin or not self.destination:
            raise ValueError("flight searches need origin and destination")
        if self.origin == self.destination:
            raise ValueError("origin and destination must differ")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("return date must not be before departure date")
        if self.party.adults > MAX_FLIGHT_ADULTS:
            raise ValueError(f"at most {MAX_FLIGHT_ADULTS} adults per flight search")

    def _check_hotel(self) -> None:
        if not self.location:
            raise ValueError("hotel searches need a location")
        if self.end_date is None or self.end_date <= self.start_date:
            raise ValueError("check-out date must be after check-in date")
        if (self.end_date - self.start_date).days > MAX_HOTEL_NIGHTS:
            raise ValueError(f"maximum stay is {MAX_HOTEL_NIGHTS} nights")
        if self.party.rooms > MAX_ROOMS:
            raise ValueError(f"at most {MAX_ROOMS} rooms")
        if self.party.rooms > self.party.adults:
            raise ValueError("each room needs at least one adult")
        if self.party.travellers > self.party.rooms * MAX_GUESTS_PER_ROOM:
            raise ValueError(f"at most {MAX_GUESTS_PER_ROOM} guests per room")

    @property
    def nights(self) -> int:
        if self.end_date is None:
            return 0
        return (self.end_date - self.start_date).days

    def describe(self) -> str:
        if self.kind is SearchKind.FLIGHT:
            return f"{self.origin}->{self.destination} {self.start_date}"
        return f"{self.location} {self.start_date}..{self.end_date}"
