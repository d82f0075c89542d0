from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tripsearch.data.currency import is_iso_currency
from tripsearch.errors import FailureKind
from tripsearch.schemas.search import SearchKind


def to_utc(ts: datetime) -> datetime:
    # Naive timestamps are treated as UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class Money(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(ge=0)
    currency: str

    @field_validator("currency", mode="after")
    @classmethod
    def _check_currency(cls, v: str) -> str:
        code = v.strip().upper()
        if not is_iso_currency(code):
            raise ValueError(f"{v!r} is not an ISO 4217 currency code")
        return code


class Segment(BaseModel):
    """One leg of travel; for hotels, the stay itself."""

    model_config = ConfigDict(frozen=True)

    origin: str
    destination: str
    departs_at: datetime
    arrives_at: datetime
    operator: str
    flight_number: str | None = None
    cabin_class: str | None = None

    @field_validator("departs_at", "arrives_at", mode="after")
    @classmethod
    def _anchor_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @model_validator(mode="after")
    def _check_order(self) -> "Segment":
        if self.arrives_at < self.departs_at:
            raise ValueError("segment arrives before it departs")
        return self

    @property
    def detail_count(self) -> int:
        return sum(1 for v in (self.flight_number, self.cabin_class) if v)


class Offer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    provider: str
    kind: SearchKind
    price: Money
    segments: list[Segment] = Field(min_length=1)
    total_duration_minutes: int = Field(default=0, ge=0)
    stops: int = Field(default=0, ge=0)
    amenities: frozenset[str] = frozenset()
    deep_link: str | None = None
    confidence: float = Field(default=0.5, ge=0, le=1)

    # Hotel details
    property_name: str | None = None
    check_in: date | None = None
    check_out: date | None = None
    rooms: int | None = None
    star_rating: float | None = None
    guest_rating: float | None = None  # 0-10

    synthetic: bool = False
    score: float | None = None

    @field_validator("amenities", mode="before")
    @classmethod
    def _normalize_amenities(cls, v):
        if v is None:
            return frozenset()
        return frozenset(str(a).strip().lower().replace(" ", "_") for a in v if str(a).strip())

    @model_validator(mode="after")
    def _check_contiguous(self) -> "Offer":
        for prev, seg in zip(self.segments, self.segments[1:]):
            if seg.departs_at < prev.arrives_at:
                raise ValueError("segments are not chronologically contiguous")
        return self

    @property
    def first_segment(self) -> Segment:
        return self.segments[0]

    @property
    def richness(self) -> int:
        """How many optional fields are populated; used to break merge ties."""
        optional = (
            self.deep_link, self.property_name, self.star_rating,
            self.guest_rating, self.rooms,
        )
        return (
            sum(1 for v in optional if v is not None)
            + len(self.amenities)
            + sum(seg.detail_count for seg in self.segments)
        )


class ProviderFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str
    status_code: int | None = None


class ProviderOutcome(BaseModel):
    provider: str
    offers: list[Offer] = []
    latency_ms: int = 0
    dropped_records: int = 0
    failure: ProviderFailure | None = None
    synthetic: bool = False

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def has_offers(self) -> bool:
        return self.ok and bool(self.offers)

    @classmethod
    def failed(
        cls,
        provider: str,
        kind: FailureKind,
        message: str,
        latency_ms: int = 0,
        status_code: int | None = None,
    ) -> "ProviderOutcome":
        return cls(
            provider=provider,
            latency_ms=latency_ms,
            failure=ProviderFailure(kind=kind, message=message, status_code=status_code),
        )
