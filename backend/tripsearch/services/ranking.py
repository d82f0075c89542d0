"""Ranking engine — scores offers with configurable weights per product surface."""

from dataclasses import dataclass, field
from decimal import Decimal

from tripsearch.config import RankingWeights
from tripsearch.schemas.offer import Offer
from tripsearch.schemas.search import SearchKind
from tripsearch.services.normalizer import offer_rating

DEFAULT_PROVIDER_QUALITY = 0.5


@dataclass(frozen=True)
class RankingContext:
    """Per-result-set facts needed to score one offer."""
    weights: RankingWeights
    min_price: Decimal
    max_price: Decimal
    min_duration: int
    max_duration: int
    max_stops: int
    provider_quality: dict[str, float] = field(default_factory=dict)
    requested_amenities: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        offers: list[Offer],
        weights: RankingWeights,
        provider_quality: dict[str, float] | None = None,
        requested_amenities: frozenset[str] = frozenset(),
    ) -> "RankingContext":
        prices = [o.price.amount for o in offers] or [Decimal(0)]
        durations = [o.total_duration_minutes for o in offers] or [0]
        return cls(
            weights=weights,
            min_price=min(prices),
            max_price=max(prices),
            min_duration=min(durations),
            max_duration=max(durations),
            max_stops=max((o.stops for o in offers), default=0),
            provider_quality=provider_quality or {},
            requested_amenities=requested_amenities,
        )


def _inverted(value: float, low: float, high: float) -> float:
    """1.0 at the low end, 0.0 at the high end; 1.0 when there is no spread."""
    if high <= low:
        return 1.0
    return 1.0 - (value - low) / (high - low)


def price_score(offer: Offer, ctx: RankingContext) -> float:
    return _inverted(float(offer.price.amount), float(ctx.min_price), float(ctx.max_price))


def convenience_score(offer: Offer, ctx: RankingContext) -> float:
    if offer.kind is SearchKind.HOTEL:
        rating = offer_rating(offer)
        return rating / 10 if rating is not None else 0.5

    time_score = _inverted(offer.total_duration_minutes, ctx.min_duration, ctx.max_duration)
    stops_score = 1.0 - offer.stops / ctx.max_stops if ctx.max_stops > 0 else 1.0
    return (time_score + stops_score) / 2


def quality_score(offer: Offer, ctx: RankingContext) -> float:
    return ctx.provider_quality.get(offer.provider, DEFAULT_PROVIDER_QUALITY) * offer.confidence


def amenity_score(offer: Offer, ctx: RankingContext) -> float:
    if not ctx.requested_amenities:
        return 0.0
    return len(ctx.requested_amenities & offer.amenities) / len(ctx.requested_amenities)


def score(offer: Offer, ctx: RankingContext) -> float:
    """Composite score scaled to 0-100, higher is better."""
    w = ctx.weights
    composite = (
        w.price * price_score(offer, ctx)
        + w.convenience * convenience_score(offer, ctx)
        + w.provider_quality * quality_score(offer, ctx)
        + w.amenity_match * amenity_score(offer, ctx)
    )
    return composite * 100


def rank(offers: list[Offer], ctx: RankingContext, epsilon: float = 1e-6) -> list[Offer]:
    """Return scored copies, best first.

    Scores are bucketed to multiples of ``epsilon``; offers in the same bucket
    are ordered by lower price, then provider name, then offer id.
    """
    scored = [o.model_copy(update={"score": score(o, ctx)}) for o in offers]

    def sort_key(offer: Offer) -> tuple:
        bucket = round(offer.score / epsilon) if epsilon > 0 else offer.score
        return (-bucket, offer.price.amount, offer.provider, offer.id)

    return sorted(scored, key=sort_key)
