"""Normalizer & deduplicator — turns provider outcomes into one clean offer list.

Steps per offer: convert to the request currency, anchor timestamps in UTC,
recompute duration and stops from segments, drop invariant violations. Then
collapse near-duplicates across providers and apply the caller's filters.
Every dropped offer is counted by reason.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Hashable, Iterable, Mapping

from unidecode import unidecode

from tripsearch.schemas.offer import Money, Offer, ProviderOutcome, to_utc
from tripsearch.schemas.search import SearchKind, SearchRequest
from tripsearch.services.currency_service import convert

logger = logging.getLogger(__name__)

# Drop reasons
MALFORMED_RECORD = "malformed_record"
CURRENCY_UNAVAILABLE = "currency_unavailable"
NON_POSITIVE_PRICE = "non_positive_price"
INVALID_SEGMENTS = "invalid_segments"
DUPLICATE = "duplicate"
FILTERED = "filtered"


@dataclass
class NormalizationReport:
    offers: list[Offer] = field(default_factory=list)
    dropped: Counter = field(default_factory=Counter)

    def drop(self, reason: str, count: int = 1) -> None:
        if count:
            self.dropped[reason] += count


def normalize_property_name(name: str | None) -> str:
    if not name:
        return ""
    text = unidecode(name).lower()
    text = re.sub(r"[^a-z0-9]+", " ", text)
    return " ".join(text.split())


def offer_rating(offer: Offer) -> float | None:
    """Guest rating on a 0-10 scale, falling back to stars x2."""
    if offer.guest_rating is not None:
        return offer.guest_rating
    if offer.star_rating is not None:
        return offer.star_rating * 2
    return None


def currencies_needed(outcomes: Iterable[ProviderOutcome], target: str) -> set[str]:
    """Source currencies that need a rate to reach ``target``."""
    return {
        offer.price.currency
        for outcome in outcomes
        if outcome.ok
        for offer in outcome.offers
        if offer.price.currency != target
    }


class Normalizer:
    def __init__(self, price_bucket: float = 0.0):
        self.price_bucket = price_bucket

    def merge(
        self,
        outcomes: list[ProviderOutcome],
        request: SearchRequest,
        rates: Mapping[str, Decimal | None],
        apply_filters: bool = True,
    ) -> NormalizationReport:
        """Merge successful outcomes into a de-duplicated, filtered offer list.

        ``rates`` maps source currency to the multiplier into the request
        currency; a missing or None rate drops the offer. With
        ``apply_filters=False`` the caller's filters are skipped.
        """
        report = NormalizationReport()
        merged: dict[Hashable, Offer] = {}

        for outcome in outcomes:
            report.drop(MALFORMED_RECORD, outcome.dropped_records)
            if not outcome.ok:
                continue
            for offer in outcome.offers:
                normalized = self._normalize(offer, request, rates, report)
                if normalized is None:
                    continue
                key = self.dedupe_key(normalized)
                existing = merged.get(key)
                if existing is None:
                    merged[key] = normalized
                else:
                    report.drop(DUPLICATE)
                    merged[key] = self.combine(existing, normalized)

        for offer in merged.values():
            if not apply_filters or self.passes_filters(offer, request):
                report.offers.append(offer)
            else:
                report.drop(FILTERED)

        if report.dropped:
            logger.info(f"Normalized {len(report.offers)} offers for {request.describe()}, dropped {dict(report.dropped)}")
        return report

    def _normalize(
        self,
        offer: Offer,
        request: SearchRequest,
        rates: Mapping[str, Decimal | None],
        report: NormalizationReport,
    ) -> Offer | None:
        # 1. Currency
        if offer.price.currency == request.currency:
            amount = offer.price.amount
        else:
            rate = rates.get(offer.price.currency)
            if rate is None:
                report.drop(CURRENCY_UNAVAILABLE)
                return None
            amount = convert(offer.price.amount, rate)

        if amount <= 0:
            report.drop(NON_POSITIVE_PRICE)
            return None

        # 2. Segments: UTC-anchored, non-empty, chronological
        if not offer.segments:
            report.drop(INVALID_SEGMENTS)
            return None
        segments = [
            seg.model_copy(update={"departs_at": to_utc(seg.departs_at), "arrives_at": to_utc(seg.arrives_at)})
            for seg in offer.segments
        ]
        if not self._chronological(segments):
            report.drop(INVALID_SEGMENTS)
            return None

        # 3. Duration and stops from the itinerary itself
        span = segments[-1].arrives_at - segments[0].departs_at
        return offer.model_copy(update={
            "price": Money(amount=amount, currency=request.currency),
            "segments": segments,
            "total_duration_minutes": int(span.total_seconds() // 60),
            "stops": max(offer.stops, len(segments) - 1) if offer.kind is SearchKind.FLIGHT else 0,
        })

    @staticmethod
    def _chronological(segments) -> bool:
        for seg in segments:
            if seg.arrives_at < seg.departs_at:
                return False
        for prev, seg in zip(segments, segments[1:]):
            if seg.departs_at < prev.arrives_at:
                return False
        return True

    def dedupe_key(self, offer: Offer) -> Hashable:
        if offer.kind is SearchKind.HOTEL:
            return (
                SearchKind.HOTEL,
                normalize_property_name(offer.property_name or offer.first_segment.operator),
                offer.check_in,
                offer.check_out,
                offer.rooms,
            )

        first, last = offer.segments[0], offer.segments[-1]
        bucket = None
        if self.price_bucket > 0:
            bucket = round(float(offer.price.amount) / self.price_bucket)
        departure: datetime = first.departs_at.replace(second=0, microsecond=0)
        return (
            SearchKind.FLIGHT,
            bucket,
            first.origin.upper(),
            last.destination.upper(),
            departure,
            first.operator.strip().lower(),
        )

    @staticmethod
    def combine(a: Offer, b: Offer) -> Offer:
        """Collapse two offers for the same trip.

        The lower price wins; on equal price the richer offer wins, and on a
        full tie the first one seen. The survivor gets the union of amenities
        and the more detailed segment data.
        """
        if b.price.amount < a.price.amount:
            winner, loser = b, a
        elif b.price.amount == a.price.amount and b.richness > a.richness:
            winner, loser = b, a
        else:
            winner, loser = a, b

        update = {"amenities": winner.amenities | loser.amenities}
        winner_detail = sum(seg.detail_count for seg in winner.segments)
        loser_detail = sum(seg.detail_count for seg in loser.segments)
        if loser_detail > winner_detail:
            update["segments"] = loser.segments
            update["total_duration_minutes"] = loser.total_duration_minutes
            update["stops"] = loser.stops
        for attr in ("star_rating", "guest_rating", "property_name"):
            if getattr(winner, attr) is None and getattr(loser, attr) is not None:
                update[attr] = getattr(loser, attr)

        logger.debug(f"Merged duplicate {loser.id} into {winner.id}")
        return winner.model_copy(update=update)

    @staticmethod
    def passes_filters(offer: Offer, request: SearchRequest) -> bool:
        filters = request.filters
        amount = offer.price.amount
        if filters.min_price is not None and amount < filters.min_price:
            return False
        if filters.max_price is not None and amount > filters.max_price:
            return False

        if offer.kind is SearchKind.FLIGHT:
            if filters.max_stops is not None and offer.stops > filters.max_stops:
                return False
            return True

        if filters.min_rating is not None:
            rating = offer_rating(offer)
            if rating is None or rating < filters.min_rating:
                return False
        if filters.amenities and not filters.amenities <= offer.amenities:
            return False
        return True
