"""Stable fingerprints for search requests, used as cache keys."""

import hashlib
import json

from tripsearch.schemas.search import SearchRequest


def fingerprint_payload(request: SearchRequest) -> dict:
    """Pricing-relevant fields of a request in canonical form.

    Locale and anything caller-specific are left out. Codes are already
    upper-cased and places normalized by the request validators.
    """
    filters = request.filters
    return {
        "kind": request.kind.value,
        "origin": request.origin,
        "destination": request.destination,
        "location": request.location,
        "start_date": request.start_date.isoformat(),
        "end_date": request.end_date.isoformat() if request.end_date else None,
        "party": [request.party.adults, request.party.children, request.party.rooms],
        "currency": request.currency,
        "filters": {
            "min_price": str(filters.min_price.normalize()) if filters.min_price is not None else None,
            "max_price": str(filters.max_price.normalize()) if filters.max_price is not None else None,
            "min_rating": filters.min_rating,
            "max_stops": filters.max_stops,
            "amenities": sorted(filters.amenities),
        },
    }


def fingerprint(request: SearchRequest) -> str:
    payload = json.dumps(fingerprint_payload(request), sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(payload.encode()).hexdigest()
    return f"{request.kind.value}:{digest[:32]}"
