from tripsearch.schemas.offer import Money, Offer, ProviderFailure, ProviderOutcome, Segment
from tripsearch.schemas.result import AttemptRecord, AttemptState, RankedResult, ResultMetadata
from tripsearch.schemas.search import Party, SearchFilters, SearchKind, SearchRequest

__all__ = [
    "AttemptRecord",
    "AttemptState",
    "Money",
    "Offer",
    "Party",
    "ProviderFailure",
    "ProviderOutcome",
    "RankedResult",
    "ResultMetadata",
    "SearchFilters",
    "SearchKind",
    "SearchRequest",
    "Segment",
]
