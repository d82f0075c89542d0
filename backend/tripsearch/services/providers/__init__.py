from tripsearch.config import Settings, settings
from tripsearch.services.providers.amadeus import AmadeusAdapter
from tripsearch.services.providers.base import HttpProviderAdapter, ProviderAdapter
from tripsearch.services.providers.booking import BookingAdapter
from tripsearch.services.providers.google_flights import GoogleFlightsAdapter
from tripsearch.services.providers.skyscanner import SkyscannerAdapter
from tripsearch.services.providers.synthetic import SyntheticAdapter

__all__ = [
    "AmadeusAdapter",
    "BookingAdapter",
    "GoogleFlightsAdapter",
    "HttpProviderAdapter",
    "ProviderAdapter",
    "SkyscannerAdapter",
    "SyntheticAdapter",
    "build_adapters",
]


def build_adapters(config: Settings = settings) -> list[ProviderAdapter]:
    """All real upstream adapters; unconfigured ones are filtered out by the engine."""
    return [
        SkyscannerAdapter(config),
        BookingAdapter(config),
        AmadeusAdapter(config),
        GoogleFlightsAdapter(config),
    ]
