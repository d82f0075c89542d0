from dataclasses import dataclass
from typing import Any, Literal, Mapping

from pydantic import model_validator
from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class RankingWeights:
    """Relative weight of each sub-score. Scale 0-1, need not sum to 1."""
    price: float = 0.5
    convenience: float = 0.3
    provider_quality: float = 0.15
    amenity_match: float = 0.05


# camelCase option names accepted by Settings.from_options
_OPTION_ALIASES = {
    "mode": "search_mode",
    "overallTimeoutMs": "overall_timeout_ms",
    "perAdapterTimeoutMs": "per_adapter_timeout_ms",
    "cacheTTLSeconds": "cache_ttl_seconds",
    "rateLimitWindowMs": "rate_limit_window_ms",
    "rateLimitMaxRequests": "rate_limit_max_requests",
}

_WEIGHT_ALIASES = {
    "price": "price",
    "convenience": "convenience",
    "providerQuality": "provider_quality",
    "amenityMatch": "amenity_match",
}


class Settings(BaseSettings):
    # Coordinator
    search_mode: Literal["sequential", "fanout"] = "fanout"
    overall_timeout_ms: int = 12_000
    per_adapter_timeout_ms: int = 8_000
    adapter_timeouts_ms: dict[str, int] = {}
    provider_priority: list[str] = []
    synthetic_fallback_enabled: bool = True

    # Per-provider quota (0 disables)
    provider_rate_limit_window_ms: int = 60_000
    provider_rate_limit_max_requests: int = 0

    # Cache
    cache_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl_seconds: int | None = None
    flight_cache_ttl_seconds: int = 15 * 60
    hotel_cache_ttl_seconds: int = 30 * 60

    # Caller rate limit
    rate_limit_backend: Literal["memory", "redis"] = "memory"
    rate_limit_window_ms: int = 15 * 60 * 1000
    rate_limit_max_requests: int = 15

    # Ranking
    flight_ranking_weights: RankingWeights = RankingWeights()
    hotel_ranking_weights: RankingWeights = RankingWeights(
        price=0.4, convenience=0.35, provider_quality=0.15, amenity_match=0.1
    )
    tie_epsilon: float = 1e-6

    # Normalizer
    dedupe_price_bucket: float = 0.0  # 0 leaves price out of the flight dedupe key

    # Currency
    fx_source: Literal["static", "http"] = "static"
    fx_base_url: str = "https://api.frankfurter.app"
    fx_cache_ttl_seconds: int = 6 * 60 * 60

    # Skyscanner and Booking.com (RapidAPI)
    rapidapi_key: str = ""
    skyscanner_host: str = "skyscanner80.p.rapidapi.com"
    booking_host: str = "booking-com.p.rapidapi.com"

    # Amadeus
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"

    # Google Flights scraping
    google_flights_enabled: bool = False

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_timeouts(self) -> "Settings":
        if self.per_adapter_timeout_ms >= self.overall_timeout_ms:
            raise ValueError("per_adapter_timeout_ms must be less than overall_timeout_ms")
        for name, timeout_ms in self.adapter_timeouts_ms.items():
            if timeout_ms >= self.overall_timeout_ms:
                raise ValueError(f"timeout for adapter {name!r} must be less than overall_timeout_ms")
        return self

    @classmethod
    def from_options(cls, options: Mapping[str, Any], **overrides: Any) -> "Settings":
        """Build settings from the camelCase option set used by callers."""
        values: dict[str, Any] = {}
        for key, value in options.items():
            if key == "rankingWeights":
                weights = RankingWeights(
                    **{_WEIGHT_ALIASES[k]: float(v) for k, v in value.items() if k in _WEIGHT_ALIASES}
                )
                values["flight_ranking_weights"] = weights
                values["hotel_ranking_weights"] = weights
            elif key in _OPTION_ALIASES:
                values[_OPTION_ALIASES[key]] = value
        values.update(overrides)
        return cls(**values)

    def adapter_timeout_seconds(self, name: str) -> float:
        return self.adapter_timeouts_ms.get(name, self.per_adapter_timeout_ms) / 1000

    def cache_ttl_for(self, kind: str) -> int:
        if self.cache_ttl_seconds is not None:
            return self.cache_ttl_seconds
        return self.flight_cache_ttl_seconds if kind == "flight" else self.hotel_cache_ttl_seconds

    def ranking_weights_for(self, kind: str) -> RankingWeights:
        return self.flight_ranking_weights if kind == "flight" else self.hotel_ranking_weights


settings = Settings()
