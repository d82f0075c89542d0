"""Search aggregation services.

Modules:
- fingerprint: Stable cache keys for search requests
- cache_service: Fingerprint to RankedResult store (memory or Redis)
- rate_limiter: Fixed-window per-caller admission control
- providers: Upstream adapters (Skyscanner, Amadeus, Booking, Google Flights, synthetic)
- coordinator: Sequential and fan-out provider orchestration with synthetic fallback
- normalizer: Currency conversion, validation and de-duplication of offers
- ranking: Weighted scoring and deterministic ordering
- search_engine: The public search entry point
"""
