"""Search engine — the public entry point tying the pipeline together.

cache → rate limit → coordinator → normalize → rank → cache write.

Only SearchValidationError and RateLimitError escape ``search``; every
provider problem ends up in the result metadata instead.
"""

import logging
import time
from decimal import Decimal
from typing import Any, Mapping

from pydantic import ValidationError

from tripsearch.config import Settings, settings
from tripsearch.errors import CurrencyRateUnavailable, RateLimitError, SearchValidationError
from tripsearch.schemas.offer import ProviderOutcome
from tripsearch.schemas.result import RankedResult, ResultMetadata
from tripsearch.schemas.search import SearchRequest
from tripsearch.services import telemetry as events
from tripsearch.services.cache_service import SearchCache, build_cache
from tripsearch.services.coordinator import CoordinatorRun, FallbackCoordinator
from tripsearch.services.currency_service import RateSource, build_rate_source
from tripsearch.services.fingerprint import fingerprint
from tripsearch.services.normalizer import Normalizer, currencies_needed
from tripsearch.services.providers import ProviderAdapter, build_adapters
from tripsearch.services.ranking import RankingContext, rank
from tripsearch.services.rate_limiter import (
    FixedWindowRateLimiter,
    build_caller_limiter,
    build_provider_limiter,
)
from tripsearch.services.telemetry import UsageTelemetry

logger = logging.getLogger(__name__)


def _validation_errors(exc: ValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]


class SearchEngine:
    def __init__(
        self,
        config: Settings = settings,
        adapters: list[ProviderAdapter] | None = None,
        cache: SearchCache | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
        rate_source: RateSource | None = None,
        telemetry: UsageTelemetry | None = None,
        coordinator: FallbackCoordinator | None = None,
    ):
        self.config = config
        self.adapters = adapters if adapters is not None else build_adapters(config)
        self.cache = cache or build_cache(config)
        self.rate_limiter = rate_limiter or build_caller_limiter(config)
        self.rate_source = rate_source or build_rate_source(config)
        self.telemetry = telemetry or UsageTelemetry()
        self.coordinator = coordinator or FallbackCoordinator(
            config,
            telemetry=self.telemetry,
            provider_limiter=build_provider_limiter(config),
        )
        self.normalizer = Normalizer(price_bucket=config.dedupe_price_bucket)

    @staticmethod
    def validate(request: SearchRequest | Mapping[str, Any]) -> SearchRequest:
        if isinstance(request, SearchRequest):
            return request
        try:
            return SearchRequest.model_validate(request)
        except ValidationError as e:
            errors = _validation_errors(e)
            summary = "; ".join(f"{'.'.join(err['loc']) or 'request'}: {err['msg']}" for err in errors)
            raise SearchValidationError(f"Invalid search request: {summary}", errors) from None

    async def search(self, caller_id: str, request: SearchRequest | Mapping[str, Any]) -> RankedResult:
        start = time.monotonic()

        # 1. Validate before any I/O
        if not caller_id or not caller_id.strip():
            raise SearchValidationError("caller id is required")
        request = self.validate(request)
        fp = fingerprint(request)

        # 2. Cache
        cached = await self.cache.get(fp)
        if cached is not None:
            self.telemetry.record_event(events.CACHE_HIT, fingerprint=fp, kind=request.kind.value)
            logger.info(f"Cache hit for {request.describe()} ({fp})")
            return cached
        self.telemetry.record_event(events.CACHE_MISS, fingerprint=fp, kind=request.kind.value)

        # 3. Caller rate limit
        decision = await self.rate_limiter.check(caller_id)
        if not decision.allowed:
            self.telemetry.record_event(
                events.RATE_LIMIT_REJECTED, caller_id=caller_id, retry_after=decision.retry_after
            )
            logger.info(f"Rate limited caller {caller_id}, retry in {decision.retry_after:.0f}s")
            raise RateLimitError(caller_id, decision.retry_after, decision.limit)

        # 4. Providers; an adapter counts only if some offer survives normalization
        rates: dict[str, Decimal | None] = {}

        async def usable(outcome: ProviderOutcome) -> bool:
            await self._resolve_rates([outcome], request, rates)
            return bool(self.normalizer.merge([outcome], request, rates, apply_filters=False).offers)

        run = await self.coordinator.run(self.adapters, request, accept=usable)

        # 5. Normalize
        await self._resolve_rates(run.outcomes, request, rates)
        report = self.normalizer.merge(run.outcomes, request, rates)
        if run.synthetic and not report.offers:
            # Placeholders are returned even when none match the filters
            logger.info(f"No synthetic offer matches the filters for {request.describe()}, returning them unfiltered")
            report = self.normalizer.merge(run.outcomes, request, rates, apply_filters=False)

        # 6. Rank
        ctx = RankingContext.build(
            report.offers,
            self.config.ranking_weights_for(request.kind.value),
            provider_quality=self._provider_quality(),
            requested_amenities=request.filters.amenities,
        )
        offers = rank(report.offers, ctx, epsilon=self.config.tie_epsilon)

        result = RankedResult(
            offers=offers,
            metadata=self._metadata(fp, request, run, dict(report.dropped), offers, start),
        )

        # 7. Cache write (degraded results are never cached)
        if not result.metadata.synthetic:
            await self.cache.put(fp, result, self.config.cache_ttl_for(request.kind.value))

        self.telemetry.record_event(
            events.SEARCH_COMPLETED,
            kind=request.kind.value,
            results=len(offers),
            synthetic=result.metadata.synthetic,
            latency_ms=result.metadata.total_latency_ms,
        )
        logger.info(
            f"Search {request.describe()}: {len(offers)} offers from "
            f"{result.metadata.providers_succeeded} in {result.metadata.total_latency_ms}ms"
        )
        return result

    async def _resolve_rates(
        self,
        outcomes: list[ProviderOutcome],
        request: SearchRequest,
        rates: dict[str, Decimal | None],
    ) -> dict[str, Decimal | None]:
        """Fill ``rates`` with every missing source currency; None marks a failed lookup."""
        for currency in sorted(currencies_needed(outcomes, request.currency) - rates.keys()):
            try:
                rates[currency] = await self.rate_source.get_rate(currency, request.currency)
            except CurrencyRateUnavailable as e:
                logger.warning(f"Dropping {currency} offers: {e}")
                rates[currency] = None
        return rates

    def _provider_quality(self) -> dict[str, float]:
        quality = {a.name: a.quality_weight for a in self.adapters}
        synthetic = self.coordinator.synthetic_adapter
        quality[synthetic.name] = synthetic.quality_weight
        return quality

    def _metadata(
        self,
        fp: str,
        request: SearchRequest,
        run: CoordinatorRun,
        dropped: dict[str, int],
        offers: list,
        start: float,
    ) -> ResultMetadata:
        succeeded = [o.provider for o in run.outcomes if o.ok]
        failed = {o.provider: o.failure.kind for o in run.outcomes if not o.ok}
        return ResultMetadata(
            fingerprint=fp,
            strategy=run.strategy,
            providers_consulted=run.consulted,
            providers_succeeded=succeeded,
            providers_failed=failed,
            attempts=run.attempts,
            dropped=dropped,
            total_results=len(offers),
            total_latency_ms=int((time.monotonic() - start) * 1000),
            currency=request.currency,
            synthetic=run.synthetic or any(o.synthetic for o in offers),
        )

    def usage(self) -> dict[str, Any]:
        return self.telemetry.stats.snapshot()

    async def close(self):
        for adapter in self.adapters:
            await adapter.close()
        await self.coordinator.synthetic_adapter.close()
        await self.cache.close()
        await self.rate_limiter.close()
        if self.coordinator.provider_limiter is not None:
            await self.coordinator.provider_limiter.close()
        close = getattr(self.rate_source, "close", None)
        if close is not None:
            await close()


_engine: SearchEngine | None = None


def get_search_engine() -> SearchEngine:
    """Process-wide engine built from settings on first use."""
    global _engine
    if _engine is None:
        _engine = SearchEngine(settings)
    return _engine


async def shutdown_search_engine() -> None:
    global _engine
    if _engine is not None:
        await _engine.close()
        _engine = None
