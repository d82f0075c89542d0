"""Fallback coordinator — runs an ordered list of adapters under one deadline.

Per adapter: PENDING → ATTEMPTING → SUCCEEDED | FAILED. If no real adapter
produced a usable offer the synthetic generator runs (SYNTHETIC), then the run is DONE.

Strategies:
- sequential: highest priority first, stop at the first adapter with usable offers
- fanout: everything at once, collect whatever finishes before the deadline

Adapters are never retried within one run; the next adapter is the retry.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from tripsearch.config import Settings, settings
from tripsearch.errors import FailureKind
from tripsearch.schemas.offer import ProviderOutcome
from tripsearch.schemas.result import AttemptRecord, AttemptState
from tripsearch.schemas.search import SearchRequest
from tripsearch.services import telemetry as events
from tripsearch.services.providers.base import ProviderAdapter
from tripsearch.services.providers.synthetic import SyntheticAdapter
from tripsearch.services.rate_limiter import FixedWindowRateLimiter
from tripsearch.services.telemetry import UsageTelemetry

logger = logging.getLogger(__name__)

AcceptOutcome = Callable[[ProviderOutcome], Awaitable[bool]]


@dataclass
class CoordinatorRun:
    strategy: str
    outcomes: list[ProviderOutcome] = field(default_factory=list)
    attempts: list[AttemptRecord] = field(default_factory=list)
    usable: list[str] = field(default_factory=list)
    synthetic: bool = False
    state: AttemptState = AttemptState.PENDING

    @property
    def has_offers(self) -> bool:
        return any(o.has_offers for o in self.outcomes)

    @property
    def consulted(self) -> list[str]:
        return [a.provider for a in self.attempts if a.state is not AttemptState.PENDING]


class FallbackCoordinator:
    def __init__(
        self,
        config: Settings = settings,
        telemetry: UsageTelemetry | None = None,
        provider_limiter: FixedWindowRateLimiter | None = None,
        synthetic_adapter: ProviderAdapter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.telemetry = telemetry or UsageTelemetry()
        self.provider_limiter = provider_limiter
        self.synthetic_adapter = synthetic_adapter or SyntheticAdapter(config)
        self._clock = clock

    def order(self, adapters: list[ProviderAdapter]) -> list[ProviderAdapter]:
        """Configured priority list first, then descending priority, then cheapest."""
        ranked = {name: i for i, name in enumerate(self.config.provider_priority)}
        return sorted(
            adapters,
            key=lambda a: (ranked.get(a.name, len(ranked)), -a.priority, a.cost_hint),
        )

    def eligible(self, adapters: list[ProviderAdapter], request: SearchRequest) -> list[ProviderAdapter]:
        usable = []
        for adapter in adapters:
            if adapter.synthetic or not adapter.supports(request.kind):
                continue
            if not adapter.is_configured:
                logger.debug(f"Skipping unconfigured adapter {adapter.name}")
                continue
            usable.append(adapter)
        return self.order(usable)

    async def run(
        self,
        adapters: list[ProviderAdapter],
        request: SearchRequest,
        deadline: float | None = None,
        accept: AcceptOutcome | None = None,
    ) -> CoordinatorRun:
        """Consult adapters until one yields usable offers or the deadline hits.

        ``accept`` decides whether a successful outcome is usable; by default
        any outcome with offers is.
        """
        if deadline is None:
            deadline = self._clock() + self.config.overall_timeout_ms / 1000

        ordered = self.eligible(adapters, request)
        run = CoordinatorRun(strategy=self.config.search_mode)
        run.attempts = [AttemptRecord(provider=a.name, state=AttemptState.PENDING) for a in ordered]

        if not ordered:
            logger.warning(f"No configured adapters for {request.kind.value} search")
        elif self.config.search_mode == "sequential":
            await self._run_sequential(ordered, request, deadline, run, accept)
        else:
            await self._run_fanout(ordered, request, deadline, run)
            for outcome in run.outcomes:
                if await self._usable(outcome, accept):
                    run.usable.append(outcome.provider)

        if not run.usable and self.config.synthetic_fallback_enabled:
            await self.synthesize(request, run)

        run.state = AttemptState.DONE
        return run

    async def _run_sequential(
        self, adapters: list[ProviderAdapter], request: SearchRequest, deadline: float, run: CoordinatorRun,
        accept: AcceptOutcome | None = None,
    ) -> None:
        for adapter, attempt in zip(adapters, run.attempts):
            attempt.state = AttemptState.ATTEMPTING
            outcome = await self._invoke(adapter, request, deadline)
            self._record(run, attempt, outcome)
            if await self._usable(outcome, accept):
                run.usable.append(adapter.name)
                break
            logger.info(f"{adapter.name} gave no usable offers, falling back to next adapter")

    async def _run_fanout(
        self, adapters: list[ProviderAdapter], request: SearchRequest, deadline: float, run: CoordinatorRun
    ) -> None:
        tasks: dict[asyncio.Task, int] = {}
        for i, adapter in enumerate(adapters):
            run.attempts[i].state = AttemptState.ATTEMPTING
            task = asyncio.create_task(self._invoke(adapter, request, deadline), name=f"provider:{adapter.name}")
            tasks[task] = i

        try:
            done, pending = await asyncio.wait(tasks, timeout=max(0.0, deadline - self._clock()))
        finally:
            # Also reached when this search is cancelled
            for task in tasks:
                if not task.done():
                    task.cancel()

        outcomes: dict[int, ProviderOutcome] = {}
        for task in done:
            outcomes[tasks[task]] = task.result()
        for task in pending:
            name = adapters[tasks[task]].name
            outcomes[tasks[task]] = ProviderOutcome.failed(
                name, FailureKind.TIMEOUT, "cancelled at overall deadline",
                latency_ms=self.config.overall_timeout_ms,
            )
            self._emit_end(outcomes[tasks[task]])
            logger.warning(f"{name} still running at the overall deadline, cancelled")

        # Keep adapter order so results do not depend on completion order
        for i in sorted(outcomes):
            self._record(run, run.attempts[i], outcomes[i])

    @staticmethod
    async def _usable(outcome: ProviderOutcome, accept: AcceptOutcome | None) -> bool:
        if not outcome.has_offers:
            return False
        return accept is None or await accept(outcome)

    async def _invoke(self, adapter: ProviderAdapter, request: SearchRequest, deadline: float) -> ProviderOutcome:
        remaining = deadline - self._clock()
        if remaining <= 0:
            outcome = ProviderOutcome.failed(adapter.name, FailureKind.TIMEOUT, "no time left in overall budget")
            self._emit_end(outcome)
            return outcome

        if self.provider_limiter is not None:
            decision = await self.provider_limiter.check(adapter.name)
            if not decision.allowed:
                logger.warning(f"{adapter.name} quota exhausted, retry in {decision.retry_after:.0f}s")
                outcome = ProviderOutcome.failed(
                    adapter.name, FailureKind.QUOTA_EXCEEDED,
                    f"provider quota of {decision.limit} exhausted",
                )
                self._emit_end(outcome)
                return outcome

        timeout = min(self.config.adapter_timeout_seconds(adapter.name), remaining)
        self.telemetry.record_event(events.PROVIDER_CALL_START, provider=adapter.name, kind=request.kind.value)
        start = time.monotonic()
        try:
            outcome = await asyncio.wait_for(adapter.search(request), timeout=timeout)
        except asyncio.TimeoutError:
            outcome = ProviderOutcome.failed(
                adapter.name, FailureKind.TIMEOUT, f"no response within {timeout:.2f}s",
                latency_ms=int((time.monotonic() - start) * 1000),
            )
            logger.warning(f"{adapter.name} timed out after {timeout:.2f}s")
        except Exception as e:
            # Adapters should not raise; treat a leak as an upstream failure
            logger.exception(f"{adapter.name} raised instead of returning a failure")
            outcome = ProviderOutcome.failed(
                adapter.name, FailureKind.UPSTREAM_ERROR, f"{type(e).__name__}: {e}",
                latency_ms=int((time.monotonic() - start) * 1000),
            )

        self._emit_end(outcome)
        return outcome

    async def synthesize(self, request: SearchRequest, run: CoordinatorRun) -> ProviderOutcome:
        """Generate placeholder offers and attach them to the run."""
        logger.warning(f"No real offers for {request.describe()}, using synthetic fallback")
        self.telemetry.record_event(events.SYNTHETIC_FALLBACK, kind=request.kind.value)

        attempt = AttemptRecord(provider=self.synthetic_adapter.name, state=AttemptState.ATTEMPTING)
        run.attempts.append(attempt)
        outcome = await self.synthetic_adapter.search(request)
        self._record(run, attempt, outcome)
        if outcome.ok:
            attempt.state = AttemptState.SYNTHETIC
        run.synthetic = True
        return outcome

    def _record(self, run: CoordinatorRun, attempt: AttemptRecord, outcome: ProviderOutcome) -> None:
        attempt.latency_ms = outcome.latency_ms
        attempt.offers = len(outcome.offers)
        attempt.dropped_records = outcome.dropped_records
        if outcome.ok:
            attempt.state = AttemptState.SUCCEEDED
        else:
            attempt.state = AttemptState.FAILED
            attempt.failure = outcome.failure.kind
            attempt.message = outcome.failure.message
        run.outcomes.append(outcome)

    def _emit_end(self, outcome: ProviderOutcome) -> None:
        self.telemetry.record_event(
            events.PROVIDER_CALL_END,
            provider=outcome.provider,
            latency_ms=outcome.latency_ms,
            offers=len(outcome.offers),
            dropped_records=outcome.dropped_records,
            failure=outcome.failure.kind.value if outcome.failure else None,
        )
