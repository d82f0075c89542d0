"""Usage telemetry — fire-and-forget events for provider calls, cache and rate limits."""

import logging
import threading
from collections import defaultdict
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# Event names
PROVIDER_CALL_START = "provider.call.start"
PROVIDER_CALL_END = "provider.call.end"
CACHE_HIT = "search.cache.hit"
CACHE_MISS = "search.cache.miss"
RATE_LIMIT_REJECTED = "search.rate_limit.rejected"
SYNTHETIC_FALLBACK = "search.synthetic_fallback"
SEARCH_COMPLETED = "search.completed"


class TelemetrySink(Protocol):
    def record_event(self, name: str, attributes: dict[str, Any]) -> None: ...


class LoggingSink:
    """Writes every event to the log at debug level."""

    def record_event(self, name: str, attributes: dict[str, Any]) -> None:
        logger.debug(f"{name} {attributes}")


class UsageStatsSink:
    """In-process usage counters per provider, plus cache and rate-limit totals."""

    def __init__(self):
        self._lock = threading.Lock()
        self._providers: dict[str, dict[str, Any]] = defaultdict(self._empty_provider)
        self._counters: dict[str, int] = defaultdict(int)

    @staticmethod
    def _empty_provider() -> dict[str, Any]:
        return {
            "calls": 0,
            "successes": 0,
            "failures": defaultdict(int),
            "offers": 0,
            "dropped_records": 0,
            "total_latency_ms": 0,
        }

    def record_event(self, name: str, attributes: dict[str, Any]) -> None:
        with self._lock:
            if name == PROVIDER_CALL_END:
                stats = self._providers[attributes["provider"]]
                stats["calls"] += 1
                stats["total_latency_ms"] += attributes.get("latency_ms", 0)
                stats["offers"] += attributes.get("offers", 0)
                stats["dropped_records"] += attributes.get("dropped_records", 0)
                failure = attributes.get("failure")
                if failure:
                    stats["failures"][failure] += 1
                else:
                    stats["successes"] += 1
            elif name != PROVIDER_CALL_START:
                self._counters[name] += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            providers = {}
            for provider, stats in self._providers.items():
                calls = stats["calls"]
                providers[provider] = {
                    "calls": calls,
                    "successes": stats["successes"],
                    "failures": dict(stats["failures"]),
                    "offers": stats["offers"],
                    "dropped_records": stats["dropped_records"],
                    "avg_latency_ms": round(stats["total_latency_ms"] / calls, 1) if calls else 0.0,
                    "success_rate": round(stats["successes"] / calls, 3) if calls else 0.0,
                }
            return {"providers": providers, "events": dict(self._counters)}

    def reset(self) -> None:
        with self._lock:
            self._providers.clear()
            self._counters.clear()


class UsageTelemetry:
    """Fans events out to sinks. A failing sink never affects the search path."""

    def __init__(self, sinks: list[TelemetrySink] | None = None):
        self.stats = UsageStatsSink()
        self._sinks: list[TelemetrySink] = [LoggingSink(), self.stats]
        if sinks:
            self._sinks.extend(sinks)

    def record_event(self, name: str, **attributes: Any) -> None:
        for sink in self._sinks:
            try:
                sink.record_event(name, attributes)
            except Exception as e:
                logger.warning(f"Telemetry sink {type(sink).__name__} failed on {name}: {e}")
