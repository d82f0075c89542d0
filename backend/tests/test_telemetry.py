from tripsearch.services import telemetry as events
from tripsearch.services.telemetry import UsageTelemetry


class BrokenSink:
    def record_event(self, name, attributes):
        raise RuntimeError("collector down")


class ListSink:
    def __init__(self):
        self.events = []

    def record_event(self, name, attributes):
        self.events.append((name, attributes))


def test_failing_sink_does_not_stop_other_sinks():
    recorded = ListSink()
    telemetry = UsageTelemetry(sinks=[BrokenSink(), recorded])

    telemetry.record_event(events.CACHE_HIT, fingerprint="flight:abc")

    assert recorded.events == [(events.CACHE_HIT, {"fingerprint": "flight:abc"})]
    assert telemetry.stats.snapshot()["events"] == {events.CACHE_HIT: 1}


def test_provider_stats_aggregate_calls():
    telemetry = UsageTelemetry()

    telemetry.record_event(events.PROVIDER_CALL_START, provider="amadeus")
    telemetry.record_event(events.PROVIDER_CALL_END, provider="amadeus", latency_ms=100, offers=3, failure=None)
    telemetry.record_event(events.PROVIDER_CALL_END, provider="amadeus", latency_ms=300, offers=0,
                           failure="timeout")

    stats = telemetry.stats.snapshot()["providers"]["amadeus"]
    assert stats["calls"] == 2
    assert stats["successes"] == 1
    assert stats["failures"] == {"timeout": 1}
    assert stats["offers"] == 3
    assert stats["avg_latency_ms"] == 200.0
    assert stats["success_rate"] == 0.5


def test_reset_clears_counters():
    telemetry = UsageTelemetry()
    telemetry.record_event(events.SEARCH_COMPLETED, kind="flight")

    telemetry.stats.reset()

    assert telemetry.stats.snapshot() == {"providers": {}, "events": {}}
