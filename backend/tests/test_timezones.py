"""Airport zone lookups and leg anchoring."""

from datetime import datetime, timedelta, timezone

from tripsearch.data.timezones import airport_timezone, anchor_leg, localize


def test_known_airports_resolve_to_their_zone():
    assert airport_timezone("LHR").key == "Europe/London"
    assert airport_timezone("nrt").key == "Asia/Tokyo"
    assert airport_timezone("ZZZ") is None
    assert airport_timezone(None) is None


def test_aware_times_are_left_alone():
    ts = datetime(2024, 6, 1, 9, tzinfo=timezone.utc)

    assert localize(ts, "JFK") is ts


def test_leg_between_known_airports_uses_local_clocks():
    departs, arrives = anchor_leg(datetime(2024, 6, 1, 10), datetime(2024, 6, 1, 13), "LHR", "JFK")

    assert arrives - departs == timedelta(hours=8)


def test_unknown_airport_falls_back_to_reported_duration():
    departs, arrives = anchor_leg(datetime(2024, 6, 1, 21), datetime(2024, 6, 1, 9, 10), "NRT", "ZZZ", 430)

    assert departs.utcoffset() == timedelta(hours=9)
    assert arrives - departs == timedelta(minutes=430)


def test_no_zone_and_no_duration_keeps_provider_times():
    raw = (datetime(2024, 6, 1, 9), datetime(2024, 6, 1, 16))

    assert anchor_leg(*raw, "ZZZ", "YYY") == raw
