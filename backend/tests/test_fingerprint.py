"""Cache fingerprints must ignore everything that does not change prices."""

from datetime import date

from helpers import flight_request, hotel_request
from tripsearch.schemas.search import SearchRequest
from tripsearch.services.fingerprint import fingerprint


def test_field_order_and_case_do_not_matter():
    a = SearchRequest.model_validate({
        "kind": "flight", "origin": "nyc", "destination": "LON",
        "start_date": "2024-06-01", "end_date": "2024-06-08",
        "party": {"adults": 1}, "currency": "usd",
    })
    b = SearchRequest.model_validate({
        "currency": "USD", "party": {"children": 0, "adults": 1},
        "end_date": date(2024, 6, 8), "start_date": date(2024, 6, 1),
        "destination": "lon", "origin": "NYC", "kind": "flight",
    })

    assert fingerprint(a) == fingerprint(b)


def test_defaults_match_omitted_fields():
    explicit = flight_request(filters={"amenities": []}, party={"adults": 1, "children": 0, "rooms": 1})
    implicit = flight_request()

    assert fingerprint(explicit) == fingerprint(implicit)


def test_locale_is_ignored():
    assert fingerprint(flight_request(locale="en-GB")) == fingerprint(flight_request(locale="fr-FR"))


def test_amenity_order_is_ignored():
    a = hotel_request(filters={"amenities": ["pool", "wifi"]})
    b = hotel_request(filters={"amenities": ["WiFi", "Pool"]})

    assert fingerprint(a) == fingerprint(b)


def test_pricing_fields_change_the_fingerprint():
    base = fingerprint(flight_request())

    assert fingerprint(flight_request(currency="EUR")) != base
    assert fingerprint(flight_request(party={"adults": 2})) != base
    assert fingerprint(flight_request(end_date=date(2024, 6, 9))) != base
    assert fingerprint(flight_request(destination="PAR")) != base


def test_fingerprint_carries_kind_prefix():
    assert fingerprint(flight_request()).startswith("flight:")
    assert fingerprint(hotel_request()).startswith("hotel:")
