"""Validation of canonical search requests."""

from datetime import date

import pytest
from pydantic import ValidationError

from helpers import flight_request, hotel_request
from tripsearch.schemas.search import SearchFilters


def test_city_names_resolve_to_codes():
    """Free-text cities become IATA city codes; codes are upper-cased."""

    request = flight_request(origin=" New York ", destination="lhr")

    assert request.origin == "NYC"
    assert request.destination == "LHR"


def test_hotel_location_is_normalized():
    request = hotel_request(location="  São   Paulo ")

    assert request.location == "sao paulo"
    assert request.nights == 3


def test_return_before_departure_is_rejected():
    with pytest.raises(ValidationError):
        flight_request(start_date=date(2024, 6, 8), end_date=date(2024, 6, 1))


def test_one_way_flight_is_allowed():
    request = flight_request(end_date=None)

    assert request.end_date is None
    assert request.nights == 0


def test_same_origin_and_destination_is_rejected():
    with pytest.raises(ValidationError):
        flight_request(origin="NYC", destination="nyc")


def test_party_needs_an_adult():
    with pytest.raises(ValidationError):
        flight_request(party={"adults": 0})


def test_flight_adult_cap():
    with pytest.raises(ValidationError):
        flight_request(party={"adults": 10})


@pytest.mark.parametrize(
    "overrides",
    [
        {"end_date": date(2024, 6, 1)},  # zero nights
        {"end_date": date(2024, 7, 2)},  # 31 nights
        {"party": {"adults": 2, "rooms": 3}},  # room without an adult
        {"party": {"adults": 11, "rooms": 11}},  # too many rooms
        {"party": {"adults": 9, "children": 3, "rooms": 1}},  # 12 guests in one room
    ],
)
def test_hotel_rules(overrides):
    with pytest.raises(ValidationError):
        hotel_request(**overrides)


def test_currency_must_be_iso():
    assert flight_request(currency="eur").currency == "EUR"
    with pytest.raises(ValidationError):
        flight_request(currency="XYZ")


def test_filters_normalize_amenities_and_price_range():
    filters = SearchFilters(amenities=["Free WiFi", "pool", " "])

    assert filters.amenities == frozenset({"free_wifi", "pool"})
    with pytest.raises(ValidationError):
        SearchFilters(min_price=500, max_price=100)


def test_request_is_frozen():
    request = flight_request()

    with pytest.raises(ValidationError):
        request.currency = "EUR"
