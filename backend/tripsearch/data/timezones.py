"""Airport time zones — anchor provider wall-clock times to real instants.

Flight providers report departure and arrival in the local time of each
airport. Segments are only comparable once those times carry the zone of
the airport they belong to.
"""

import logging
from datetime import datetime, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import airportsdata

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _airports() -> dict[str, dict]:
    return airportsdata.load("IATA")


@lru_cache(maxsize=1024)
def airport_timezone(code: str | None) -> ZoneInfo | None:
    """Zone of an IATA airport code, or None when the airport is unknown."""
    if not code:
        return None
    airport = _airports().get(code.strip().upper())
    if not airport or not airport.get("tz"):
        return None
    try:
        return ZoneInfo(airport["tz"])
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown time zone {airport['tz']!r} for airport {code}")
        return None


def localize(ts: datetime, code: str | None) -> datetime | None:
    """Attach the airport's zone to a naive local time; aware times pass through."""
    if ts.tzinfo is not None:
        return ts
    zone = airport_timezone(code)
    if zone is None:
        return None
    return ts.replace(tzinfo=zone)


def anchor_leg(
    departs: datetime,
    arrives: datetime,
    origin: str | None,
    destination: str | None,
    duration_minutes: int | None = None,
) -> tuple[datetime, datetime]:
    """Return (departure, arrival) for one leg as comparable timestamps.

    Both ends are localized when both airports are known. Otherwise the
    arrival is the departure plus the reported duration, and without a
    duration the raw times are returned unchanged.
    """
    local_departs = localize(departs, origin)
    local_arrives = localize(arrives, destination)
    if local_departs is not None and local_arrives is not None:
        return local_departs, local_arrives

    if duration_minutes:
        start = local_departs or departs
        return start, start + timedelta(minutes=duration_minutes)

    logger.debug(f"No zone for {origin}-{destination}, keeping provider times as given")
    return departs, arrives
