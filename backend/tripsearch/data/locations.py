"""Location lookups — city names to IATA city/airport codes."""

from unidecode import unidecode

# City name → IATA metropolitan (or primary airport) code
CITY_CODES: dict[str, str] = {
    # North America
    "new york": "NYC", "los angeles": "LAX", "chicago": "CHI", "miami": "MIA",
    "san francisco": "SFO", "boston": "BOS", "washington": "WAS",
    "las vegas": "LAS", "seattle": "SEA", "denver": "DEN", "dallas": "DFW",
    "atlanta": "ATL", "phoenix": "PHX", "toronto": "YTO", "vancouver": "YVR",
    "montreal": "YMQ", "mexico city": "MEX",
    # Europe
    "london": "LON", "paris": "PAR", "madrid": "MAD", "barcelona": "BCN",
    "rome": "ROM", "milan": "MIL", "amsterdam": "AMS", "berlin": "BER",
    "frankfurt": "FRA", "munich": "MUC", "vienna": "VIE", "prague": "PRG",
    "budapest": "BUD", "warsaw": "WAW", "stockholm": "STO", "copenhagen": "CPH",
    "helsinki": "HEL", "oslo": "OSL", "zurich": "ZRH", "geneva": "GVA",
    "brussels": "BRU", "dublin": "DUB", "edinburgh": "EDI", "manchester": "MAN",
    "lisbon": "LIS", "porto": "OPO", "athens": "ATH", "istanbul": "IST",
    # Asia Pacific
    "tokyo": "TYO", "osaka": "OSA", "seoul": "SEL", "beijing": "BJS",
    "shanghai": "SHA", "hong kong": "HKG", "singapore": "SIN", "bangkok": "BKK",
    "manila": "MNL", "jakarta": "JKT", "kuala lumpur": "KUL", "mumbai": "BOM",
    "delhi": "DEL", "bangalore": "BLR", "chennai": "MAA", "sydney": "SYD",
    "melbourne": "MEL", "brisbane": "BNE", "perth": "PER", "auckland": "AKL",
    # Middle East & Africa
    "dubai": "DXB", "abu dhabi": "AUH", "doha": "DOH", "tel aviv": "TLV",
    "cairo": "CAI", "johannesburg": "JNB", "cape town": "CPT", "nairobi": "NBO",
    "casablanca": "CAS",
    # South America
    "sao paulo": "SAO", "rio de janeiro": "RIO", "buenos aires": "BUE",
    "lima": "LIM", "santiago": "SCL", "bogota": "BOG",
}

# Metropolitan code → primary airport, for upstreams that only take airports
PRIMARY_AIRPORTS: dict[str, str] = {
    "NYC": "JFK", "CHI": "ORD", "WAS": "IAD", "YTO": "YYZ", "YMQ": "YUL",
    "LON": "LHR", "PAR": "CDG", "ROM": "FCO", "MIL": "MXP", "STO": "ARN",
    "TYO": "HND", "OSA": "KIX", "SEL": "ICN", "BJS": "PEK", "SHA": "PVG",
    "JKT": "CGK", "SAO": "GRU", "RIO": "GIG", "BUE": "EZE", "CAS": "CMN",
}


def normalize_place(value: str) -> str:
    """Casefold, strip accents and collapse whitespace."""
    return " ".join(unidecode(value).lower().split())


def resolve_location_code(value: str) -> str:
    """Resolve a city name or code to an IATA code.

    Three-letter alphabetic input is treated as a code already. Unknown
    names fall back to their first three letters.
    """
    stripped = value.strip()
    if len(stripped) == 3 and stripped.isalpha():
        return stripped.upper()

    name = normalize_place(stripped)
    if name in CITY_CODES:
        return CITY_CODES[name]
    for city, code in CITY_CODES.items():
        if city in name or name in city:
            return code
    return name.replace(" ", "")[:3].upper()


def primary_airport(code: str) -> str:
    return PRIMARY_AIRPORTS.get(code.upper(), code.upper())
