AIRLINE_NAMES = {
    "AC": "Air Canada", "WS": "WestJet", "AA": "American Airlines",
    "DL": "Delta Air Lines", "UA": "United Airlines", "B6": "JetBlue Airways",
    "NK": "Spirit Airlines", "BA": "British Airways",
    "LH": "Lufthansa", "AF": "Air France", "KL": "KLM",
    "LX": "Swiss", "OS": "Austrian", "EK": "Emirates",
    "QR": "Qatar Airways", "SQ": "Singapore Airlines", "CX": "Cathay Pacific",
    "NH": "ANA", "JL": "Japan Airlines", "AS": "Alaska Airlines",
    "WN": "Southwest Airlines", "VS": "Virgin Atlantic", "FI": "Icelandair",
    "TP": "TAP Air Portugal", "AY": "Finnair", "SK": "SAS", "IB": "Iberia",
    "AI": "Air India", "6E": "IndiGo", "TK": "Turkish Airlines",
}

# Amadeus cabin codes to ours
CABIN_MAP = {
    "ECONOMY": "economy",
    "PREMIUM_ECONOMY": "premium_economy",
    "BUSINESS": "business",
    "FIRST": "first",
}

# Connection hubs used when generating placeholder itineraries
HUB_AIRPORTS = ["ORD", "DFW", "ATL", "DEN", "YYZ", "AMS", "FRA", "CDG", "DXB", "IST"]


def airline_name(code: str) -> str:
    return AIRLINE_NAMES.get(code, code)
