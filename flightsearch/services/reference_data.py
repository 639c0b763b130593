"""
Reference Data - Static airline, airport and carrier lookups used for display

Best-effort tables: an unknown code always falls back to the raw code.
"""
from datetime import date
from typing import Dict, Optional, Tuple
from urllib.parse import urlencode
import logging
import re

logger = logging.getLogger(__name__)

# Destination sentinel meaning "any destination"
ANYWHERE = "ANYWHERE"

UNKNOWN_AIRPORT_CODE = "XXX"
UNKNOWN_AIRLINE_CODE = "XX"

# IATA code -> (display name, ICAO code)
AIRLINES: Dict[str, Tuple[str, str]] = {
    # Europe
    "FR": ("Ryanair", "RYR"),
    "U2": ("easyJet", "EZY"),
    "W6": ("Wizz Air", "WZZ"),
    "VY": ("Vueling", "VLG"),
    "LH": ("Lufthansa", "DLH"),
    "AF": ("Air France", "AFR"),
    "KL": ("KLM", "KLM"),
    "BA": ("British Airways", "BAW"),
    "IB": ("Iberia", "IBE"),
    "TP": ("TAP Air Portugal", "TAP"),
    "LX": ("Swiss", "SWR"),
    "OS": ("Austrian Airlines", "AUA"),
    "SN": ("Brussels Airlines", "BEL"),
    "SK": ("SAS", "SAS"),
    "AY": ("Finnair", "FIN"),
    "DY": ("Norwegian", "NOZ"),
    "D8": ("Norwegian", "NOZ"),
    "A3": ("Aegean Airlines", "AEE"),
    "TK": ("Turkish Airlines", "THY"),
    "LO": ("LOT Polish Airlines", "LOT"),
    "AZ": ("ITA Airways", "ITY"),
    "UX": ("Air Europa", "AEA"),
    "EW": ("Eurowings", "EWG"),
    "HV": ("Transavia", "TRA"),
    "TO": ("Transavia France", "TVF"),
    "EI": ("Aer Lingus", "EIN"),
    "EN": ("Air Dolomiti", "DLA"),
    "WF": ("Wideroe", "WIF"),
    # Middle East
    "EK": ("Emirates", "UAE"),
    "QR": ("Qatar Airways", "QTR"),
    "EY": ("Etihad", "ETD"),
    # North America
    "AA": ("American Airlines", "AAL"),
    "DL": ("Delta", "DAL"),
    "UA": ("United", "UAL"),
    "WN": ("Southwest", "SWA"),
    "B6": ("JetBlue", "JBU"),
    "AS": ("Alaska", "ASA"),
    "NK": ("Spirit", "NKS"),
    "F9": ("Frontier", "FFT"),
    "AC": ("Air Canada", "ACA"),
    "WS": ("WestJet", "WJA"),
    # Asia
    "SQ": ("Singapore Airlines", "SIA"),
    "CX": ("Cathay Pacific", "CPA"),
    "NH": ("ANA", "ANA"),
    "JL": ("JAL", "JAL"),
    "AI": ("Air India", "AIC"),
    "6E": ("IndiGo", "IGO"),
    "AK": ("AirAsia", "AXM"),
    "TG": ("Thai Airways", "THA"),
    "MH": ("Malaysia Airlines", "MAS"),
    "KE": ("Korean Air", "KAL"),
    "OZ": ("Asiana", "AAR"),
}

# Graph API numeric carrier ids -> IATA code. Visibly partial.
CARRIER_IDS: Dict[str, str] = {
    "31913": "FR",
    "32090": "W6",
    "32093": "W6",
    "30685": "U2",
    "31669": "DY",
    "32480": "VY",
    "32132": "LH",
    "32544": "LH",
    "30189": "AF",
    "31609": "KL",
    "32332": "KL",
    "31539": "BA",
    "32348": "LO",
    "32236": "AZ",
    "32356": "AZ",
    "31665": "SK",
    "32753": "IB",
    "32672": "IB",
    "32723": "TP",
    "32704": "TP",
    "31717": "LX",
    "32659": "LX",
    "31538": "OS",
    "32338": "OS",
    "30870": "AY",
    "30626": "A3",
    "32728": "EW",
    "32756": "HV",
    "32657": "SN",
}

CITIES: Dict[str, str] = {
    "JFK": "New York",
    "LGA": "New York",
    "EWR": "Newark",
    "LAX": "Los Angeles",
    "ORD": "Chicago",
    "MIA": "Miami",
    "SFO": "San Francisco",
    "BOS": "Boston",
    "LHR": "London",
    "LGW": "London",
    "STN": "London",
    "MAN": "Manchester",
    "DUB": "Dublin",
    "CDG": "Paris",
    "ORY": "Paris",
    "AMS": "Amsterdam",
    "BRU": "Brussels",
    "FRA": "Frankfurt",
    "MUC": "Munich",
    "BER": "Berlin",
    "HAM": "Hamburg",
    "MAD": "Madrid",
    "BCN": "Barcelona",
    "LIS": "Lisbon",
    "OPO": "Porto",
    "FCO": "Rome",
    "MXP": "Milan",
    "VIE": "Vienna",
    "ZRH": "Zurich",
    "CPH": "Copenhagen",
    "ARN": "Stockholm",
    "OSL": "Oslo",
    "HEL": "Helsinki",
    "ATH": "Athens",
    "IST": "Istanbul",
    "WAW": "Warsaw",
    "KRK": "Krakow",
    "WRO": "Wroclaw",
    "GDN": "Gdansk",
    "PRG": "Prague",
    "BUD": "Budapest",
    "DXB": "Dubai",
    "DOH": "Doha",
    "SIN": "Singapore",
}

# Destinations drawn for "anywhere" searches when no provider answers
POPULAR_DESTINATIONS = ["BCN", "LIS", "FCO", "CDG", "AMS", "ATH", "PRG", "DUB", "MAD", "BUD"]

AIRLINE_HOMEPAGES: Dict[str, str] = {
    "FR": "https://www.ryanair.com",
    "U2": "https://www.easyjet.com",
    "W6": "https://www.wizzair.com",
    "LH": "https://www.lufthansa.com",
    "LO": "https://www.lot.com",
    "KL": "https://www.klm.com",
    "AF": "https://www.airfrance.com",
    "BA": "https://www.britishairways.com",
    "TP": "https://www.flytap.com",
    "EK": "https://www.emirates.com",
    "TK": "https://www.turkishairlines.com",
}

_PARENTHESISED_CODE = re.compile(r"\(([A-Z]{3})\)")


def extract_iata_code(value: str) -> str:
    """
    Extract an IATA code from user input.

    "New York (JFK)" -> "JFK", "jfk" -> "JFK". The ANYWHERE sentinel is kept.
    """
    value = value.strip()
    if value.upper() == ANYWHERE:
        return ANYWHERE
    match = _PARENTHESISED_CODE.search(value)
    if match:
        return match.group(1)
    return value.upper()[:3]


def airline_name(code: str, overrides: Optional[Dict[str, str]] = None) -> str:
    """Display name for a carrier code, defaulting to the code itself"""
    if not code:
        return UNKNOWN_AIRLINE_CODE
    upper = code.upper()
    if overrides and upper in overrides:
        return overrides[upper]
    if upper in AIRLINES:
        return AIRLINES[upper][0]
    return code


def airline_logo_path(code_or_name: str) -> Optional[str]:
    """Logo asset path (/airline-logos/<ICAO>.png) for a carrier code or display name"""
    if not code_or_name:
        return None
    upper = code_or_name.upper()
    if upper in AIRLINES:
        return f"/airline-logos/{AIRLINES[upper][1]}.png"
    for name, icao in AIRLINES.values():
        if name.lower() == code_or_name.lower():
            return f"/airline-logos/{icao}.png"
    return None


def city_name(code: str) -> Optional[str]:
    return CITIES.get(code.upper()) if code else None


def format_airport(code: str, city: Optional[str] = None) -> str:
    """Display string "<City> (<CODE>)" used on every segment endpoint"""
    code = (code or UNKNOWN_AIRPORT_CODE).upper()
    city = city or city_name(code) or code
    return f"{city} ({code})"


def airport_code_from_display(display: str) -> str:
    match = _PARENTHESISED_CODE.search(display or "")
    return match.group(1) if match else UNKNOWN_AIRPORT_CODE


def carrier_code_from_id(carrier_id) -> str:
    """Map a graph-API numeric carrier id to an IATA code"""
    code = CARRIER_IDS.get(str(carrier_id))
    if code is None:
        logger.debug(f"Unknown carrier ID: {carrier_id} - defaulting to {UNKNOWN_AIRLINE_CODE}")
        return UNKNOWN_AIRLINE_CODE
    return code


def search_deeplink(
    web_url: str,
    origin: str,
    destination: str,
    departure_date: Optional[date],
    return_date: Optional[date] = None,
    adults: int = 1,
    cabin_class: str = "economy",
    direct_only: bool = False,
) -> str:
    """Generic search-results deep link for offers without a provider booking link"""
    outbound = departure_date.strftime("%y%m%d") if departure_date else ""
    inbound = return_date.strftime("%y%m%d") if return_date else ""
    query = urlencode({
        "adults": adults,
        "cabinclass": cabin_class,
        "preferdirects": "true" if direct_only else "false",
    })
    path = f"{web_url.rstrip('/')}/transport/flights/{origin.lower()}/{destination.lower()}/{outbound}/"
    if inbound:
        path += f"{inbound}/"
    return f"{path}?{query}"


def airline_homepage(code: str) -> Optional[str]:
    return AIRLINE_HOMEPAGES.get((code or "").upper())
