"""
Shared fixtures: isolated settings, stubbed upstream HTTP and provider payloads
"""
from datetime import date
import copy
import random

import httpx
import pytest

from flightsearch.config import Settings
from flightsearch.schemas.flight import SearchRequest


@pytest.fixture
def make_settings():
    """Settings that ignore .env files; every provider unconfigured unless given"""
    def _make(**overrides) -> Settings:
        values = {
            "AMADEUS_API_KEY": "",
            "AMADEUS_API_SECRET": "",
            "FLIGHTAPI_KEY": "",
            "KIWI_API_KEY": "",
            "FLIGHT_PROVIDER": "auto",
            "USE_MOCK_FLIGHTS": False,
            "DEFAULT_CURRENCY": "EUR",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def mock_client():
    """httpx.AsyncClient whose requests are answered by a handler function"""
    def _make(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return _make


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def one_way_request():
    return SearchRequest(
        origin="JFK",
        destination="LAX",
        departure_date=date(2025, 6, 1),
        adults=1,
        cabin_class="economy",
    )


@pytest.fixture
def round_trip_request():
    return SearchRequest(
        origin="JFK",
        destination="LAX",
        departure_date=date(2025, 6, 1),
        return_date=date(2025, 6, 8),
        adults=1,
        cabin_class="economy",
    )


AMADEUS_OFFERS = {
    "meta": {"count": 2},
    "data": [
        {
            "type": "flight-offer",
            "id": "1",
            "itineraries": [
                {
                    "duration": "PT6H15M",
                    "segments": [
                        {
                            "departure": {"iataCode": "JFK", "terminal": "4", "at": "2025-06-01T08:00:00"},
                            "arrival": {"iataCode": "LAX", "at": "2025-06-01T11:15:00"},
                            "carrierCode": "DL",
                            "number": "123",
                            "aircraft": {"code": "321"},
                            "duration": "PT6H15M",
                        }
                    ],
                }
            ],
            "price": {"currency": "EUR", "total": "245.50"},
        },
        {
            "type": "flight-offer",
            "id": "2",
            "itineraries": [
                {
                    "duration": "PT8H",
                    "segments": [
                        {
                            "departure": {"iataCode": "JFK", "at": "2025-06-01T07:00:00"},
                            "arrival": {"iataCode": "ORD", "at": "2025-06-01T08:30:00"},
                            "carrierCode": "AA",
                            "number": "100",
                            "duration": "PT2H30M",
                        },
                        {
                            "departure": {"iataCode": "ORD", "at": "2025-06-01T10:00:00"},
                            "arrival": {"iataCode": "LAX", "at": "2025-06-01T12:00:00"},
                            "carrierCode": "XQ",
                            "number": "200",
                            "duration": "PT4H",
                        },
                    ],
                }
            ],
            "price": {"currency": "EUR", "total": "199.99"},
        },
    ],
    "dictionaries": {"carriers": {"DL": "DELTA AIR LINES", "AA": "AMERICAN AIRLINES", "XQ": "SUNEXPRESS"}},
}

AMADEUS_INSPIRATION = {
    "meta": {"currency": "EUR"},
    "data": [
        {
            "type": "flight-destination",
            "origin": "MAD",
            "destination": "OPO",
            "departureDate": "2025-06-01",
            "returnDate": "2025-06-08",
            "price": {"total": "55.20"},
        },
        {
            "type": "flight-destination",
            "origin": "MAD",
            "destination": "LIS",
            "departureDate": "2025-06-01",
            "returnDate": "2025-06-08",
            "price": {"total": "42.00"},
        },
    ],
}

SKYSCANNER_GRAPH = {
    "query": {"currency": "EUR"},
    "places": [
        {"id": 1, "alt_id": "LHR", "display_code": "LHR", "name": "London Heathrow", "parent_id": 10, "type": "Airport"},
        {"id": 10, "name": "London", "type": "City"},
        {"id": 2, "display_code": "BCN", "name": "Barcelona El Prat", "type": "Airport"},
    ],
    "carriers": [
        {"id": 881, "name": "British Airways", "display_code": "BA"},
        {"id": 31913},
    ],
    "segments": [
        {
            "id": "s1",
            "origin_place_id": 1,
            "destination_place_id": 2,
            "departure": "2025-06-01T07:00:00",
            "arrival": "2025-06-01T10:05:00",
            "duration": 125,
            "marketing_carrier_id": 881,
            "marketing_flight_number": "478",
        },
        {
            "id": "s2",
            "origin_place_id": 2,
            "destination_place_id": 1,
            "departure": "2506081830",
            "arrival": "2506081955",
            "marketing_carrier_id": 31913,
            "marketing_flight_number": "1234",
        },
    ],
    "legs": [
        {"id": "L1", "segment_ids": ["s1"]},
        {"id": "L2", "segment_ids": ["s2"]},
    ],
    "itineraries": [
        {
            "id": "it-1",
            "leg_ids": ["L1", "L2"],
            "pricing_options": [
                {
                    "price": {"amount": 187.4},
                    "items": [{"url": "/transport_deeplink/4.0/UK/en-GB/EUR/ba/2/LHR/BCN"}],
                }
            ],
        }
    ],
}

KIWI_RESULTS = {
    "search_id": "4f3c-kiwi",
    "currency": "EUR",
    "data": [
        {
            "id": "k1",
            "price": 79,
            "deep_link": "https://www.kiwi.com/deep?booking_token=abc",
            "route": [
                {
                    "id": "r1",
                    "flyFrom": "STN",
                    "flyTo": "BCN",
                    "cityFrom": "London",
                    "cityTo": "Barcelona",
                    "local_departure": "2025-06-01T06:30:00.000Z",
                    "local_arrival": "2025-06-01T09:45:00.000Z",
                    "airline": "FR",
                    "flight_no": 9876,
                    "return": 0,
                },
                {
                    "id": "r2",
                    "flyFrom": "BCN",
                    "flyTo": "STN",
                    "cityFrom": "Barcelona",
                    "cityTo": "London",
                    "local_departure": "2025-06-08T21:10:00.000Z",
                    "local_arrival": "2025-06-08T22:35:00.000Z",
                    "airline": "FR",
                    "flight_no": 9877,
                    "return": 1,
                },
            ],
        }
    ],
}


@pytest.fixture
def amadeus_offers():
    return copy.deepcopy(AMADEUS_OFFERS)


@pytest.fixture
def amadeus_inspiration():
    return copy.deepcopy(AMADEUS_INSPIRATION)


@pytest.fixture
def skyscanner_graph():
    return copy.deepcopy(SKYSCANNER_GRAPH)


@pytest.fixture
def kiwi_results():
    return copy.deepcopy(KIWI_RESULTS)


def kiwi_route(route_id, fly_from, fly_to, departure, arrival, is_return=0, airline="FR", flight_no=1000):
    return {
        "id": route_id,
        "flyFrom": fly_from,
        "flyTo": fly_to,
        "local_departure": departure,
        "local_arrival": arrival,
        "airline": airline,
        "flight_no": flight_no,
        "return": is_return,
    }


@pytest.fixture
def make_kiwi_itinerary():
    """One-way Kiwi itinerary; extra stopover airports add connecting routes"""
    def _make(itinerary_id: str, price, via=()):
        airports = ["STN", *via, "BCN"]
        route = []
        for hop, (fly_from, fly_to) in enumerate(zip(airports, airports[1:])):
            route.append(kiwi_route(
                f"{itinerary_id}-{hop}",
                fly_from,
                fly_to,
                f"2025-06-01T{6 + hop * 3:02d}:00:00.000Z",
                f"2025-06-01T{7 + hop * 3:02d}:30:00.000Z",
                flight_no=1000 + hop,
            ))
        return {"id": itinerary_id, "price": price, "route": route}
    return _make
