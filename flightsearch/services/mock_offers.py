"""
Mock Offer Generator - Synthetic flight offers for development and fallback

Output has exactly the shape the providers produce, so consumers cannot tell
mock and live results apart structurally. Values are random; pass a seeded
random.Random for reproducible output.
"""
from typing import List, Optional
from datetime import datetime, time, timedelta
import random
import logging

from flightsearch.schemas.flight import FlightOffer, FlightSegment, SearchRequest, SegmentEndpoint
from flightsearch.services.reference_data import (
    POPULAR_DESTINATIONS,
    airline_homepage,
    airline_name,
    format_airport,
    search_deeplink,
)

logger = logging.getLogger(__name__)

MOCK_AIRLINES = ["TP", "FR", "U2", "LH", "KL", "AF", "BA", "W6", "EK", "TK"]

STOPOVER_AIRPORT = "LIS"
LAYOVER_MINUTES = 60
MIN_TURNAROUND_MINUTES = 120

BASE_PRICE = 89
PRICE_SPREAD = 400


class MockOfferGenerator:
    """
    Generates plausible offers for a search request.

    Honors direct_only / max_stops (no offer has more stops than allowed)
    and return_date (return segments iff set). Results are sorted by price.
    """

    def __init__(self, rng: Optional[random.Random] = None, count: int = 12, web_url: str = "https://www.skyscanner.com"):
        self.rng = rng or random.Random()
        self.count = count
        self.web_url = web_url

    def generate(self, request: SearchRequest) -> List[FlightOffer]:
        offers = [self._offer(request, i) for i in range(self.count)]
        logger.debug(f"Generated {len(offers)} mock offers for {request.origin_code}->{request.destination_code}")
        # Stable sort keeps generation order for equal prices
        return sorted(offers, key=lambda offer: offer.price.amount)

    def _offer(self, request: SearchRequest, i: int) -> FlightOffer:
        rng = self.rng
        airline = MOCK_AIRLINES[i % len(MOCK_AIRLINES)]
        origin = request.origin_code
        if request.is_anywhere:
            destination = rng.choice([code for code in POPULAR_DESTINATIONS if code != origin])
        else:
            destination = request.destination_code

        max_stops = 1 if request.stops_limit is None else min(request.stops_limit, 1)
        stops = rng.randint(0, max_stops)
        duration = 120 + stops * 90 + rng.randint(0, 59)

        departure = datetime.combine(
            request.departure_date,
            time(hour=6 + int(i * 1.5) % 17, minute=(i * 25) % 60),
        )
        outbound = self._journey(origin, destination, departure, duration, stops, airline)

        inbound = None
        if request.return_date:
            return_departure = datetime.combine(
                request.return_date,
                time(hour=7 + int(i * 1.2) % 14, minute=(i * 35) % 60),
            )
            # Same-day returns leave after the outbound lands
            earliest = outbound[-1].arrival.time + timedelta(minutes=MIN_TURNAROUND_MINUTES)
            return_departure = max(return_departure, earliest)
            inbound = self._journey(destination, origin, return_departure, duration, stops, airline)

        amount = round(BASE_PRICE + rng.random() * PRICE_SPREAD, 2) * request.adults

        return FlightOffer.build(
            id=f"mock-{i}",
            outbound_segments=outbound,
            return_segments=inbound,
            amount=amount,
            currency=request.currency,
            source="mock",
            booking_url=airline_homepage(airline) or search_deeplink(
                self.web_url, origin, destination, request.departure_date, request.return_date,
                adults=request.adults, cabin_class=request.cabin_class.value, direct_only=request.direct_only,
            ),
        )

    def _journey(
        self,
        origin: str,
        destination: str,
        departure: datetime,
        duration: int,
        stops: int,
        airline: str,
    ) -> List[FlightSegment]:
        """Segments for one direction; a connection goes through the stopover airport"""
        if stops == 0:
            return [self._segment(origin, destination, departure, duration, airline)]

        first_leg = int(duration * 0.4)
        second_leg = duration - first_leg - LAYOVER_MINUTES
        connection = departure + timedelta(minutes=first_leg + LAYOVER_MINUTES)
        return [
            self._segment(origin, STOPOVER_AIRPORT, departure, first_leg, airline),
            self._segment(STOPOVER_AIRPORT, destination, connection, second_leg, airline),
        ]

    def _segment(
        self,
        origin: str,
        destination: str,
        departure: datetime,
        minutes: int,
        airline: str,
    ) -> FlightSegment:
        return FlightSegment(
            departure=SegmentEndpoint(airport=format_airport(origin), time=departure),
            arrival=SegmentEndpoint(
                airport=format_airport(destination),
                time=departure + timedelta(minutes=minutes),
            ),
            airline=airline_name(airline),
            flight_number=f"{airline}{self.rng.randint(1000, 9999)}",
            duration=minutes,
        )


def generate_mock_offers(request: SearchRequest, rng: Optional[random.Random] = None) -> List[FlightOffer]:
    """Standalone helper for callers without a FlightService"""
    return MockOfferGenerator(rng=rng).generate(request)
