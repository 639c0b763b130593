"""
Kiwi.com Flight Provider - Budget carrier aggregator
https://tequila.kiwi.com/portal/docs
"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from flightsearch.schemas.flight import FlightOffer, FlightSegment, SearchRequest, SegmentEndpoint
from flightsearch.services.reference_data import airline_name, format_airport, search_deeplink
from .base import FlightProvider, MalformedResponseError

logger = logging.getLogger(__name__)


class KiwiRoute(BaseModel):
    """One flown segment of a Kiwi result"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    fly_from: str = Field(alias="flyFrom")
    fly_to: str = Field(alias="flyTo")
    city_from: Optional[str] = Field(None, alias="cityFrom")
    city_to: Optional[str] = Field(None, alias="cityTo")
    local_departure: datetime
    local_arrival: datetime
    utc_departure: Optional[datetime] = None
    utc_arrival: Optional[datetime] = None
    airline: str
    flight_no: int
    equipment: Optional[str] = None
    is_return: int = Field(0, alias="return")

    @field_validator("local_departure", "local_arrival", mode="after")
    @classmethod
    def _wall_clock(cls, value: datetime) -> datetime:
        # Kiwi suffixes local times with Z; they are airport wall-clock times
        return value.replace(tzinfo=None)

    @property
    def flight_minutes(self) -> int:
        if self.utc_departure and self.utc_arrival:
            elapsed = self.utc_arrival - self.utc_departure
        else:
            elapsed = self.local_arrival - self.local_departure
        return int(elapsed.total_seconds() // 60)


class KiwiItinerary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    price: Decimal
    deep_link: Optional[str] = None
    route: List[KiwiRoute] = Field(..., min_length=1)


class KiwiSearchResponse(BaseModel):
    """Results grouped under one search id"""
    model_config = ConfigDict(extra="ignore")

    search_id: str
    currency: str
    data: List[KiwiItinerary]


class KiwiProvider(FlightProvider):
    """
    Kiwi.com (formerly Skypicker) flight search provider.

    Flat results: each itinerary carries its route segments directly, with a
    return flag separating outbound from inbound. The API key is part of the
    request path. Payloads are validated against a strict schema.

    Free tier: 1000 requests/day
    """

    name = "kiwi"
    priority = 3  # Tertiary provider / backup

    @property
    def is_configured(self) -> bool:
        """Check if Kiwi API key is configured"""
        return bool(self.settings.KIWI_API_KEY.strip())

    def build_url(self) -> str:
        return f"{self.settings.KIWI_BASE_URL.rstrip('/')}/search/{self.settings.KIWI_API_KEY.strip()}"

    def build_params(self, request: SearchRequest) -> Dict[str, Any]:
        cabin_map = {
            "economy": "M",
            "premium_economy": "W",
            "business": "C",
            "first": "F",
        }

        params = {
            "fly_from": ",".join(request.origin),
            "fly_to": ",".join(request.destination),
            "date_from": request.departure_date.strftime("%d/%m/%Y"),
            "date_to": request.departure_date.strftime("%d/%m/%Y"),
            "adults": request.adults,
            "children": request.children,
            "infants": request.infants,
            "curr": request.currency,
            "selected_cabins": cabin_map.get(request.cabin_class.value, "M"),
            "limit": 50,
            "sort": "price",
        }

        if request.return_date:
            params["return_from"] = request.return_date.strftime("%d/%m/%Y")
            params["return_to"] = request.return_date.strftime("%d/%m/%Y")
            params["flight_type"] = "round"
        else:
            params["flight_type"] = "oneway"

        if request.stops_limit is not None:
            params["max_stopovers"] = request.stops_limit

        # Omitting the destination searches everywhere
        if request.is_anywhere:
            del params["fly_to"]

        return params

    async def search(self, request: SearchRequest) -> Any:
        """Search flights using Kiwi Tequila API"""
        return await self._get_json(self.build_url(), params=self.build_params(request))

    def parse(self, payload: Any, request: SearchRequest) -> List[FlightOffer]:
        """Parse Kiwi API response"""
        try:
            response = KiwiSearchResponse.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(
                self.name, f"Unexpected response shape ({e.error_count()} errors)", e
            )

        logger.debug(f"Kiwi search {response.search_id}: {len(response.data)} results")

        offers = []
        for flight in response.data:
            try:
                offers.append(self._parse_itinerary(flight, response.currency, request))
            except ValueError as e:
                logger.warning(f"Failed to parse Kiwi flight {flight.id}: {e}")
                continue

        if response.data and not offers:
            raise MalformedResponseError(self.name, f"None of {len(response.data)} results could be parsed")

        return offers

    def _parse_itinerary(self, flight: KiwiItinerary, currency: str, request: SearchRequest) -> FlightOffer:
        outbound_routes = [seg for seg in flight.route if not seg.is_return]
        outbound_segments = [self._parse_segment(seg) for seg in outbound_routes]
        return_segments = [self._parse_segment(seg) for seg in flight.route if seg.is_return]

        if not outbound_segments:
            raise ValueError("route has no outbound segments")

        return FlightOffer.build(
            id=f"kiwi-{flight.id}",
            outbound_segments=outbound_segments,
            return_segments=return_segments or None,
            amount=flight.price,
            currency=currency,
            source=self.name,
            booking_url=flight.deep_link or search_deeplink(
                self.settings.SKYSCANNER_WEB_URL,
                request.origin_code,
                request.destination_code,
                request.departure_date,
                request.return_date,
                adults=request.adults,
                cabin_class=request.cabin_class.value,
                direct_only=request.direct_only,
            ),
            duration=self._journey_minutes(outbound_routes),
        )

    def _parse_segment(self, seg: KiwiRoute) -> FlightSegment:
        """Parse a single flight segment"""
        return FlightSegment(
            departure=SegmentEndpoint(airport=format_airport(seg.fly_from, seg.city_from), time=seg.local_departure),
            arrival=SegmentEndpoint(airport=format_airport(seg.fly_to, seg.city_to), time=seg.local_arrival),
            airline=airline_name(seg.airline),
            flight_number=f"{seg.airline}{seg.flight_no}",
            duration=seg.flight_minutes,
            aircraft=seg.equipment,
        )

    def _journey_minutes(self, routes: List[KiwiRoute]) -> Optional[int]:
        """Door-to-door minutes from UTC times; None derives it from local times"""
        first, last = routes[0], routes[-1]
        if first.utc_departure is None or last.utc_arrival is None:
            return None
        return int((last.utc_arrival - first.utc_departure).total_seconds() // 60)
