"""
Skyscanner Flight Provider - Itinerary graph search via flightapi.io
https://docs.flightapi.io/

The response is a normalized graph: itineraries reference legs by id, legs
reference segments, segments reference places and carriers. Every array is
indexed first, then itineraries are resolved against the indexes.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import logging
import re

from flightsearch.schemas.flight import FlightOffer, FlightSegment, SearchRequest, SegmentEndpoint
from flightsearch.services.reference_data import (
    UNKNOWN_AIRPORT_CODE,
    airline_name,
    airport_code_from_display,
    carrier_code_from_id,
    city_name,
    format_airport,
    search_deeplink,
)
from .base import FlightProvider, MalformedResponseError, placeholder_segment

logger = logging.getLogger(__name__)

# Compact timestamps: YYMMDDHHMM
COMPACT_TIME_RE = re.compile(r"^(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})$")


@dataclass
class ItineraryGraph:
    """id -> entity indexes over one response"""
    places: Dict[Any, dict] = field(default_factory=dict)
    carriers: Dict[Any, dict] = field(default_factory=dict)
    legs: Dict[Any, dict] = field(default_factory=dict)
    segments: Dict[Any, dict] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "ItineraryGraph":
        return cls(
            places=_index(payload.get("places")),
            carriers=_index(payload.get("carriers")),
            legs=_index(payload.get("legs")),
            segments=_index(payload.get("segments")),
        )


def _index(items) -> Dict[Any, dict]:
    if not isinstance(items, list):
        return {}
    return {item["id"]: item for item in items if isinstance(item, dict) and "id" in item}


def parse_graph_time(value: Any) -> datetime:
    """
    Parse an ISO-8601 or compact YYMMDDHHMM timestamp.

    Always naive: timestamps carrying an offset are converted to UTC first,
    so every time in one graph can be compared with every other.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        match = COMPACT_TIME_RE.match(text)
        if match:
            year, month, day, hour, minute = (int(part) for part in match.groups())
            return datetime(2000 + year, month, day, hour, minute)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class SkyscannerProvider(FlightProvider):
    """
    Skyscanner itinerary search provider.

    Meta-search results with booking deep links. The API key is part of the
    request path. HTTP 410 means no flights for the route and date.
    """

    name = "skyscanner"
    priority = 2  # Secondary provider

    no_results_statuses = (410,)

    @property
    def is_configured(self) -> bool:
        """Check if the flightapi.io key is configured"""
        return bool(self.settings.FLIGHTAPI_KEY.strip())

    def build_url(self, request: SearchRequest) -> str:
        """
        Resolve the search URL; every parameter is a path segment.

        /roundtrip/<key>/<from>/<to>/<depart>/<return>/<adults>/<children>/<infants>/<cabin>/<currency>
        /onewaytrip/<key>/<from>/<to>/<depart>/<adults>/<children>/<infants>/<cabin>/<currency>
        """
        base = self.settings.FLIGHTAPI_BASE_URL.rstrip("/")
        key = self.settings.FLIGHTAPI_KEY.strip()
        parts = [request.origin_code, request.destination_code, request.departure_date.isoformat()]

        if request.return_date:
            endpoint = "roundtrip"
            parts.append(request.return_date.isoformat())
        else:
            endpoint = "onewaytrip"

        parts += [
            str(request.adults),
            str(request.children),
            str(request.infants),
            request.cabin_class.value,
            request.currency,
        ]
        return f"{base}/{endpoint}/{key}/" + "/".join(parts)

    async def search(self, request: SearchRequest) -> Any:
        """Search flights using the itinerary graph API"""
        return await self._get_json(self.build_url(request))

    def parse(self, payload: Any, request: SearchRequest) -> List[FlightOffer]:
        """Parse the itinerary graph into offers"""
        if not isinstance(payload, dict):
            raise MalformedResponseError(self.name, "Response is not a JSON object")
        itineraries = payload.get("itineraries")
        if not isinstance(itineraries, list):
            raise MalformedResponseError(self.name, "Response has no 'itineraries' array")

        # Pass 1: index every entity array
        graph = ItineraryGraph.from_payload(payload)
        currency = (payload.get("query") or {}).get("currency") or request.currency

        # Pass 2: resolve itineraries against the indexes
        offers = []
        for index, itinerary in enumerate(itineraries):
            try:
                offers.append(self._resolve_itinerary(itinerary, index, graph, currency, request))
            except Exception as e:
                logger.warning(f"Failed to parse Skyscanner itinerary: {e}")
                continue

        if itineraries and not offers:
            raise MalformedResponseError(self.name, f"None of {len(itineraries)} itineraries could be parsed")

        return offers

    def _resolve_itinerary(
        self,
        itinerary: dict,
        index: int,
        graph: ItineraryGraph,
        currency: str,
        request: SearchRequest,
    ) -> FlightOffer:
        leg_ids = itinerary.get("leg_ids") or []
        pricing = (itinerary.get("pricing_options") or [{}])[0]
        amount = pricing["price"]["amount"]

        outbound_segments = self._resolve_leg(leg_ids[0] if leg_ids else None, graph)
        if outbound_segments is None:
            outbound_segments = [placeholder_segment(request)]

        return_segments = None
        if len(leg_ids) > 1:
            return_segments = self._resolve_leg(leg_ids[1], graph)
            if return_segments is None:
                logger.info(f"Return leg {leg_ids[1]} unresolved, keeping itinerary {itinerary.get('id')} as one-way")

        return FlightOffer.build(
            id=f"skyscanner-{itinerary.get('id') or index}",
            outbound_segments=outbound_segments,
            return_segments=return_segments,
            amount=amount,
            currency=currency,
            source=self.name,
            booking_url=self._booking_url(pricing, outbound_segments, return_segments, request),
        )

    def _resolve_leg(self, leg_id: Any, graph: ItineraryGraph) -> Optional[List[FlightSegment]]:
        """Walk a leg's segment ids; None when nothing resolves"""
        if leg_id is None:
            return None

        leg = graph.legs.get(leg_id)
        if leg is None:
            logger.debug(f"Leg not found: {leg_id}")
            return None

        segments = []
        for segment_id in leg.get("segment_ids") or []:
            segment = graph.segments.get(segment_id)
            if segment is None:
                logger.debug(f"Segment not found: {segment_id} (leg {leg_id})")
                continue
            try:
                segments.append(self._resolve_segment(segment, graph))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping unresolvable segment {segment_id}: {e}")
                continue

        return segments or None

    def _resolve_segment(self, segment: dict, graph: ItineraryGraph) -> FlightSegment:
        origin = graph.places.get(segment.get("origin_place_id")) or {}
        destination = graph.places.get(segment.get("destination_place_id")) or {}
        carrier = (
            graph.carriers.get(segment.get("marketing_carrier_id"))
            or graph.carriers.get(segment.get("operating_carrier_id"))
            or {}
        )

        carrier_code = (
            carrier.get("display_code")
            or carrier.get("alt_id")
            or carrier_code_from_id(segment.get("marketing_carrier_id"))
        )

        departure = parse_graph_time(segment["departure"])
        arrival = parse_graph_time(segment["arrival"])
        duration = segment.get("duration") or int((arrival - departure).total_seconds() // 60)

        return FlightSegment(
            departure=SegmentEndpoint(airport=self._place_display(origin, graph), time=departure),
            arrival=SegmentEndpoint(airport=self._place_display(destination, graph), time=arrival),
            airline=carrier.get("name") or airline_name(carrier_code),
            flight_number=f"{carrier_code}{segment.get('marketing_flight_number') or '0000'}",
            duration=duration,
        )

    def _place_display(self, place: dict, graph: ItineraryGraph) -> str:
        """"<City> (<CODE>)", taking the city from the parent place when there is one"""
        code = place.get("display_code") or place.get("alt_id") or UNKNOWN_AIRPORT_CODE
        parent = graph.places.get(place.get("parent_id")) or {}
        if (parent.get("type") or "").lower() == "city" and parent.get("name"):
            city = parent["name"]
        else:
            city = city_name(code) or place.get("name") or "Unknown"
        return format_airport(code, city)

    def _booking_url(
        self,
        pricing: dict,
        outbound_segments: List[FlightSegment],
        return_segments: Optional[List[FlightSegment]],
        request: SearchRequest,
    ) -> str:
        """Qualify the provider's relative deep link, or build a search link"""
        web_url = self.settings.SKYSCANNER_WEB_URL.rstrip("/")
        items = pricing.get("items") or [{}]
        url = items[0].get("url") or ""

        if url.startswith("http"):
            return url
        if url:
            return f"{web_url}/{url.lstrip('/')}"

        origin = airport_code_from_display(outbound_segments[0].departure.airport)
        destination = airport_code_from_display(outbound_segments[-1].arrival.airport)
        if origin == UNKNOWN_AIRPORT_CODE:
            origin = request.origin_code
        if destination == UNKNOWN_AIRPORT_CODE:
            destination = request.destination_code

        return search_deeplink(
            web_url,
            origin,
            destination,
            outbound_segments[0].departure.time.date(),
            return_segments[0].departure.time.date() if return_segments else None,
            adults=request.adults,
            cabin_class=request.cabin_class.value,
            direct_only=request.direct_only,
        )
