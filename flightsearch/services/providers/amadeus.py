"""
Amadeus Flight Provider - GDS flight shopping with OAuth2 client credentials
https://developers.amadeus.com/
"""
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, time as dt_time, timedelta
import asyncio
import logging
import time

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from flightsearch.config import Settings
from flightsearch.schemas.flight import FlightOffer, FlightSegment, SearchRequest, SegmentEndpoint
from flightsearch.services.reference_data import airline_name, format_airport, search_deeplink
from flightsearch.utils.itinerary import parse_iso_duration
from flightsearch.utils.request_cache import RequestCache
from .base import (
    AuthenticationError,
    FlightProvider,
    MalformedResponseError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

# Refresh tokens this many seconds before the provider says they expire
TOKEN_EXPIRY_MARGIN = 60

INSPIRATION_MAX_RESULTS = 20
INSPIRATION_MAX_PRICE = 2000
INSPIRATION_AIRLINE = "Multiple Airlines"
INSPIRATION_OUTBOUND_HOUR = 9
INSPIRATION_RETURN_HOUR = 18
INSPIRATION_FLIGHT_MINUTES = 120


class AmadeusProvider(FlightProvider):
    """
    Amadeus flight search provider.

    Full itineraries come from Flight Offers Search. An ANYWHERE destination
    is routed to Flight Inspiration Search, which only returns destination and
    price pairs; segments for those offers are synthesized.
    Requires API key and secret from https://developers.amadeus.com/
    """

    name = "amadeus"
    priority = 1  # Primary provider

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[RequestCache] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(settings, cache, client)
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        """Check if Amadeus credentials are configured"""
        return bool(self.settings.AMADEUS_API_KEY and self.settings.AMADEUS_API_SECRET)

    @property
    def base_url(self) -> str:
        """Get API host (test or production)"""
        return self.settings.AMADEUS_BASE_URL.rstrip("/")

    def _token_is_valid(self) -> bool:
        return self._token is not None and self._clock() < self._token_expires_at

    def invalidate_token(self):
        self._token = None
        self._token_expires_at = 0.0

    async def _get_token(self) -> str:
        """Get or refresh the OAuth access token; one refresh in flight at a time"""
        if self._token_is_valid():
            return self._token

        async with self._token_lock:
            # Another caller may have refreshed while we waited
            if self._token_is_valid():
                return self._token

            try:
                data = await self._request_token()
            except httpx.TimeoutException as e:
                raise ProviderTimeoutError(self.name, "Token request timed out", e)
            except httpx.HTTPError as e:
                raise ProviderError(self.name, f"Token request failed: {e}", e)

            try:
                self._token = data["access_token"]
                expires_in = int(data["expires_in"])
            except (KeyError, TypeError, ValueError) as e:
                raise AuthenticationError(self.name, "Token response missing access_token/expires_in", e)

            self._token_expires_at = self._clock() + expires_in - TOKEN_EXPIRY_MARGIN
            logger.info(f"Amadeus access token refreshed, valid for {expires_in - TOKEN_EXPIRY_MARGIN}s")
            return self._token

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _request_token(self) -> Dict[str, Any]:
        response = await self.client.post(
            f"{self.base_url}/v1/security/oauth2/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.settings.AMADEUS_API_KEY,
                "client_secret": self.settings.AMADEUS_API_SECRET,
            },
            timeout=10.0,
        )
        if response.status_code == 429:
            raise RateLimitError(self.name, "Token request rate limited")
        if not response.is_success:
            raise AuthenticationError(
                self.name, f"Token request rejected: HTTP {response.status_code}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise AuthenticationError(self.name, "Token response is not valid JSON", e)

    async def search(self, request: SearchRequest) -> Any:
        """Search flights using Amadeus Flight Offers Search (or Inspiration for ANYWHERE)"""
        token = await self._get_token()
        headers = {"Authorization": f"Bearer {token}"}

        if request.is_anywhere:
            url = f"{self.base_url}/v1/shopping/flight-destinations"
            params = self._inspiration_params(request)
        else:
            url = f"{self.base_url}/v2/shopping/flight-offers"
            params = self._offer_params(request)

        try:
            return await self._get_json(url, params=params, headers=headers)
        except AuthenticationError:
            # Token revoked upstream; next call fetches a fresh one
            self.invalidate_token()
            raise

    def _offer_params(self, request: SearchRequest) -> Dict[str, Any]:
        cabin_map = {
            "economy": "ECONOMY",
            "premium_economy": "PREMIUM_ECONOMY",
            "business": "BUSINESS",
            "first": "FIRST",
        }

        params = {
            "originLocationCode": request.origin_code,
            "destinationLocationCode": request.destination_code,
            "departureDate": request.departure_date.isoformat(),
            "adults": request.adults,
            "currencyCode": request.currency,
            "travelClass": cabin_map.get(request.cabin_class.value, "ECONOMY"),
            "max": 50,
        }

        if request.return_date:
            params["returnDate"] = request.return_date.isoformat()
        if request.children:
            params["children"] = request.children
        if request.infants:
            params["infants"] = request.infants
        if request.stops_limit == 0:
            params["nonStop"] = "true"

        return params

    def _inspiration_params(self, request: SearchRequest) -> Dict[str, Any]:
        params = {
            "origin": request.origin_code,
            "departureDate": request.departure_date.isoformat(),
            "maxPrice": INSPIRATION_MAX_PRICE,
        }
        if request.return_date:
            params["duration"] = (request.return_date - request.departure_date).days
        else:
            params["oneWay"] = "true"
        if request.stops_limit == 0:
            params["nonStop"] = "true"
        return params

    def parse(self, payload: Any, request: SearchRequest) -> List[FlightOffer]:
        """Parse Amadeus API response"""
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise MalformedResponseError(self.name, "Response has no 'data' array")

        if request.is_anywhere:
            return self._parse_inspiration(payload, request)

        carriers = (payload.get("dictionaries") or {}).get("carriers") or {}
        booking_url = self._booking_url(request)

        offers = []
        for offer_data in payload["data"]:
            try:
                offers.append(self._parse_offer(offer_data, carriers, request, booking_url))
            except Exception as e:
                logger.warning(f"Failed to parse Amadeus offer: {e}")
                continue

        if payload["data"] and not offers:
            raise MalformedResponseError(self.name, f"None of {len(payload['data'])} offers could be parsed")

        return offers

    def _parse_offer(
        self,
        offer_data: dict,
        carriers: Dict[str, str],
        request: SearchRequest,
        booking_url: str,
    ) -> FlightOffer:
        itineraries = offer_data["itineraries"]
        outbound = itineraries[0]
        inbound = itineraries[1] if len(itineraries) > 1 else None

        outbound_segments = self._parse_segments(outbound["segments"], carriers)
        return_segments = self._parse_segments(inbound["segments"], carriers) if inbound else None

        # Itinerary duration is timezone-correct; local timestamps are not
        duration = parse_iso_duration(outbound.get("duration")) or None

        return FlightOffer.build(
            id=f"amadeus-{offer_data['id']}",
            outbound_segments=outbound_segments,
            return_segments=return_segments,
            amount=offer_data["price"]["total"],
            currency=offer_data["price"].get("currency", request.currency),
            source=self.name,
            booking_url=booking_url,
            duration=duration,
        )

    def _parse_segments(self, segments_data: list, carriers: Dict[str, str]) -> List[FlightSegment]:
        """Parse flight segments"""
        segments = []
        for seg in segments_data:
            carrier_code = seg["carrierCode"]
            segments.append(FlightSegment(
                departure=SegmentEndpoint(
                    airport=format_airport(seg["departure"]["iataCode"]),
                    time=seg["departure"]["at"],
                    terminal=seg["departure"].get("terminal"),
                ),
                arrival=SegmentEndpoint(
                    airport=format_airport(seg["arrival"]["iataCode"]),
                    time=seg["arrival"]["at"],
                    terminal=seg["arrival"].get("terminal"),
                ),
                airline=self._carrier_name(carrier_code, carriers),
                flight_number=f"{carrier_code}{seg['number']}",
                duration=parse_iso_duration(seg.get("duration")),
                aircraft=(seg.get("aircraft") or {}).get("code"),
            ))
        return segments

    def _carrier_name(self, code: str, carriers: Dict[str, str]) -> str:
        name = airline_name(code)
        if name == code and code in carriers:
            return carriers[code].title()
        return name

    def _parse_inspiration(self, payload: dict, request: SearchRequest) -> List[FlightOffer]:
        """
        Turn destination/price pairs into offers.

        Inspiration results carry no itinerary, so each offer gets one
        synthetic segment per direction at fixed times on the travel dates.
        """
        default_currency = (payload.get("meta") or {}).get("currency") or request.currency
        results = payload["data"][:INSPIRATION_MAX_RESULTS]
        offers = []

        for index, item in enumerate(results):
            try:
                origin = item.get("origin", request.origin_code)
                destination = item["destination"]
                departure_date = datetime.fromisoformat(item["departureDate"]).date()
                return_date = (
                    datetime.fromisoformat(item["returnDate"]).date() if item.get("returnDate") else None
                )

                outbound = [self._synthetic_segment(
                    origin, destination, departure_date, INSPIRATION_OUTBOUND_HOUR, f"INSP{1000 + index}"
                )]
                inbound = None
                if return_date:
                    inbound = [self._synthetic_segment(
                        destination, origin, return_date, INSPIRATION_RETURN_HOUR, f"INSP{2000 + index}"
                    )]

                offers.append(FlightOffer.build(
                    id=f"inspiration-{index}",
                    outbound_segments=outbound,
                    return_segments=inbound,
                    amount=item["price"]["total"],
                    currency=item["price"].get("currency", default_currency),
                    source=self.name,
                    booking_url=search_deeplink(
                        self.settings.SKYSCANNER_WEB_URL,
                        origin,
                        destination,
                        departure_date,
                        return_date,
                        adults=request.adults,
                        cabin_class=request.cabin_class.value,
                        direct_only=request.direct_only,
                    ),
                ))
            except Exception as e:
                logger.warning(f"Failed to parse Amadeus inspiration result: {e}")
                continue

        if results and not offers:
            raise MalformedResponseError(self.name, f"None of {len(results)} destinations could be parsed")

        return offers

    def _synthetic_segment(self, origin, destination, day, hour, flight_number) -> FlightSegment:
        departure = datetime.combine(day, dt_time(hour=hour))
        return FlightSegment(
            departure=SegmentEndpoint(airport=format_airport(origin), time=departure),
            arrival=SegmentEndpoint(
                airport=format_airport(destination),
                time=departure + timedelta(minutes=INSPIRATION_FLIGHT_MINUTES),
            ),
            airline=INSPIRATION_AIRLINE,
            flight_number=flight_number,
            duration=INSPIRATION_FLIGHT_MINUTES,
        )

    def _booking_url(self, request: SearchRequest) -> str:
        """Flight offers carry no booking link; point at a comparable search"""
        return search_deeplink(
            self.settings.SKYSCANNER_WEB_URL,
            request.origin_code,
            request.destination_code,
            request.departure_date,
            request.return_date,
            adults=request.adults,
            cabin_class=request.cabin_class.value,
            direct_only=request.direct_only,
        )

    async def health_check(self) -> bool:
        """Check Amadeus API connectivity"""
        if not self.is_configured:
            return False

        try:
            await self._get_token()
            return True
        except ProviderError:
            return False
