"""
Base Flight Provider - Abstract interface for all flight search providers
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from datetime import datetime, time, timedelta
from enum import Enum
import logging

import httpx

from flightsearch.config import Settings, get_settings
from flightsearch.schemas.flight import FlightOffer, FlightSegment, SearchRequest, SegmentEndpoint
from flightsearch.services.reference_data import UNKNOWN_AIRLINE_CODE, UNKNOWN_AIRPORT_CODE, format_airport
from flightsearch.utils.request_cache import RequestCache, redact_url

logger = logging.getLogger(__name__)


class ProviderStatus(Enum):
    """Provider health status"""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


class ProviderError(Exception):
    """Exception raised when a provider fails"""
    category = "error"

    def __init__(self, provider_name: str, message: str, original_error: Optional[Exception] = None):
        self.provider_name = provider_name
        self.message = message
        self.original_error = original_error
        super().__init__(f"{provider_name}: {message}")


class AuthenticationError(ProviderError):
    """Credentials rejected by the provider"""
    category = "authentication failed"


class RateLimitError(ProviderError):
    """Provider signalled quota exhaustion (HTTP 429)"""
    category = "rate limited"


class NoResultsError(ProviderError):
    """Well-formed empty result; adapters turn this into an empty offer list"""
    category = "no results"


class MalformedResponseError(ProviderError):
    """Payload could not be decoded or did not match the expected schema"""
    category = "malformed response"


class ProviderTimeoutError(ProviderError):
    category = "timeout"


class FlightProvider(ABC):
    """
    Abstract base class for flight search providers.

    A provider turns a SearchRequest into a raw upstream payload (search)
    and that payload into normalized offers (parse). fetch_offers runs both
    and maps every failure onto a ProviderError subclass.
    """

    # Provider identification
    name: str = "base"
    priority: int = 0  # Lower number = higher priority

    # Statuses that count as an empty but valid result
    no_results_statuses: tuple = ()

    _max_failures_before_degraded: int = 3
    _max_failures_before_unavailable: int = 10

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[RequestCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache or RequestCache(ttl_seconds=self.settings.REQUEST_CACHE_TTL)
        self._client = client
        self._owns_client = client is None
        self._status = ProviderStatus.HEALTHY
        self._consecutive_failures = 0

    @property
    def status(self) -> ProviderStatus:
        """Get current provider status"""
        return self._status

    @property
    def is_available(self) -> bool:
        """Check if provider is available for requests"""
        return self._status != ProviderStatus.UNAVAILABLE

    @property
    def is_configured(self) -> bool:
        """Check if provider has required configuration (API keys, etc.)"""
        return True  # Override in subclasses

    def record_success(self):
        """Record a successful request"""
        self._consecutive_failures = 0
        self._status = ProviderStatus.HEALTHY

    def record_failure(self, error: Exception):
        """Record a failed request"""
        self._consecutive_failures += 1
        logger.warning(f"{self.name} provider failure #{self._consecutive_failures}: {error}")

        if self._consecutive_failures >= self._max_failures_before_unavailable:
            self._status = ProviderStatus.UNAVAILABLE
            logger.error(f"{self.name} provider marked as UNAVAILABLE after {self._consecutive_failures} failures")
        elif self._consecutive_failures >= self._max_failures_before_degraded:
            self._status = ProviderStatus.DEGRADED
            logger.warning(f"{self.name} provider marked as DEGRADED after {self._consecutive_failures} failures")

    def reset_status(self):
        """Reset provider status (e.g., after manual recovery)"""
        self._consecutive_failures = 0
        self._status = ProviderStatus.HEALTHY

    @abstractmethod
    async def search(self, request: SearchRequest) -> Any:
        """
        Call the upstream API for a search.

        Returns:
            The decoded provider payload

        Raises:
            ProviderError: If the call fails
        """
        pass

    @abstractmethod
    def parse(self, payload: Any, request: SearchRequest) -> List[FlightOffer]:
        """Normalize a provider payload into flight offers"""
        pass

    async def fetch_offers(self, request: SearchRequest) -> List[FlightOffer]:
        """
        Search and parse.

        Returns an empty list when the provider reports no results.

        Raises:
            ProviderError: For every other failure
        """
        if not self.is_configured:
            raise AuthenticationError(self.name, "API credentials not configured")

        try:
            payload = await self.search(request)
            offers = self.parse(payload, request)
        except NoResultsError:
            logger.info(f"{self.name} found no flights for {request.origin_code}->{request.destination_code}")
            self.record_success()
            return []
        except ProviderError as e:
            self.record_failure(e)
            raise
        except Exception as e:
            self.record_failure(e)
            raise MalformedResponseError(self.name, f"Failed to parse response: {e}", e)

        self.record_success()
        logger.info(f"{self.name} returned {len(offers)} offers for {request.origin_code}->{request.destination_code}")
        return offers

    async def health_check(self) -> bool:
        """
        Check if the provider is healthy and responsive.

        Default implementation only checks configuration.
        """
        return self.is_configured

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.PROVIDER_TIMEOUT)
        return self._client

    async def aclose(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """GET a JSON document through the request cache, keyed by the resolved URL"""
        cache_key = str(httpx.URL(url, params=params))
        return await self.cache.get_or_create(
            cache_key,
            lambda: self._fetch_json(url, params=params, headers=headers),
        )

    async def _fetch_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        try:
            response = await self.client.get(
                url,
                params=params,
                headers={"Accept": "application/json", **(headers or {})},
                timeout=self.settings.PROVIDER_TIMEOUT,
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, f"Request timed out after {self.settings.PROVIDER_TIMEOUT}s", e)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"Network error: {e}", e)

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(self.name, "Response is not valid JSON", e)

        logger.debug(f"{self.name} response from {redact_url(str(response.url))}: {len(response.content)} bytes")
        return data

    def _raise_for_status(self, response: httpx.Response):
        """Map an HTTP error status onto the provider error taxonomy"""
        if response.is_success:
            return

        code = response.status_code
        detail = response.text[:500]

        if code in self.no_results_statuses:
            raise NoResultsError(self.name, f"HTTP {code}: no flights found")
        if code in (401, 403):
            raise AuthenticationError(self.name, f"HTTP {code}: {detail}")
        if code == 429:
            raise RateLimitError(self.name, f"HTTP {code}: request quota exceeded")
        raise ProviderError(self.name, f"HTTP {code}: {detail}")


def placeholder_segment(request: SearchRequest) -> FlightSegment:
    """
    Stand-in segment for legs that cannot be resolved.

    Keeps an offer valid when the provider references missing entities.
    """
    departure = datetime.combine(request.departure_date, time(hour=0))
    return FlightSegment(
        departure=SegmentEndpoint(airport=format_airport(UNKNOWN_AIRPORT_CODE, "Unknown"), time=departure),
        arrival=SegmentEndpoint(airport=format_airport(UNKNOWN_AIRPORT_CODE, "Unknown"), time=departure + timedelta(hours=2)),
        airline=UNKNOWN_AIRLINE_CODE,
        flight_number=f"{UNKNOWN_AIRLINE_CODE}0000",
        duration=120,
    )
