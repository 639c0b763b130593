"""
Flight Search Service - Single entry point for flight searches

Picks the configured provider, bounds the call with a timeout, and falls
back to mock offers on any failure. Callers never see a provider error.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple
import asyncio
import logging
import random
import time

from flightsearch.config import Settings, get_settings
from flightsearch.schemas.flight import FlightOffer, SearchRequest
from flightsearch.services.mock_offers import MockOfferGenerator
from flightsearch.services.providers import (
    FlightProvider,
    ProviderError,
    ProviderManager,
    RateLimitError,
)

logger = logging.getLogger(__name__)

MOCK_SOURCE = "mock"

MESSAGE_UNCONFIGURED = "Showing sample flights: no flight data provider is configured."
MESSAGE_FORCED = "Showing sample flights: mock data is enabled."
MESSAGE_FALLBACK = "Live prices are unavailable right now ({reason}), showing sample flights instead."


@dataclass
class SearchResult:
    """Offers plus an optional note explaining degraded data"""
    offers: List[FlightOffer]
    source: str
    message: Optional[str] = None


def sort_by_price(offers: List[FlightOffer]) -> List[FlightOffer]:
    """Ascending by price; equal prices keep their provider order"""
    return sorted(offers, key=lambda offer: offer.price.amount)


def apply_stop_limit(offers: List[FlightOffer], request: SearchRequest) -> List[FlightOffer]:
    limit = request.stops_limit
    if limit is None:
        return offers
    return [offer for offer in offers if offer.stops <= limit]


class FlightService:
    """
    Service for searching flights through the configured provider.

    Owns the provider manager (and with it the request cache, the token
    cache and the HTTP client). Construct once per application and call
    aclose() on shutdown.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        manager: Optional[ProviderManager] = None,
        mock_generator: Optional[MockOfferGenerator] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or get_settings()
        self.manager = manager or ProviderManager(self.settings)
        self.mock_generator = mock_generator or MockOfferGenerator(
            rng=rng,
            count=self.settings.MOCK_OFFER_COUNT,
            web_url=self.settings.SKYSCANNER_WEB_URL,
        )

    async def search_flights(self, request: SearchRequest) -> SearchResult:
        """
        Search for flights.

        Never raises for provider trouble: missing credentials, forced mock
        mode and every provider failure produce mock offers with a message.
        A provider reporting no flights yields an empty result.

        Args:
            request: Validated search parameters

        Returns:
            SearchResult with offers sorted ascending by price
        """
        if self.settings.USE_MOCK_FLIGHTS:
            logger.info("Mock flights enabled, skipping providers")
            return self._mock_result(request, MESSAGE_FORCED)

        provider = self.manager.select_provider()
        if provider is None:
            logger.info("No flight provider configured, using mock flight data")
            return self._mock_result(request, MESSAGE_UNCONFIGURED)

        offers, failure = await self._search_provider(provider, request)
        if failure is not None:
            return self._mock_result(request, MESSAGE_FALLBACK.format(reason=failure))

        offers = apply_stop_limit(offers, request)
        return SearchResult(offers=sort_by_price(offers), source=provider.name)

    async def _search_provider(
        self,
        provider: FlightProvider,
        request: SearchRequest,
    ) -> Tuple[List[FlightOffer], Optional[str]]:
        """Run one provider search; returns the offers or a failure reason"""
        start = time.perf_counter()
        route = f"{request.origin_code}->{request.destination_code}"

        try:
            offers = await asyncio.wait_for(
                provider.fetch_offers(request),
                timeout=self.settings.SEARCH_TIMEOUT,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"{provider.name} search {route} timed out after {self.settings.SEARCH_TIMEOUT}s")
            provider.record_failure(e)
            return self._failed(provider, "timeout")
        except RateLimitError as e:
            logger.warning(f"{provider.name} rate limited on {route}: {e.message}")
            return self._failed(provider, e.category)
        except ProviderError as e:
            logger.warning(f"{provider.name} search {route} failed ({e.category}): {e.message}")
            return self._failed(provider, e.category)
        except Exception as e:
            logger.error(f"Unexpected error searching {provider.name} for {route}: {e}", exc_info=True)
            return self._failed(provider, "unexpected error")

        elapsed_ms = (time.perf_counter() - start) * 1000
        self.manager.record_search(provider.name, True, len(offers), elapsed_ms)
        return offers, None

    def _failed(self, provider: FlightProvider, reason: str) -> Tuple[List[FlightOffer], str]:
        self.manager.record_search(provider.name, False)
        return [], reason

    def _mock_result(self, request: SearchRequest, message: str) -> SearchResult:
        offers = apply_stop_limit(self.mock_generator.generate(request), request)
        return SearchResult(offers=sort_by_price(offers), source=MOCK_SOURCE, message=message)

    async def aclose(self):
        """Release the HTTP client and drop cached responses"""
        await self.manager.aclose()
