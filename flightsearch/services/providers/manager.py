"""
Provider Manager - Owns the flight search providers and picks the active one
"""
from typing import Dict, List, Optional
from collections import defaultdict
import logging

import httpx

from flightsearch.config import Settings, get_settings
from flightsearch.utils.request_cache import RequestCache
from .base import FlightProvider
from .amadeus import AmadeusProvider
from .skyscanner import SkyscannerProvider
from .kiwi import KiwiProvider

logger = logging.getLogger(__name__)

AUTO = "auto"


class ProviderManager:
    """
    Manages the flight search providers:
    - One shared request cache and HTTP client
    - Provider selection from configuration
    - Provider health and search statistics
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[RequestCache] = None,
        client: Optional[httpx.AsyncClient] = None,
        providers: Optional[List[FlightProvider]] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache or RequestCache(ttl_seconds=self.settings.REQUEST_CACHE_TTL)

        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=self.settings.PROVIDER_TIMEOUT)
        self.client = client

        if providers is None:
            providers = [
                AmadeusProvider(self.settings, self.cache, client),
                SkyscannerProvider(self.settings, self.cache, client),
                KiwiProvider(self.settings, self.cache, client),
            ]

        # Sort by priority (lower = higher priority)
        self._providers: List[FlightProvider] = sorted(providers, key=lambda p: p.priority)

        # Track provider stats
        self._search_stats: Dict[str, Dict] = defaultdict(lambda: {
            "total_searches": 0,
            "successful_searches": 0,
            "total_results": 0,
            "avg_response_time_ms": 0,
        })

    @property
    def providers(self) -> List[FlightProvider]:
        """Get all registered providers"""
        return self._providers

    @property
    def configured_providers(self) -> List[FlightProvider]:
        """Get providers that have credentials"""
        return [p for p in self._providers if p.is_configured]

    def get_provider(self, name: str) -> Optional[FlightProvider]:
        """Get a specific provider by name"""
        for provider in self._providers:
            if provider.name == name:
                return provider
        return None

    def select_provider(self) -> Optional[FlightProvider]:
        """
        The provider searches should use, or None for mock mode.

        FLIGHT_PROVIDER names one provider; "auto" takes the highest
        priority configured one.
        """
        choice = self.settings.FLIGHT_PROVIDER.strip().lower()

        if choice == AUTO:
            configured = self.configured_providers
            return configured[0] if configured else None

        provider = self.get_provider(choice)
        if provider is None:
            logger.warning(f"Unknown FLIGHT_PROVIDER '{choice}'")
            return None
        if not provider.is_configured:
            logger.info(f"{provider.name} provider selected but not configured")
            return None
        return provider

    def record_search(
        self,
        provider_name: str,
        success: bool,
        result_count: int = 0,
        response_time_ms: float = 0,
    ):
        """Update provider statistics"""
        stats = self._search_stats[provider_name]
        stats["total_searches"] += 1

        if success:
            stats["successful_searches"] += 1
            stats["total_results"] += result_count

            # Rolling average response time
            n = stats["successful_searches"]
            old_avg = stats["avg_response_time_ms"]
            stats["avg_response_time_ms"] = old_avg + (response_time_ms - old_avg) / n

    def get_provider_stats(self) -> Dict[str, Dict]:
        """Get statistics for all providers"""
        result = {}

        for provider in self._providers:
            stats = self._search_stats[provider.name].copy()
            stats["status"] = provider.status.value
            stats["is_configured"] = provider.is_configured
            stats["is_available"] = provider.is_available
            stats["priority"] = provider.priority

            if stats["total_searches"] > 0:
                stats["success_rate"] = (
                    stats["successful_searches"] / stats["total_searches"] * 100
                )
            else:
                stats["success_rate"] = 0.0

            result[provider.name] = stats

        return result

    async def health_check(self) -> Dict[str, bool]:
        """Check health of all providers"""
        results = {}

        for provider in self._providers:
            try:
                results[provider.name] = await provider.health_check()
            except Exception as e:
                logger.warning(f"{provider.name} health check failed: {e}")
                results[provider.name] = False

        return results

    def reset_provider(self, provider_name: str):
        """Reset a provider's status (e.g., after fixing an issue)"""
        provider = self.get_provider(provider_name)
        if provider:
            provider.reset_status()
            logger.info(f"Reset {provider_name} provider status")

    async def aclose(self):
        for provider in self._providers:
            await provider.aclose()
        if self._owns_client:
            await self.client.aclose()
        self.cache.clear()
