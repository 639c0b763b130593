"""
Flight Search Providers - Interchangeable data sources for flight searches
"""
from .base import (
    AuthenticationError,
    FlightProvider,
    MalformedResponseError,
    NoResultsError,
    ProviderError,
    ProviderStatus,
    ProviderTimeoutError,
    RateLimitError,
)
from .amadeus import AmadeusProvider
from .skyscanner import SkyscannerProvider
from .kiwi import KiwiProvider
from .manager import ProviderManager

__all__ = [
    "FlightProvider",
    "ProviderStatus",
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "NoResultsError",
    "MalformedResponseError",
    "ProviderTimeoutError",
    "AmadeusProvider",
    "SkyscannerProvider",
    "KiwiProvider",
    "ProviderManager",
]
