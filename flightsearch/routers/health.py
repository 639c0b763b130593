"""
Health Check Endpoints
"""
from fastapi import APIRouter, Depends

from flightsearch.routers.flights import get_flight_service
from flightsearch.services.flight_service import FlightService

router = APIRouter()


@router.get("/health")
async def health_check(flight_service: FlightService = Depends(get_flight_service)):
    """Basic health check"""
    provider = flight_service.manager.select_provider()
    return {
        "status": "healthy",
        "service": "flightsearch-api",
        "mode": "mock" if flight_service.settings.USE_MOCK_FLIGHTS or provider is None else "live",
        "provider": provider.name if provider else None,
    }


@router.get("/health/live")
async def liveness_check():
    """Liveness check - is the service running"""
    return {"status": "alive"}


@router.get("/health/providers")
async def providers_check(flight_service: FlightService = Depends(get_flight_service)):
    """
    Provider status - configuration, health and search statistics
    """
    return {
        "providers": flight_service.manager.get_provider_stats(),
        "cache_entries": len(flight_service.manager.cache),
    }
