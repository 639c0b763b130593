"""
Flight Search Endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError
from typing import Optional
from datetime import date, datetime, timezone
import logging

from flightsearch.config import settings
from flightsearch.schemas.flight import FlightSearchResponse, SearchRequest
from flightsearch.services.flight_service import FlightService

router = APIRouter()
logger = logging.getLogger(__name__)


def get_flight_service(request: Request) -> FlightService:
    """The application-wide service created at startup"""
    return request.app.state.flight_service


@router.get("/search", response_model=FlightSearchResponse)
async def search_flights(
    origin: str = Query(..., min_length=3, description="Origin airport code(s), comma separated, or 'City (CODE)'"),
    destination: str = Query(..., min_length=3, description="Destination airport code(s), or ANYWHERE"),
    departure_date: date = Query(..., description="Departure date (YYYY-MM-DD)"),
    return_date: Optional[date] = Query(None, description="Return date for round trip"),
    adults: int = Query(1, description="Adult passengers (1-9)"),
    children: int = Query(0, description="Child passengers"),
    infants: int = Query(0, description="Infant passengers"),
    cabin_class: str = Query("economy", description="Cabin class: economy, premium_economy, business, first"),
    currency: Optional[str] = Query(None, description="ISO 4217 currency code"),
    direct_only: bool = Query(False, description="Only show direct flights"),
    max_stops: Optional[int] = Query(None, description="Maximum stops per direction"),
    flight_service: FlightService = Depends(get_flight_service),
):
    """
    Search for flights between airports.

    Always answers with offers: when no provider is configured or the
    provider fails, sample flights are returned and `message` says so.
    """
    try:
        search = SearchRequest(
            origin=origin,
            destination=destination,
            departure_date=departure_date,
            return_date=return_date,
            adults=adults,
            children=children,
            infants=infants,
            cabin_class=cabin_class,
            currency=currency or settings.DEFAULT_CURRENCY,
            direct_only=direct_only,
            max_stops=max_stops,
        )
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in error['loc']) or 'request'}: {error['msg']}"
            for error in e.errors()
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=errors,
        )

    logger.info(f"Searching flights: {search.origin_code} -> {search.destination_code} on {search.departure_date}")

    result = await flight_service.search_flights(search)

    return FlightSearchResponse(
        origin=search.origin,
        destination=search.destination,
        departure_date=search.departure_date,
        return_date=search.return_date,
        adults=search.adults,
        children=search.children,
        infants=search.infants,
        cabin_class=search.cabin_class,
        flights=result.offers,
        total_results=len(result.offers),
        message=result.message,
        source=result.source,
        searched_at=datetime.now(timezone.utc),
    )
