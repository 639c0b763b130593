"""
Flight Search API - Main Application Entry Point
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse, Response
import time
import logging

# Prometheus metrics
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST, REGISTRY

from flightsearch import __version__
from flightsearch.config import settings
from flightsearch.routers import flights, health
from flightsearch.services.flight_service import FlightService

# Define Prometheus metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

REQUEST_LATENCY = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint']
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager - owns the flight service (HTTP client,
    token cache and request cache) for the life of the process
    """
    # Startup
    logger.info("Starting Flight Search API...")

    app.state.flight_service = FlightService(settings)
    provider = app.state.flight_service.manager.select_provider()
    if settings.USE_MOCK_FLIGHTS or provider is None:
        logger.info("Serving mock flight data")
    else:
        logger.info(f"Serving flights from {provider.name}")

    yield

    # Shutdown
    logger.info("Shutting down Flight Search API...")
    await app.state.flight_service.aclose()
    logger.info("Cleanup completed")


# Create FastAPI application
app = FastAPI(
    title="Flight Search API",
    description="""
    ## Flight Search Aggregation API

    Normalizes offers from Amadeus, Skyscanner and Kiwi.com into one offer
    shape, sorted by price. Falls back to sample data when no provider is
    configured or the provider fails.
    """,
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware with Prometheus metrics
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    # Record metrics (skip /metrics endpoint to avoid recursion)
    if request.url.path != "/metrics":
        endpoint = request.url.path
        method = request.method
        status = response.status_code

        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
        REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(process_time)

    response.headers["X-Process-Time"] = str(process_time)
    return response


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(flights.router, prefix="/flights", tags=["Flights"])


@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint - API information"""
    return {
        "name": "Flight Search API",
        "version": __version__,
        "status": "running",
        "docs": "/docs" if settings.DEBUG else "disabled",
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint"""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST
    )
