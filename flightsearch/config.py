"""
Application Configuration - Environment Variables & Settings
"""
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """
    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # CORS - stored as comma-separated string
    ALLOWED_ORIGINS_STR: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        alias="ALLOWED_ORIGINS"
    )

    @computed_field
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        """Parse comma-separated origins into list"""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS_STR.split(',') if origin.strip()]

    # Flight APIs - GDS: Amadeus (OAuth2 client credentials)
    AMADEUS_API_KEY: str = Field(default="")
    AMADEUS_API_SECRET: str = Field(default="")
    # Use True for sandbox/test API, False for production API
    AMADEUS_USE_TEST_API: bool = Field(default=True)

    @computed_field
    @property
    def AMADEUS_BASE_URL(self) -> str:
        """Get Amadeus API host based on environment"""
        if self.AMADEUS_USE_TEST_API:
            return "https://test.api.amadeus.com"
        return "https://api.amadeus.com"

    # Flight APIs - Itinerary graph (Skyscanner data via flightapi.io)
    FLIGHTAPI_KEY: str = Field(default="")
    FLIGHTAPI_BASE_URL: str = Field(default="https://api.flightapi.io")
    SKYSCANNER_WEB_URL: str = Field(default="https://www.skyscanner.com")

    # Flight APIs - Simplified REST: Kiwi.com (Tequila API)
    KIWI_API_KEY: str = Field(default="")
    KIWI_BASE_URL: str = Field(default="https://api.tequila.kiwi.com/v2")

    # Provider selection: "amadeus", "skyscanner", "kiwi" or "auto"
    FLIGHT_PROVIDER: str = Field(default="auto")

    # Mock data
    USE_MOCK_FLIGHTS: bool = Field(default=False)
    MOCK_OFFER_COUNT: int = Field(default=12)

    DEFAULT_CURRENCY: str = Field(default="EUR")

    # Upstream calls
    REQUEST_CACHE_TTL: float = Field(default=30.0)  # seconds
    PROVIDER_TIMEOUT: float = Field(default=60.0)  # per HTTP call, large payloads
    SEARCH_TIMEOUT: float = Field(default=60.0)  # whole adapter call

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
