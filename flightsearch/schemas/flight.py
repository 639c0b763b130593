"""
Flight Schemas
"""
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

from flightsearch.services.reference_data import ANYWHERE, airline_logo_path, extract_iata_code
from flightsearch.utils.itinerary import count_stops, stay_duration, total_duration

# UTC-12:00 to UTC+14:00
MAX_UTC_OFFSET_SPREAD = timedelta(hours=26)


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CabinClass(str, Enum):
    ECONOMY = "economy"
    PREMIUM_ECONOMY = "premium_economy"
    BUSINESS = "business"
    FIRST = "first"


class SearchRequest(CamelModel):
    """Trip parameters for one flight search"""
    origin: List[str] = Field(..., min_length=1)
    destination: List[str] = Field(..., min_length=1)
    departure_date: date
    return_date: Optional[date] = None
    adults: int = Field(1, ge=1, le=9)
    children: int = Field(0, ge=0, le=9)
    infants: int = Field(0, ge=0, le=9)
    cabin_class: CabinClass = CabinClass.ECONOMY
    currency: str = Field("EUR", pattern=r"^[A-Z]{3}$")
    direct_only: bool = False
    max_stops: Optional[int] = Field(None, ge=0)

    @field_validator("origin", "destination", mode="before")
    @classmethod
    def _normalize_codes(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            raise ValueError("Expected airport codes as a string or a list")
        codes = [str(item).strip() for item in value if item is not None]
        return [extract_iata_code(code) for code in codes if code]

    @field_validator("cabin_class", mode="before")
    @classmethod
    def _normalize_cabin(cls, value):
        if isinstance(value, str):
            value = value.strip().lower().replace(" ", "_").replace("-", "_")
            if value == "premium":
                value = CabinClass.PREMIUM_ECONOMY.value
        return value

    @field_validator("currency", mode="before")
    @classmethod
    def _upper_currency(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_dates(self):
        if self.return_date and self.return_date < self.departure_date:
            raise ValueError("Return date must not precede departure date")
        return self

    @property
    def origin_code(self) -> str:
        return self.origin[0]

    @property
    def destination_code(self) -> str:
        return self.destination[0]

    @property
    def is_round_trip(self) -> bool:
        return self.return_date is not None

    @property
    def is_anywhere(self) -> bool:
        return self.destination_code == ANYWHERE

    @property
    def stops_limit(self) -> Optional[int]:
        """Maximum stops an offer may have, None when unconstrained"""
        if self.direct_only:
            return 0
        return self.max_stops


class SegmentEndpoint(CamelModel):
    airport: str  # "<City> (<CODE>)"
    time: datetime
    terminal: Optional[str] = None


class FlightSegment(CamelModel):
    """A single non-stop flight"""
    departure: SegmentEndpoint
    arrival: SegmentEndpoint
    airline: str
    airline_logo: Optional[str] = None
    flight_number: str
    duration: int  # minutes
    aircraft: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self):
        """
        Arrival must follow departure.

        Timestamps with an offset are compared directly. Naive timestamps are
        local wall-clock times at each airport, so an eastbound flight over
        the date line can land "before" it took off; those are accepted when
        the flight time is positive and the wall-clock gap is within the
        widest UTC offset spread.
        """
        departure, arrival = self.departure.time, self.arrival.time
        if (departure.tzinfo is None) != (arrival.tzinfo is None):
            raise ValueError(f"Segment {self.flight_number} mixes local and UTC timestamps")

        if arrival <= departure:
            wall_clock = departure.tzinfo is None and arrival - departure > -MAX_UTC_OFFSET_SPREAD
            if not (wall_clock and self.duration > 0):
                raise ValueError(
                    f"Segment {self.flight_number} arrives before it departs "
                    f"({departure.isoformat()} -> {arrival.isoformat()})"
                )
        if self.airline_logo is None:
            self.airline_logo = airline_logo_path(self.airline)
        return self


class Price(CamelModel):
    amount: Decimal
    currency: str = "EUR"

    @field_validator("amount", mode="after")
    @classmethod
    def _round_amount(cls, value: Decimal) -> Decimal:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @field_serializer("amount", when_used="json")
    def _amount_as_number(self, value: Decimal) -> float:
        return float(value)


class FlightOffer(CamelModel):
    """A complete, priced flight offer"""
    id: str
    outbound_segments: List[FlightSegment] = Field(..., min_length=1)
    return_segments: Optional[List[FlightSegment]] = None
    price: Price
    total_duration: int  # minutes
    stops: int
    booking_url: str = "#"
    stay_duration: Optional[int] = None  # days
    source: str  # "amadeus", "skyscanner", "kiwi", "mock"

    @classmethod
    def build(
        cls,
        id: str,
        outbound_segments: List[FlightSegment],
        return_segments: Optional[List[FlightSegment]],
        amount,
        currency: str,
        source: str,
        booking_url: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> "FlightOffer":
        """Create an offer, deriving stops, stay length and (unless given) duration"""
        return_segments = return_segments or None
        return cls(
            id=id,
            outbound_segments=outbound_segments,
            return_segments=return_segments,
            price=Price(amount=Decimal(str(amount)), currency=currency),
            total_duration=duration if duration is not None else total_duration(outbound_segments),
            stops=count_stops(outbound_segments),
            booking_url=booking_url or "#",
            stay_duration=stay_duration(outbound_segments, return_segments),
            source=source,
        )


class FlightSearchResponse(CamelModel):
    """Flight search response"""
    origin: List[str]
    destination: List[str]
    departure_date: date
    return_date: Optional[date]
    adults: int
    children: int
    infants: int
    cabin_class: CabinClass

    flights: List[FlightOffer]
    total_results: int

    message: Optional[str] = None
    source: str
    searched_at: datetime
