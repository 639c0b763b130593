"""
Itinerary helpers - durations, stops and stay length derived from segment times
"""
from typing import Optional, Sequence, TYPE_CHECKING
import math
import re

if TYPE_CHECKING:
    from flightsearch.schemas.flight import FlightSegment

SECONDS_PER_DAY = 24 * 60 * 60

ISO_DURATION_RE = re.compile(r"P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?")


def total_duration(segments: Sequence["FlightSegment"]) -> int:
    """Minutes from the first departure to the last arrival, floored"""
    if not segments:
        return 0
    elapsed = segments[-1].arrival.time - segments[0].departure.time
    return math.floor(elapsed.total_seconds() / 60)


def stay_duration(
    outbound_segments: Sequence["FlightSegment"],
    return_segments: Optional[Sequence["FlightSegment"]],
) -> Optional[int]:
    """Days between outbound arrival and return departure, rounded up"""
    if not return_segments or not outbound_segments:
        return None
    gap = return_segments[0].departure.time - outbound_segments[-1].arrival.time
    return math.ceil(gap.total_seconds() / SECONDS_PER_DAY)


def count_stops(segments: Sequence["FlightSegment"]) -> int:
    return max(len(segments) - 1, 0)


def parse_iso_duration(value: Optional[str]) -> int:
    """Parse ISO 8601 duration (PT2H30M, P1DT2H) to minutes"""
    if not value:
        return 0
    match = ISO_DURATION_RE.fullmatch(value)
    if not match:
        return 0
    days = int(match.group(1) or 0)
    hours = int(match.group(2) or 0)
    minutes = int(match.group(3) or 0)
    return days * 24 * 60 + hours * 60 + minutes
