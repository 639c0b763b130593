from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest

from flightsearch.schemas.flight import SearchRequest
from flightsearch.services.providers import (
    MalformedResponseError,
    ProviderError,
    ProviderStatus,
    RateLimitError,
    SkyscannerProvider,
)
from flightsearch.services.providers.skyscanner import parse_graph_time


@pytest.fixture
def settings(make_settings):
    return make_settings(FLIGHTAPI_KEY="testkey", FLIGHT_PROVIDER="skyscanner")


@pytest.fixture
def provider(settings):
    return SkyscannerProvider(settings)


@pytest.fixture
def london_barcelona():
    return SearchRequest(
        origin="LHR",
        destination="BCN",
        departure_date=date(2025, 6, 1),
        return_date=date(2025, 6, 8),
    )


def test_round_trip_url(provider, london_barcelona):
    assert provider.build_url(london_barcelona) == (
        "https://api.flightapi.io/roundtrip/testkey/LHR/BCN/2025-06-01/2025-06-08/1/0/0/economy/EUR"
    )


def test_one_way_url(provider):
    request = SearchRequest(
        origin="LHR",
        destination="BCN",
        departure_date=date(2025, 6, 1),
        adults=2,
        infants=1,
        cabin_class="business",
        currency="GBP",
    )
    assert provider.build_url(request) == (
        "https://api.flightapi.io/onewaytrip/testkey/LHR/BCN/2025-06-01/2/0/1/business/GBP"
    )


def test_parse_graph_time_formats():
    assert parse_graph_time("2506081830") == datetime(2025, 6, 8, 18, 30)
    assert parse_graph_time("2025-06-08T18:30:00") == datetime(2025, 6, 8, 18, 30)
    assert parse_graph_time("2025-06-08T18:30:00Z") == datetime(2025, 6, 8, 18, 30)
    assert parse_graph_time("2025-06-08T18:30:00+02:00") == datetime(2025, 6, 8, 16, 30)
    assert parse_graph_time(datetime(2025, 6, 8, 18, 30, tzinfo=timezone.utc)).tzinfo is None


def test_resolves_graph(provider, skyscanner_graph, london_barcelona):
    offers = provider.parse(skyscanner_graph, london_barcelona)

    assert len(offers) == 1
    offer = offers[0]
    assert offer.id == "skyscanner-it-1"
    assert offer.source == "skyscanner"
    assert offer.price.amount == Decimal("187.40")
    assert offer.price.currency == "EUR"

    outbound = offer.outbound_segments[0]
    assert outbound.departure.airport == "London (LHR)"
    assert outbound.arrival.airport == "Barcelona (BCN)"
    assert outbound.airline == "British Airways"
    assert outbound.flight_number == "BA478"
    assert outbound.duration == 125

    inbound = offer.return_segments[0]
    assert inbound.departure.time == datetime(2025, 6, 8, 18, 30)
    assert inbound.airline == "Ryanair"
    assert inbound.flight_number == "FR1234"
    assert inbound.duration == 85

    assert offer.stops == 0
    assert offer.total_duration == 185
    assert offer.stay_duration == 8
    assert offer.booking_url == "https://www.skyscanner.com/transport_deeplink/4.0/UK/en-GB/EUR/ba/2/LHR/BCN"


def test_absolute_booking_url_is_kept(provider, skyscanner_graph, london_barcelona):
    skyscanner_graph["itineraries"][0]["pricing_options"][0]["items"][0]["url"] = "https://partner.example/book/1"
    offer = provider.parse(skyscanner_graph, london_barcelona)[0]
    assert offer.booking_url == "https://partner.example/book/1"


def test_missing_booking_url_builds_search_link(provider, skyscanner_graph, london_barcelona):
    del skyscanner_graph["itineraries"][0]["pricing_options"][0]["items"]
    offer = provider.parse(skyscanner_graph, london_barcelona)[0]
    assert offer.booking_url.startswith("https://www.skyscanner.com/transport/flights/lhr/bcn/250601/250608/")


def test_connection_counts_as_stop(provider, skyscanner_graph, london_barcelona):
    skyscanner_graph["segments"].append({
        "id": "s3",
        "origin_place_id": 2,
        "destination_place_id": 1,
        "departure": "2025-06-01T11:30:00",
        "arrival": "2025-06-01T12:50:00",
        "marketing_carrier_id": 881,
        "marketing_flight_number": "479",
    })
    skyscanner_graph["legs"][0]["segment_ids"].append("s3")

    offer = provider.parse(skyscanner_graph, london_barcelona)[0]

    assert offer.stops == 1
    assert offer.total_duration == 350


def test_missing_leg_yields_placeholder(provider, skyscanner_graph, london_barcelona):
    skyscanner_graph["itineraries"][0]["leg_ids"] = ["no-such-leg"]

    offers = provider.parse(skyscanner_graph, london_barcelona)

    assert len(offers) == 1
    offer = offers[0]
    assert len(offer.outbound_segments) == 1
    placeholder = offer.outbound_segments[0]
    assert placeholder.departure.airport == "Unknown (XXX)"
    assert placeholder.airline == "XX"
    assert placeholder.departure.time.date() == date(2025, 6, 1)
    assert offer.stops == 0
    assert offer.return_segments is None
    assert offer.price.amount == Decimal("187.40")


def test_missing_return_leg_degrades_to_one_way(provider, skyscanner_graph, london_barcelona):
    skyscanner_graph["itineraries"][0]["leg_ids"] = ["L1", "no-such-leg"]

    offer = provider.parse(skyscanner_graph, london_barcelona)[0]

    assert offer.return_segments is None
    assert offer.stay_duration is None
    assert offer.outbound_segments[0].flight_number == "BA478"


def test_both_legs_missing_keeps_one_way_placeholder(provider, skyscanner_graph, london_barcelona):
    skyscanner_graph["itineraries"][0]["leg_ids"] = ["gone-out", "gone-back"]

    offer = provider.parse(skyscanner_graph, london_barcelona)[0]

    assert offer.return_segments is None
    assert [seg.flight_number for seg in offer.outbound_segments] == ["XX0000"]
    assert offer.booking_url.startswith("https://www.skyscanner.com/transport/flights/lhr/bcn/")


def test_missing_segment_is_skipped(provider, skyscanner_graph, london_barcelona):
    skyscanner_graph["legs"][0]["segment_ids"] = ["ghost", "s1"]
    offer = provider.parse(skyscanner_graph, london_barcelona)[0]
    assert [seg.flight_number for seg in offer.outbound_segments] == ["BA478"]


def test_unknown_carrier_falls_back_to_placeholder_code(provider, skyscanner_graph, london_barcelona):
    skyscanner_graph["segments"][0]["marketing_carrier_id"] = 99999
    offer = provider.parse(skyscanner_graph, london_barcelona)[0]
    assert offer.outbound_segments[0].flight_number == "XX478"


def test_itinerary_without_price_is_skipped(provider, skyscanner_graph, london_barcelona):
    broken = {"id": "it-2", "leg_ids": ["L1"], "pricing_options": []}
    skyscanner_graph["itineraries"].insert(0, broken)
    offers = provider.parse(skyscanner_graph, london_barcelona)
    assert [offer.id for offer in offers] == ["skyscanner-it-1"]


def test_rejects_payload_without_itineraries(provider, london_barcelona):
    with pytest.raises(MalformedResponseError):
        provider.parse({"places": []}, london_barcelona)
    with pytest.raises(MalformedResponseError):
        provider.parse(["not", "a", "graph"], london_barcelona)


async def test_gone_means_no_flights(settings, mock_client, london_barcelona):
    client = mock_client(lambda request: httpx.Response(410, text="Gone"))
    provider = SkyscannerProvider(settings, client=client)

    assert await provider.fetch_offers(london_barcelona) == []
    assert provider.status is ProviderStatus.HEALTHY


async def test_too_many_requests(settings, mock_client, london_barcelona):
    client = mock_client(lambda request: httpx.Response(429, text="slow down"))
    provider = SkyscannerProvider(settings, client=client)

    with pytest.raises(RateLimitError):
        await provider.fetch_offers(london_barcelona)


async def test_server_error_degrades_provider(settings, mock_client, london_barcelona):
    client = mock_client(lambda request: httpx.Response(503, text="unavailable"))
    provider = SkyscannerProvider(settings, client=client)

    for _ in range(3):
        with pytest.raises(ProviderError):
            await provider.fetch_offers(london_barcelona)

    assert provider.status is ProviderStatus.DEGRADED
    provider.reset_status()
    assert provider.status is ProviderStatus.HEALTHY


async def test_fetch_offers_end_to_end(settings, mock_client, skyscanner_graph, london_barcelona):
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, json=skyscanner_graph)

    provider = SkyscannerProvider(settings, client=mock_client(handler))

    offers = await provider.fetch_offers(london_barcelona)
    again = await provider.fetch_offers(london_barcelona)

    assert seen == ["/roundtrip/testkey/LHR/BCN/2025-06-01/2025-06-08/1/0/0/economy/EUR"]
    assert [offer.id for offer in offers] == [offer.id for offer in again]


def test_invalid_segment_times_are_skipped(provider, skyscanner_graph, london_barcelona):
    segment = skyscanner_graph["segments"][0]
    segment["arrival"] = (datetime(2025, 6, 1, 7, 0) - timedelta(hours=30)).isoformat()
    offer = provider.parse(skyscanner_graph, london_barcelona)[0]
    # Outbound leg no longer resolves
    assert offer.outbound_segments[0].airline == "XX"


def test_missing_outbound_with_utc_return_leg(provider, skyscanner_graph, london_barcelona):
    return_segment = skyscanner_graph["segments"][1]
    return_segment["departure"] = "2025-06-08T10:00:00Z"
    return_segment["arrival"] = "2025-06-08T11:25:00Z"
    skyscanner_graph["itineraries"][0]["leg_ids"] = ["no-such-leg", "L2"]

    offers = provider.parse(skyscanner_graph, london_barcelona)

    assert len(offers) == 1
    offer = offers[0]
    assert offer.outbound_segments[0].airline == "XX"
    assert offer.return_segments[0].departure.time == datetime(2025, 6, 8, 10, 0)
    assert offer.stay_duration == 8


def test_rejects_graph_where_no_itinerary_resolves(provider, london_barcelona):
    payload = {"itineraries": [{"id": "a", "leg_ids": ["x"]}, {"id": "b"}]}
    with pytest.raises(MalformedResponseError):
        provider.parse(payload, london_barcelona)
