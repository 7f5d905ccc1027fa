"""Tests for the location cache and enricher."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from krishi.location.cache import LocationCache, LocationSnapshot
from krishi.location.enricher import (
    LocationEnricher,
    describe_weather,
    format_weather,
)

WEATHER_URL = "https://api.open-meteo.com/v1/forecast"
GEOCODE_URL = "https://nominatim.openstreetmap.org/reverse"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Clock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def _weather_response(
    temperature: float | None = 28.5, code: int = 0, timezone: str = "Asia/Kolkata"
) -> httpx.Response:
    current = {"weathercode": code}
    if temperature is not None:
        current["temperature"] = temperature
    return httpx.Response(
        status_code=200,
        json={"current_weather": current, "timezone": timezone},
        request=httpx.Request("GET", WEATHER_URL),
    )


def _geo_response(address: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        json={"address": address},
        request=httpx.Request("GET", GEOCODE_URL),
    )


def _mock_httpx_client(mock_client_cls: MagicMock, responses: list) -> AsyncMock:
    """Wire up an AsyncClient context-manager mock returning *responses* in order."""
    mock_client = AsyncMock()
    mock_client.get.side_effect = responses
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def enricher(clock: _Clock) -> LocationEnricher:
    return LocationEnricher(
        LocationCache(ttl_seconds=300, clock=clock),
        weather_url=WEATHER_URL,
        geocode_url=GEOCODE_URL,
    )


# ---------------------------------------------------------------------------
# Weather descriptions
# ---------------------------------------------------------------------------


def test_describe_known_codes() -> None:
    assert describe_weather(0) == "Clear"
    assert describe_weather(61) == "Rain"
    assert describe_weather(80) == "Showers"
    assert describe_weather(95) == "Thunderstorm"


def test_describe_unknown_code() -> None:
    assert describe_weather(42) == "Unknown"
    assert describe_weather(None) == "Unknown"


def test_format_weather() -> None:
    assert format_weather(28.5, 2) == "Temp: 28.5°C, Partly cloudy"
    assert format_weather(30.0, 3) == "Temp: 30°C, Overcast"
    assert format_weather(None, 3) == ""


# ---------------------------------------------------------------------------
# LocationCache
# ---------------------------------------------------------------------------


class TestLocationCache:
    def test_fresh_entry_returned(self, clock: _Clock):
        cache = LocationCache(ttl_seconds=300, clock=clock)
        snap = LocationSnapshot(city="Pune", last_updated=clock())
        cache.put((18.5, 73.8), snap)

        clock.now += 299
        assert cache.get_fresh((18.5, 73.8)) is snap

    def test_stale_entry_ignored(self, clock: _Clock):
        cache = LocationCache(ttl_seconds=300, clock=clock)
        cache.put((18.5, 73.8), LocationSnapshot(city="Pune", last_updated=clock()))

        clock.now += 300
        assert cache.get_fresh((18.5, 73.8)) is None
        assert (18.5, 73.8) in cache

    def test_last_write_wins(self, clock: _Clock):
        cache = LocationCache(clock=clock)
        cache.put((1.0, 2.0), LocationSnapshot(city="A", last_updated=clock()))
        cache.put((1.0, 2.0), LocationSnapshot(city="B", last_updated=clock()))

        assert len(cache) == 1
        assert cache.get_fresh((1.0, 2.0)).city == "B"

    def test_missing_key(self):
        assert LocationCache().get_fresh((0.0, 0.0)) is None


# ---------------------------------------------------------------------------
# LocationEnricher
# ---------------------------------------------------------------------------


async def test_enrich_success(enricher: LocationEnricher) -> None:
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        client = _mock_httpx_client(
            mock_cls, [_weather_response(28.5, 1), _geo_response({"city": "Nashik"})]
        )
        snap = await enricher.enrich(19.99, 73.79)

    assert snap.weather_text == "Temp: 28.5°C, Mainly clear"
    assert snap.timezone == "Asia/Kolkata"
    assert snap.city == "Nashik"
    assert client.get.call_count == 2

    weather_call = client.get.call_args_list[0]
    assert weather_call.args[0] == WEATHER_URL
    assert weather_call.kwargs["params"]["current_weather"] == "true"
    assert weather_call.kwargs["params"]["timezone"] == "auto"
    geo_call = client.get.call_args_list[1]
    assert geo_call.kwargs["params"] == {"lat": 19.99, "lon": 73.79, "format": "json"}


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ({"city": "Nashik", "town": "Sinnar", "state": "Maharashtra"}, "Nashik"),
        ({"town": "Sinnar", "state": "Maharashtra"}, "Sinnar"),
        ({"state": "Maharashtra"}, "Maharashtra"),
        ({}, "Unknown"),
    ],
)
async def test_city_priority(enricher: LocationEnricher, address: dict, expected: str) -> None:
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, [_weather_response(), _geo_response(address)])
        snap = await enricher.enrich(1.0, 2.0)

    assert snap.city == expected


async def test_missing_temperature_gives_empty_weather(enricher: LocationEnricher) -> None:
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(
            mock_cls, [_weather_response(temperature=None), _geo_response({"city": "X"})]
        )
        snap = await enricher.enrich(1.0, 2.0)

    assert snap.weather_text == ""


async def test_cache_hit_within_ttl(enricher: LocationEnricher, clock: _Clock) -> None:
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        client = _mock_httpx_client(
            mock_cls, [_weather_response(), _geo_response({"city": "Nashik"})]
        )
        first = await enricher.enrich(19.99, 73.79)
        clock.now += 4 * 60
        second = await enricher.enrich(19.99, 73.79)

    assert second == first
    assert client.get.call_count == 2


async def test_refresh_after_ttl(enricher: LocationEnricher, clock: _Clock) -> None:
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        client = _mock_httpx_client(
            mock_cls,
            [
                _weather_response(20.0),
                _geo_response({"city": "Nashik"}),
                _weather_response(25.0),
                _geo_response({"city": "Nashik"}),
            ],
        )
        first = await enricher.enrich(19.99, 73.79)
        clock.now += 5 * 60 + 1
        second = await enricher.enrich(19.99, 73.79)

    assert client.get.call_count == 4
    assert first.weather_text == "Temp: 20°C, Clear"
    assert second.weather_text == "Temp: 25°C, Clear"


async def test_different_coordinates_are_cached_separately(enricher: LocationEnricher) -> None:
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        client = _mock_httpx_client(
            mock_cls,
            [
                _weather_response(),
                _geo_response({"city": "A"}),
                _weather_response(),
                _geo_response({"city": "B"}),
            ],
        )
        a = await enricher.enrich(1.0, 2.0)
        b = await enricher.enrich(3.0, 4.0)

    assert (a.city, b.city) == ("A", "B")
    assert client.get.call_count == 4
    assert len(enricher.cache) == 2


async def test_weather_failure_falls_back(enricher: LocationEnricher) -> None:
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, [httpx.ConnectError("no route")])
        snap = await enricher.enrich(1.0, 2.0)

    assert (snap.weather_text, snap.timezone, snap.city) == ("", "UTC", "Unknown")


async def test_geocode_http_error_falls_back(enricher: LocationEnricher) -> None:
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(
            mock_cls, [_weather_response(), _geo_response({}, status_code=503)]
        )
        snap = await enricher.enrich(1.0, 2.0)

    assert (snap.weather_text, snap.timezone, snap.city) == ("", "UTC", "Unknown")


async def test_malformed_payload_falls_back(enricher: LocationEnricher) -> None:
    bad = httpx.Response(200, json=["not", "an", "object"], request=httpx.Request("GET", WEATHER_URL))
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, [bad])
        snap = await enricher.enrich(1.0, 2.0)

    assert snap.city == "Unknown"


async def test_failure_is_cached_until_ttl(enricher: LocationEnricher, clock: _Clock) -> None:
    with patch("krishi.location.enricher.httpx.AsyncClient") as mock_cls:
        client = _mock_httpx_client(
            mock_cls,
            [
                httpx.ConnectError("down"),
                _weather_response(),
                _geo_response({"city": "Nashik"}),
            ],
        )
        failed = await enricher.enrich(1.0, 2.0)
        again = await enricher.enrich(1.0, 2.0)
        assert client.get.call_count == 1
        assert again == failed

        clock.now += 301
        recovered = await enricher.enrich(1.0, 2.0)

    assert recovered.city == "Nashik"
    assert client.get.call_count == 3
