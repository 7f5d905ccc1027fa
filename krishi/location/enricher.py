"""Weather, timezone and city lookup for the user's coordinates.

Two independent providers are called in sequence: Open-Meteo for the
current weather and timezone, then Nominatim for the place name. Results
are cached per coordinate pair; failures degrade to a neutral snapshot
that is cached too, so a broken provider is retried at most once per TTL.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from krishi.config import settings
from krishi.errors import UpstreamProviderError
from krishi.location.cache import CoordKey, LocationCache, LocationSnapshot

logger = logging.getLogger(__name__)

# WMO weather interpretation codes as reported by Open-Meteo
WEATHER_CODES: dict[int, str] = {
    0: "Clear",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Light snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Showers",
    81: "Moderate showers",
    82: "Violent showers",
    85: "Light snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with light hail",
    99: "Thunderstorm with heavy hail",
}


def describe_weather(code: Any) -> str:
    """Human description for a WMO code, ``"Unknown"`` if unrecognised."""
    try:
        return WEATHER_CODES.get(int(code), "Unknown")
    except (TypeError, ValueError):
        return "Unknown"


def format_weather(temperature: Any, code: Any) -> str:
    """``"Temp: 28.5°C, Clear"``, or ``""`` when no temperature was reported."""
    if temperature is None:
        return ""
    try:
        temp = f"{float(temperature):g}"
    except (TypeError, ValueError):
        temp = str(temperature)
    return f"Temp: {temp}°C, {describe_weather(code)}"


def _json_object(resp: httpx.Response, provider: str) -> dict[str, Any]:
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, dict):
        raise UpstreamProviderError(
            f"{provider} returned an unexpected payload",
            provider=provider,
            status=resp.status_code,
        )
    return data


class LocationEnricher:
    """Resolves a :class:`LocationSnapshot` for a coordinate pair."""

    def __init__(
        self,
        cache: LocationCache | None = None,
        *,
        weather_url: str | None = None,
        geocode_url: str | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
    ) -> None:
        if cache is None:
            cache = LocationCache(ttl_seconds=settings.location_cache_ttl_seconds)
        self.cache = cache
        self._weather_url = weather_url or settings.weather_api_url
        self._geocode_url = geocode_url or settings.geocode_api_url
        self._timeout = timeout or settings.http_timeout_seconds
        self._user_agent = user_agent or settings.http_user_agent

    async def enrich(self, lat: float, lon: float) -> LocationSnapshot:
        """Return weather/timezone/city for (*lat*, *lon*). Never raises."""
        key: CoordKey = (lat, lon)
        cached = self.cache.get_fresh(key)
        if cached is not None:
            return cached

        now = self.cache.now()
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent, "Accept": "application/json"},
            ) as client:
                weather_text, timezone = await self._fetch_weather(client, lat, lon)
                city = await self._fetch_city(client, lat, lon)
            snapshot = LocationSnapshot(
                weather_text=weather_text,
                timezone=timezone,
                city=city,
                last_updated=now,
            )
        except Exception:
            logger.exception("Location lookup failed for %s,%s", lat, lon)
            snapshot = LocationSnapshot.fallback(now)

        self.cache.put(key, snapshot)
        return snapshot

    async def _fetch_weather(
        self, client: httpx.AsyncClient, lat: float, lon: float
    ) -> tuple[str, str]:
        resp = await client.get(
            self._weather_url,
            params={
                "latitude": lat,
                "longitude": lon,
                "current_weather": "true",
                "timezone": "auto",
            },
        )
        data = _json_object(resp, "open-meteo")
        current = data.get("current_weather") or {}
        if not isinstance(current, dict):
            raise UpstreamProviderError(
                "open-meteo returned an unexpected current_weather block",
                provider="open-meteo",
            )
        weather_text = format_weather(current.get("temperature"), current.get("weathercode"))
        timezone = data.get("timezone") or "UTC"
        return weather_text, str(timezone)

    async def _fetch_city(self, client: httpx.AsyncClient, lat: float, lon: float) -> str:
        resp = await client.get(
            self._geocode_url,
            params={"lat": lat, "lon": lon, "format": "json"},
        )
        data = _json_object(resp, "nominatim")
        address = data.get("address") or {}
        if not isinstance(address, dict):
            raise UpstreamProviderError(
                "nominatim returned an unexpected address block",
                provider="nominatim",
            )
        return address.get("city") or address.get("town") or address.get("state") or "Unknown"
