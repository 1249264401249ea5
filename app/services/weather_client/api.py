"""Open-Meteo historical weather client.

Geocodes a race location, then reads the daily maximum temperature, WMO
weather code and precipitation for the race date from the archive API.
No API key is required.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx
import structlog

from app.config import get_settings

logger = structlog.get_logger(__name__)

SUNNY = "sunny"
CLOUDY = "cloudy"
RAINY = "rainy"

# WMO weather interpretation codes
_SUNNY_CODES = {0, 1, 2}
_CLOUDY_CODES = {3, 45, 48}
_RAINY_RANGES = ((51, 67), (71, 77), (80, 86), (95, 99))

# Precipitation (mm) above which the day counts as rainy regardless of code
RAIN_THRESHOLD_MM = 0.5


class WeatherClientError(Exception):
    """Weather lookup failed at the transport level."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class Coordinates:
    latitude: float
    longitude: float
    name: str | None = None


@dataclass
class WeatherReport:
    """Race-day weather. Both fields are None when no data exists."""

    temp: str | None = None
    condition: str | None = None

    @property
    def has_data(self) -> bool:
        return self.temp is not None or self.condition is not None


def clean_location(location: str | None) -> str:
    """
    Simplify a location for geocoding.

    "New York, NY" -> "New York", "Central Park" -> "Central",
    "Miami Beach" -> "Miami".
    """
    if not location:
        return ""
    cleaned = re.sub(r",\s*[A-Z]{2}$", "", location, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s+Park$", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s+Beach$", "", cleaned, flags=re.IGNORECASE)
    return cleaned.strip()


def map_weather_code(code: int | None, precipitation: float | None = None) -> str:
    """Collapse a WMO code (and precipitation in mm) to sunny, cloudy or rainy."""
    if precipitation and precipitation > RAIN_THRESHOLD_MM:
        return RAINY

    if code in _SUNNY_CODES:
        return SUNNY
    if code in _CLOUDY_CODES:
        return CLOUDY
    if code is not None and any(low <= code <= high for low, high in _RAINY_RANGES):
        return RAINY

    logger.info("weather_code_unknown", code=code)
    return CLOUDY


def format_temperature(value: float | None) -> str | None:
    if value is None:
        return None
    return f"{round(value)}°F"


class WeatherClient:
    """
    Async Open-Meteo client.

    Usage:
        async with WeatherClient() as client:
            report = await client.get_historical_weather(race_date, "Chicago, IL")
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        geocoding_url: str | None = None,
        archive_url: str | None = None,
    ):
        settings = get_settings()
        self.geocoding_url = (geocoding_url or settings.weather_geocoding_url).rstrip("/")
        self.archive_url = (archive_url or settings.weather_archive_url).rstrip("/")
        self.timeout = settings.scraper_timeout_seconds
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "WeatherClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._http_client

    async def _get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        """
        GET a JSON document.

        Raises:
            WeatherClientError: On timeout, transport failure, non-2xx or non-JSON body
        """
        client = self._get_client()
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise WeatherClientError(f"Request timeout: {url}") from e
        except httpx.HTTPStatusError as e:
            logger.warning(
                "weather_http_error",
                url=url,
                status_code=e.response.status_code,
            )
            raise WeatherClientError(
                f"Weather API returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise WeatherClientError(f"Weather request failed: {e}") from e
        except ValueError as e:
            raise WeatherClientError(f"Weather API returned a non-JSON body: {url}") from e

        return data if isinstance(data, dict) else {}

    async def geocode(self, location: str | None) -> Coordinates | None:
        """Resolve a location string to coordinates, or None when unknown."""
        name = clean_location(location)
        if not name:
            return None

        data = await self._get(
            f"{self.geocoding_url}/search",
            {"name": name, "count": 1, "language": "en", "format": "json"},
        )
        results = data.get("results") or []
        if not results:
            logger.info("weather_geocode_no_results", location=name)
            return None

        first = results[0]
        logger.debug(
            "weather_geocoded",
            location=name,
            name=first.get("name"),
            latitude=first.get("latitude"),
            longitude=first.get("longitude"),
        )
        return Coordinates(
            latitude=first["latitude"],
            longitude=first["longitude"],
            name=first.get("name"),
        )

    async def get_daily_weather(self, race_date: date, coords: Coordinates) -> WeatherReport:
        day = race_date.isoformat()
        data = await self._get(
            f"{self.archive_url}/archive",
            {
                "latitude": coords.latitude,
                "longitude": coords.longitude,
                "start_date": day,
                "end_date": day,
                "daily": "temperature_2m_max,weather_code,precipitation_sum",
                "temperature_unit": "fahrenheit",
                "timezone": "auto",
            },
        )

        daily = data.get("daily") or {}
        temps = daily.get("temperature_2m_max") or []
        if not temps or temps[0] is None:
            logger.info("weather_no_data", date=day)
            return WeatherReport()

        codes = daily.get("weather_code") or [None]
        precipitation = daily.get("precipitation_sum") or [None]
        return WeatherReport(
            temp=format_temperature(temps[0]),
            condition=map_weather_code(codes[0], precipitation[0]),
        )

    async def get_historical_weather(self, race_date: date, location: str | None) -> WeatherReport:
        """
        Race-day weather for a location.

        Returns an empty WeatherReport when the location cannot be geocoded or
        the archive has no data for the date.

        Raises:
            WeatherClientError: If either API call fails
        """
        logger.info("weather_lookup", location=location, date=race_date.isoformat())

        coords = await self.geocode(location)
        if coords is None:
            return WeatherReport()

        report = await self.get_daily_weather(race_date, coords)
        logger.info("weather_found", temp=report.temp, condition=report.condition)
        return report
