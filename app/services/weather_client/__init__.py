"""Open-Meteo weather client module."""

from app.services.weather_client.api import (
    CLOUDY,
    RAINY,
    SUNNY,
    Coordinates,
    WeatherClient,
    WeatherClientError,
    WeatherReport,
    clean_location,
    format_temperature,
    map_weather_code,
)

__all__ = [
    "CLOUDY",
    "RAINY",
    "SUNNY",
    "Coordinates",
    "WeatherClient",
    "WeatherClientError",
    "WeatherReport",
    "clean_location",
    "format_temperature",
    "map_weather_code",
]
