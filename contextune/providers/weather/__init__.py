"""Weather provider implementations."""

from contextune.providers.weather.openweathermap_provider import (
    OpenWeatherMapProvider,
    map_weather_condition,
)

__all__ = ["OpenWeatherMapProvider", "map_weather_condition"]
