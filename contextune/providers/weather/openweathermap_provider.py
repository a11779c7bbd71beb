"""OpenWeatherMap current-weather provider.

Calls ``/weather`` with metric units and maps OpenWeatherMap's condition
groups onto the simplified :class:`~contextune.models.context.WeatherCondition`
set that rules condition on.  Failures raise ExternalServiceError; the
context service decides how to degrade.
"""

from __future__ import annotations

import httpx

from contextune.interfaces.weather_provider import IWeatherProvider
from contextune.models.context import Weather, WeatherCondition
from contextune.utils.errors import ExternalServiceError, RateLimitError
from contextune.utils.logging import get_logger

_DEFAULT_BASE_URL = "https://api.openweathermap.org/data/2.5"
_DEFAULT_TIMEOUT = 5.0
_PROVIDER_NAME = "openweathermap"


def map_weather_condition(main: str, description: str = "") -> WeatherCondition:
    """Map an OpenWeatherMap ``weather[0]`` main/description pair."""
    main_lower = main.lower()
    desc_lower = description.lower()

    if main_lower == "clear":
        return WeatherCondition.SUNNY
    if main_lower == "clouds":
        if "few" in desc_lower or "scattered" in desc_lower:
            return WeatherCondition.PARTLY_CLOUDY
        return WeatherCondition.CLOUDY
    if main_lower in ("rain", "drizzle"):
        return WeatherCondition.RAINY
    if main_lower == "thunderstorm":
        return WeatherCondition.STORMY
    if main_lower == "snow":
        return WeatherCondition.SNOW
    if main_lower in ("mist", "fog", "haze"):
        return WeatherCondition.FOG
    return WeatherCondition.CLOUDY


class OpenWeatherMapProvider(IWeatherProvider):
    """Current weather from the OpenWeatherMap REST API.

    Parameters
    ----------
    api_key:
        OpenWeatherMap ``appid``.
    base_url:
        API root, overridable for tests.
    http_client:
        Optional injected ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = _DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(_DEFAULT_TIMEOUT))
        self._logger = get_logger(__name__, provider=_PROVIDER_NAME)

    async def current_weather(self, latitude: float, longitude: float) -> Weather:
        if not self._api_key:
            raise ExternalServiceError(
                message="OpenWeatherMap API key is not configured",
                provider_name=_PROVIDER_NAME,
            )

        try:
            response = await self._http.get(
                f"{self._base_url}/weather",
                params={
                    "lat": latitude,
                    "lon": longitude,
                    "appid": self._api_key,
                    "units": "metric",
                },
            )
            if response.status_code == 429:
                raise RateLimitError(
                    message="OpenWeatherMap rate limit exceeded",
                    provider_name=_PROVIDER_NAME,
                )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                message=f"HTTP {exc.response.status_code} from OpenWeatherMap",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ExternalServiceError(
                message=f"OpenWeatherMap request failed: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        conditions = data.get("weather") or []
        main = data.get("main") or {}
        if not conditions or main.get("temp") is None:
            raise ExternalServiceError(
                message="OpenWeatherMap response is missing weather data",
                provider_name=_PROVIDER_NAME,
            )

        weather = Weather(
            condition=map_weather_condition(
                conditions[0].get("main", ""), conditions[0].get("description", "")
            ),
            temperature=float(round(main["temp"])),
            humidity=main.get("humidity"),
        )
        self._logger.debug(
            "weather_fetched",
            latitude=latitude,
            longitude=longitude,
            condition=weather.condition.value,
            temperature=weather.temperature,
        )
        return weather

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME
