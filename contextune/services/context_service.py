"""Captures a fresh :class:`Context` for a recommendation request.

Time of day comes from the local hour (in the caller's IANA timezone when
one is given), the season from the month with a hemisphere flip for
southern latitudes, and the weather from an :class:`IWeatherProvider`.
A weather lookup that fails, or cannot run for lack of coordinates,
degrades to an ``unknown`` reading at 20 degrees C instead of failing the
request.

Successful weather readings are kept in an optional cache per rounded
coordinate pair, so back-to-back requests from one place share a lookup.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from contextune.interfaces.cache_provider import ICacheProvider
from contextune.interfaces.weather_provider import IWeatherProvider
from contextune.models.context import (
    Context,
    GeoLocation,
    Season,
    TimeOfDay,
    Weather,
    WeatherCondition,
)
from contextune.utils.errors import ExternalServiceError
from contextune.utils.logging import get_logger

_UNKNOWN_WEATHER = Weather(condition=WeatherCondition.UNKNOWN, temperature=20.0, humidity=50)

_SOUTHERN_SEASONS: dict[Season, Season] = {
    Season.SPRING: Season.AUTUMN,
    Season.SUMMER: Season.WINTER,
    Season.AUTUMN: Season.SPRING,
    Season.WINTER: Season.SUMMER,
}

# Weather readings are reused for ten minutes within ~1 km.
_WEATHER_CACHE_TTL = 600
_WEATHER_KEY_PRECISION = 2


def _local_now() -> datetime:
    return datetime.now().astimezone()


def time_of_day_for_hour(hour: int) -> TimeOfDay:
    if 6 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def season_for(month: int, latitude: float | None = None) -> Season:
    """Meteorological season for *month* (1-12), flipped south of the equator."""
    if 3 <= month <= 5:
        season = Season.SPRING
    elif 6 <= month <= 8:
        season = Season.SUMMER
    elif 9 <= month <= 11:
        season = Season.AUTUMN
    else:
        season = Season.WINTER
    if latitude is not None and latitude < 0:
        return _SOUTHERN_SEASONS[season]
    return season


class ContextService:
    """Builds request contexts from the clock, location and weather.

    Parameters
    ----------
    weather_provider:
        Optional weather source.  Without one every context carries the
        ``unknown`` weather reading.
    cache:
        Optional cache of weather readings keyed by rounded coordinates.
    clock:
        Zero-argument callable returning the current timezone-aware
        datetime.  Defaults to the system local time.
    """

    def __init__(
        self,
        weather_provider: IWeatherProvider | None = None,
        cache: ICacheProvider | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._weather_provider = weather_provider
        self._cache = cache
        self._clock = clock or _local_now
        self._logger = get_logger(__name__)

    async def capture(
        self,
        user_id: str,
        location: GeoLocation | None = None,
        timezone: str | None = None,
    ) -> Context:
        location = location or GeoLocation()
        now = self._now(timezone)
        weather = await self._weather(location)

        context = Context(
            time_of_day=time_of_day_for_hour(now.hour),
            weather=weather,
            location=location,
            season=season_for(now.month, location.latitude),
            context_id=str(uuid.uuid4()),
            captured_at=now,
        )
        self._logger.info(
            "context_captured",
            user_id=user_id,
            time_of_day=context.time_of_day.value,
            weather=context.weather.condition.value,
            city=location.city,
        )
        return context

    def _now(self, timezone: str | None) -> datetime:
        now = self._clock()
        if not timezone:
            return now
        try:
            return now.astimezone(ZoneInfo(timezone))
        except (ZoneInfoNotFoundError, ValueError):
            self._logger.warning("unknown_timezone", timezone=timezone)
            return now

    async def _weather(self, location: GeoLocation) -> Weather:
        if (
            self._weather_provider is None
            or location.latitude is None
            or location.longitude is None
        ):
            return _UNKNOWN_WEATHER

        key = _weather_key(location.latitude, location.longitude)
        if self._cache is not None:
            cached = await self._cache.get(key)
            if cached is not None:
                return cached
        try:
            weather = await self._weather_provider.current_weather(
                location.latitude, location.longitude
            )
        except ExternalServiceError as exc:
            self._logger.warning(
                "weather_unavailable",
                provider=self._weather_provider.get_provider_name(),
                error=str(exc),
            )
            return _UNKNOWN_WEATHER

        if self._cache is not None:
            await self._cache.set(key, weather, ttl=_WEATHER_CACHE_TTL)
        return weather


def _weather_key(latitude: float, longitude: float) -> str:
    return (
        f"weather_{round(latitude, _WEATHER_KEY_PRECISION)}"
        f"_{round(longitude, _WEATHER_KEY_PRECISION)}"
    )
