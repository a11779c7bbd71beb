"""Unit tests for the context service."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from contextune.interfaces.weather_provider import IWeatherProvider
from contextune.models.context import (
    GeoLocation,
    Season,
    TimeOfDay,
    Weather,
    WeatherCondition,
)
from contextune.providers.cache.memory_cache import MemoryCacheProvider
from contextune.services.context_service import ContextService, season_for, time_of_day_for_hour
from contextune.utils.errors import ExternalServiceError

# 2024-07-15 08:30 UTC
_FIXED_NOW = datetime(2024, 7, 15, 8, 30, tzinfo=timezone.utc)  # noqa: UP017


def _clock() -> datetime:
    return _FIXED_NOW


def _weather_provider(result: Weather | Exception) -> IWeatherProvider:
    mock = MagicMock(spec=IWeatherProvider)
    mock.get_provider_name.return_value = "mock_weather"
    if isinstance(result, Exception):
        mock.current_weather = AsyncMock(side_effect=result)
    else:
        mock.current_weather = AsyncMock(return_value=result)
    return mock


class TestBuckets:
    @pytest.mark.parametrize(
        ("hour", "expected"),
        [
            (5, TimeOfDay.NIGHT),
            (6, TimeOfDay.MORNING),
            (11, TimeOfDay.MORNING),
            (12, TimeOfDay.AFTERNOON),
            (16, TimeOfDay.AFTERNOON),
            (17, TimeOfDay.EVENING),
            (20, TimeOfDay.EVENING),
            (21, TimeOfDay.NIGHT),
            (0, TimeOfDay.NIGHT),
        ],
    )
    def test_time_of_day(self, hour: int, expected: TimeOfDay) -> None:
        assert time_of_day_for_hour(hour) is expected

    @pytest.mark.parametrize(
        ("month", "expected"),
        [
            (1, Season.WINTER),
            (4, Season.SPRING),
            (7, Season.SUMMER),
            (10, Season.AUTUMN),
            (12, Season.WINTER),
        ],
    )
    def test_northern_seasons(self, month: int, expected: Season) -> None:
        assert season_for(month, latitude=48.0) is expected
        assert season_for(month) is expected

    def test_southern_hemisphere_flips(self) -> None:
        assert season_for(7, latitude=-33.9) is Season.WINTER
        assert season_for(1, latitude=-33.9) is Season.SUMMER
        assert season_for(4, latitude=-33.9) is Season.AUTUMN


class TestCapture:
    @pytest.mark.asyncio
    async def test_uses_clock_and_weather(self) -> None:
        provider = _weather_provider(Weather(condition=WeatherCondition.SUNNY, temperature=24.0))
        service = ContextService(weather_provider=provider, clock=_clock)
        location = GeoLocation(city="Berlin", latitude=52.5, longitude=13.4)

        context = await service.capture("u1", location=location)

        assert context.time_of_day is TimeOfDay.MORNING
        assert context.season is Season.SUMMER
        assert context.weather.condition is WeatherCondition.SUNNY
        assert context.location.city == "Berlin"
        assert context.context_id
        provider.current_weather.assert_awaited_once_with(52.5, 13.4)

    @pytest.mark.asyncio
    async def test_timezone_shifts_local_hour(self) -> None:
        service = ContextService(clock=_clock)
        # 08:30 UTC is 17:30 in Tokyo.
        context = await service.capture("u1", timezone="Asia/Tokyo")
        assert context.time_of_day is TimeOfDay.EVENING

    @pytest.mark.asyncio
    async def test_unknown_timezone_uses_clock(self) -> None:
        service = ContextService(clock=_clock)
        context = await service.capture("u1", timezone="Mars/Olympus_Mons")
        assert context.time_of_day is TimeOfDay.MORNING

    @pytest.mark.asyncio
    async def test_southern_location_season(self) -> None:
        service = ContextService(clock=_clock)
        context = await service.capture("u1", location=GeoLocation(latitude=-33.9, longitude=151.2))
        assert context.season is Season.WINTER

    @pytest.mark.asyncio
    async def test_weather_failure_degrades(self) -> None:
        provider = _weather_provider(ExternalServiceError(message="down", provider_name="owm"))
        service = ContextService(weather_provider=provider, clock=_clock)

        context = await service.capture("u1", location=GeoLocation(latitude=1.0, longitude=2.0))

        assert context.weather.condition is WeatherCondition.UNKNOWN
        assert context.weather.temperature == 20.0

    @pytest.mark.asyncio
    async def test_no_coordinates_skips_weather(self) -> None:
        provider = _weather_provider(Weather(condition=WeatherCondition.SUNNY))
        service = ContextService(weather_provider=provider, clock=_clock)

        context = await service.capture("u1", location=GeoLocation(city="Berlin"))

        provider.current_weather.assert_not_awaited()
        assert context.weather.condition is WeatherCondition.UNKNOWN

    @pytest.mark.asyncio
    async def test_weather_reused_for_nearby_coordinates(self) -> None:
        sunny = Weather(condition=WeatherCondition.SUNNY, temperature=24.0)
        provider = _weather_provider(sunny)
        service = ContextService(
            weather_provider=provider, cache=MemoryCacheProvider(), clock=_clock
        )

        first = await service.capture("u1", location=GeoLocation(latitude=52.5201, longitude=13.4049))
        second = await service.capture("u2", location=GeoLocation(latitude=52.5199, longitude=13.4011))

        provider.current_weather.assert_awaited_once()
        assert first.weather == second.weather == sunny

    @pytest.mark.asyncio
    async def test_distant_coordinates_fetch_again(self) -> None:
        provider = _weather_provider(Weather(condition=WeatherCondition.CLOUDY))
        service = ContextService(
            weather_provider=provider, cache=MemoryCacheProvider(), clock=_clock
        )

        await service.capture("u1", location=GeoLocation(latitude=52.52, longitude=13.40))
        await service.capture("u1", location=GeoLocation(latitude=48.14, longitude=11.58))

        assert provider.current_weather.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_lookup_not_cached(self) -> None:
        provider = _weather_provider(ExternalServiceError(message="down", provider_name="w"))
        service = ContextService(
            weather_provider=provider, cache=MemoryCacheProvider(), clock=_clock
        )
        location = GeoLocation(latitude=52.52, longitude=13.40)

        await service.capture("u1", location=location)
        await service.capture("u1", location=location)

        assert provider.current_weather.await_count == 2
