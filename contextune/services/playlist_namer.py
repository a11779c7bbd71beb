"""Playlist name, description and tag generation.

Names and descriptions are picked at random from small template sets
parameterised by time of day, weather, city and temperature.  The
randomness source is injectable so callers (and tests) can pin the pick;
naming is a decoration step and is not part of the ranking contract.
"""

from __future__ import annotations

import random

from contextune.models.context import Context, TimeOfDay, WeatherCondition

_TIME_EMOJI: dict[TimeOfDay, str] = {
    TimeOfDay.MORNING: "🌅",
    TimeOfDay.AFTERNOON: "☀️",
    TimeOfDay.EVENING: "🌆",
    TimeOfDay.NIGHT: "🌙",
}

_WEATHER_EMOJI: dict[WeatherCondition, str] = {
    WeatherCondition.SUNNY: "☀️",
    WeatherCondition.CLOUDY: "☁️",
    WeatherCondition.RAINY: "🌧️",
    WeatherCondition.STORMY: "⛈️",
    WeatherCondition.SNOW: "❄️",
    WeatherCondition.FOG: "🌫️",
}

_DEFAULT_EMOJI = "🎵"

# Temperature bands for tags, in degrees Celsius (strictly greater than).
_TEMPERATURE_BANDS: tuple[tuple[float, str], ...] = (
    (25, "hot"),
    (15, "warm"),
    (5, "cool"),
)


class PlaylistNamer:
    """Builds human-facing playlist metadata from a context.

    Parameters
    ----------
    rng:
        Source of randomness for template selection.  Defaults to a fresh
        unseeded :class:`random.Random`.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def name(self, context: Context) -> str:
        time_of_day = context.time_of_day.value
        weather = context.weather.condition.value
        city = context.location.city or "Unknown"
        temperature = context.weather.temperature
        temp = f"{round(temperature)}°" if temperature is not None else ""

        time_emoji = _TIME_EMOJI.get(context.time_of_day, _DEFAULT_EMOJI)
        weather_emoji = _WEATHER_EMOJI.get(context.weather.condition, "")

        templates = [
            f"{time_emoji} {time_of_day.capitalize()} {weather.capitalize()} • {city} {temp}",
            f"{weather_emoji} {weather.capitalize()} {time_of_day} • {city}",
            f"🎵 {time_of_day.capitalize()} Vibes • {city} {temp}",
        ]
        return self._rng.choice(templates).strip()

    def description(self, context: Context, track_count: int) -> str:
        time_of_day = context.time_of_day.value
        weather = context.weather.condition.value
        city = context.location.city or "your location"

        templates = [
            f"Perfect for {time_of_day} during {weather} weather in {city}. "
            f"{track_count} carefully selected tracks to match your mood and moment.",
            f"AI-generated playlist for your {time_of_day} {weather} session in {city}. "
            f"Featuring {track_count} tracks tailored to this moment.",
            f"Context-aware music for {time_of_day} in {city}. "
            f"{track_count} songs that fit the {weather} atmosphere.",
        ]
        return self._rng.choice(templates)


def temperature_band(temperature: float) -> str:
    for threshold, label in _TEMPERATURE_BANDS:
        if temperature > threshold:
            return label
    return "cold"


def playlist_tags(context: Context) -> list[str]:
    """Context tags for a generated playlist, de-duplicated in order."""
    tags: list[str] = [context.time_of_day.value, context.weather.condition.value]
    if context.season is not None:
        tags.append(context.season.value)
    if context.location.city:
        tags.append(context.location.city.lower())
    if context.weather.temperature is not None:
        tags.append(temperature_band(context.weather.temperature))
    if context.mood_value is not None:
        tags.append(context.mood_value.value)
    tags.extend(["ai-generated", "context-aware"])
    return list(dict.fromkeys(tags))
