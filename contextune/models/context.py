"""Situational context models for the contextune recommendation core.

A :class:`Context` is a snapshot of the signals that drive a
recommendation request: time of day, weather, location, season and the
optional mood / activity readings.  Contexts are captured once per request
(see ``contextune.services.context_service``) and never
mutated afterwards, so every model here uses ``frozen=True``.

The :meth:`Context.fingerprint` key is used by the rule matcher to cache
matched-rule sets; two contexts with the same categorical fields and a
temperature in the same 5-degree bucket share a fingerprint.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TimeOfDay(str, Enum):  # noqa: UP042: StrEnum requires Python 3.11+
    """Coarse time-of-day buckets derived from the local hour."""

    MORNING = "morning"      # 06:00 - 11:59
    AFTERNOON = "afternoon"  # 12:00 - 16:59
    EVENING = "evening"      # 17:00 - 20:59
    NIGHT = "night"          # 21:00 - 05:59


class WeatherCondition(str, Enum):  # noqa: UP042
    """Simplified weather conditions that rules can condition on."""

    SUNNY = "sunny"
    CLOUDY = "cloudy"
    PARTLY_CLOUDY = "partly_cloudy"
    RAINY = "rainy"
    STORMY = "stormy"
    SNOW = "snow"
    FOG = "fog"
    UNKNOWN = "unknown"


class Season(str, Enum):  # noqa: UP042
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


class Mood(str, Enum):  # noqa: UP042
    HAPPY = "happy"
    SAD = "sad"
    ENERGETIC = "energetic"
    CALM = "calm"
    STRESSED = "stressed"
    RELAXED = "relaxed"
    FOCUSED = "focused"
    SOCIAL = "social"


class Activity(str, Enum):  # noqa: UP042
    STATIONARY = "stationary"
    WALKING = "walking"
    DRIVING = "driving"
    COMMUTING = "commuting"
    WORKING = "working"
    EXERCISING = "exercising"
    SLEEPING = "sleeping"


class Weather(BaseModel):
    """Current weather at the user's location."""

    model_config = ConfigDict(frozen=True)

    condition: WeatherCondition = WeatherCondition.UNKNOWN
    # Degrees Celsius.  None when the weather lookup failed.
    temperature: float | None = None
    # Relative humidity in percent.
    humidity: float | None = None


class GeoLocation(BaseModel):
    """Where the user is.  Coordinates drive the hemisphere-aware season."""

    model_config = ConfigDict(frozen=True)

    city: str | None = None
    country: str | None = None
    continent: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class MoodReading(BaseModel):
    """A detected mood with the detector's confidence."""

    model_config = ConfigDict(frozen=True)

    primary: Mood
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class Context(BaseModel):
    """Immutable snapshot of the situational signals for one request."""

    model_config = ConfigDict(frozen=True)

    time_of_day: TimeOfDay
    weather: Weather = Field(default_factory=Weather)
    location: GeoLocation = Field(default_factory=GeoLocation)
    season: Season | None = None
    mood: MoodReading | None = None
    activity: Activity | None = None
    context_id: str | None = None
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    @property
    def mood_value(self) -> Mood | None:
        return self.mood.primary if self.mood else None

    def fingerprint(self) -> str:
        """Deterministic similarity key built from the categorical fields.

        Temperature is bucketed to the nearest 5 degrees (20 when unknown)
        so small fluctuations still find a recent similar playlist.
        """
        temperature = self.weather.temperature
        if temperature is None:
            temperature = 20.0
        # Python's round() is banker's rounding; floor(x + 0.5) matches the
        # conventional half-up rounding the buckets are defined with.
        bucket = int(_round_half_up(temperature / 5) * 5)
        parts = [
            self.time_of_day.value,
            self.weather.condition.value,
            str(bucket),
            self.location.city or "unknown",
            self.season.value if self.season else "unknown",
        ]
        return "_".join(parts)

    def rule_cache_key(self) -> str:
        """Exact key over every field rule conditions and match scores read.

        Unlike :meth:`fingerprint`, two contexts with the same key are
        matched by exactly the same rules.
        """
        location = self.location
        temperature = self.weather.temperature
        parts = [
            self.time_of_day.value,
            self.weather.condition.value,
            "none" if temperature is None else repr(float(temperature)),
            location.city or "",
            location.country or "",
            location.continent or "",
            self.season.value if self.season else "",
            self.mood_value.value if self.mood_value else "",
            self.activity.value if self.activity else "",
        ]
        return "|".join(parts)

    def summary(self) -> dict[str, object]:
        """Flat dict used in audit records and log lines."""
        return {
            "time_of_day": self.time_of_day.value,
            "weather": self.weather.condition.value,
            "temperature": self.weather.temperature,
            "city": self.location.city,
            "country": self.location.country,
            "season": self.season.value if self.season else None,
            "mood": self.mood_value.value if self.mood_value else None,
            "activity": self.activity.value if self.activity else None,
        }


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
