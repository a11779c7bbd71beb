"""Recommendation rule models.

A :class:`Rule` is a prioritized, conditional recommendation hint: when the
request :class:`~contextune.models.context.Context` satisfies its
conditions, the rule contributes weighted themes, genres, audio-feature
targets and tags to the candidate profile.

Condition semantics
-------------------
Every condition field is *optional*.  ``None`` means "always satisfied";
an empty list supplied by a rule document is normalised to ``None`` at load
time so there is exactly one way to express a wildcard.  A populated list
matches when it contains the context's value.

Signals the context did not capture (temperature, location, mood,
activity) never disqualify a rule: a rule conditioned on mood still applies
to a request with no detected mood.  Time of day and weather are always
present on a context (weather may be ``unknown``), so those conditions are
always evaluated.

All models are frozen; :meth:`RuleEffectiveness.record` returns a new
instance rather than mutating.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contextune.models.context import (
    Activity,
    Context,
    Mood,
    Season,
    TimeOfDay,
    WeatherCondition,
)

# Match-score bonuses for exact hits on the most specific signals.
_TIME_OF_DAY_BONUS = 0.5
_WEATHER_BONUS = 0.5
_MOOD_BONUS = 0.3


class AudioFeature(str, Enum):  # noqa: UP042: StrEnum requires Python 3.11+
    VALENCE = "valence"
    ENERGY = "energy"
    DANCEABILITY = "danceability"
    ACOUSTICNESS = "acousticness"
    INSTRUMENTALNESS = "instrumentalness"
    TEMPO = "tempo"

    @property
    def natural_range(self) -> tuple[float, float]:
        """Bounds a combined target starts from before intersection."""
        if self is AudioFeature.TEMPO:
            return (0.0, 250.0)
        return (0.0, 1.0)


def _empty_to_none(value: Any) -> Any:
    if isinstance(value, (list, tuple, set)) and len(value) == 0:
        return None
    return value


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------
class TemperatureRange(BaseModel):
    """Inclusive temperature window in degrees Celsius."""

    model_config = ConfigDict(frozen=True)

    min: float | None = None
    max: float | None = None

    def contains(self, temperature: float) -> bool:
        if self.min is not None and temperature < self.min:
            return False
        if self.max is not None and temperature > self.max:
            return False
        return True


class GeoRegion(BaseModel):
    model_config = ConfigDict(frozen=True)

    countries: list[str] | None = None
    cities: list[str] | None = None
    continents: list[str] | None = None

    @field_validator("countries", "cities", "continents", mode="before")
    @classmethod
    def _wildcard_empty_lists(cls, value: Any) -> Any:
        return _empty_to_none(value)


class RuleConditions(BaseModel):
    """OR-lists over context fields; every populated field must be satisfied."""

    model_config = ConfigDict(frozen=True)

    time_of_day: list[TimeOfDay] | None = None
    weather: list[WeatherCondition] | None = None
    temperature_range: TemperatureRange | None = None
    geo_region: GeoRegion | None = None
    season: list[Season] | None = None
    mood: list[Mood] | None = None
    activity: list[Activity] | None = None

    @field_validator("time_of_day", "weather", "season", "mood", "activity", mode="before")
    @classmethod
    def _wildcard_empty_lists(cls, value: Any) -> Any:
        return _empty_to_none(value)

    def is_satisfied_by(self, context: Context) -> bool:
        if self.time_of_day is not None and context.time_of_day not in self.time_of_day:
            return False

        if self.weather is not None and context.weather.condition not in self.weather:
            return False

        temperature = context.weather.temperature
        if self.temperature_range is not None and temperature is not None:
            if not self.temperature_range.contains(temperature):
                return False

        if self.geo_region is not None:
            location = context.location
            region = self.geo_region
            if region.countries is not None and location.country is not None:
                if location.country not in region.countries:
                    return False
            if region.cities is not None and location.city is not None:
                if location.city not in region.cities:
                    return False
            if region.continents is not None and location.continent is not None:
                if location.continent not in region.continents:
                    return False

        if self.season is not None and context.season is not None:
            if context.season not in self.season:
                return False

        if self.mood is not None and context.mood_value is not None:
            if context.mood_value not in self.mood:
                return False

        if self.activity is not None and context.activity is not None:
            if context.activity not in self.activity:
                return False

        return True


# ---------------------------------------------------------------------------
# Recommendation payload
# ---------------------------------------------------------------------------
class WeightedName(BaseModel):
    """A theme or genre name with its relative weight."""

    model_config = ConfigDict(frozen=True)

    name: str
    weight: float = Field(default=1.0, ge=0.0)
    description: str | None = None


class AudioFeatureTarget(BaseModel):
    """Desired range and centre for one audio feature.

    ``weight`` expresses how strongly the target should pull when several
    rules are averaged together.
    """

    model_config = ConfigDict(frozen=True)

    min: float | None = None
    max: float | None = None
    target: float | None = None
    weight: float | None = None


class RuleRecommendations(BaseModel):
    model_config = ConfigDict(frozen=True)

    themes: list[WeightedName] = Field(default_factory=list)
    genres: list[WeightedName] = Field(default_factory=list)
    audio_features: dict[AudioFeature, AudioFeatureTarget] = Field(default_factory=dict)
    context_tags: list[str] = Field(default_factory=list)
    mood_tags: list[str] = Field(default_factory=list)
    excluded_genres: list[str] = Field(default_factory=list)
    excluded_mood_tags: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Effectiveness
# ---------------------------------------------------------------------------
class RuleEffectiveness(BaseModel):
    """Historical performance of a rule, fed back from user engagement."""

    model_config = ConfigDict(frozen=True)

    applied_count: int = Field(default=0, ge=0)
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    avg_rating: float = Field(default=0.0, ge=0.0)
    last_applied: datetime | None = None

    def record(
        self,
        applied: bool = True,
        success: bool | None = None,
        rating: float | None = None,
    ) -> RuleEffectiveness:
        """Return a new record with one more observation folded in.

        Success rate and average rating are running means over
        ``applied_count``; they are left untouched while the count is zero.
        """
        count = self.applied_count
        last_applied = self.last_applied
        if applied:
            count += 1
            last_applied = datetime.now(tz=timezone.utc)  # noqa: UP017

        success_rate = self.success_rate
        avg_rating = self.avg_rating
        if count > 0:
            if success is not None:
                success_rate = (self.success_rate * (count - 1) + (1.0 if success else 0.0)) / count
            if rating is not None:
                avg_rating = (self.avg_rating * (count - 1) + rating) / count

        return RuleEffectiveness(
            applied_count=count,
            success_rate=max(0.0, min(1.0, success_rate)),
            avg_rating=max(0.0, avg_rating),
            last_applied=last_applied,
        )


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------
class Rule(BaseModel):
    """A named, prioritized conditional recommendation hint."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    name: str
    description: str | None = None
    priority: int = Field(default=1, ge=1, le=10)
    is_active: bool = True
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    recommendations: RuleRecommendations = Field(default_factory=RuleRecommendations)
    effectiveness: RuleEffectiveness = Field(default_factory=RuleEffectiveness)

    def matches(self, context: Context) -> bool:
        return self.conditions.is_satisfied_by(context)

    def match_score(self, context: Context) -> float:
        """Priority plus exact-hit bonuses, scaled by ``1 + success_rate``.

        Returns 0.0 for a non-matching rule; a matching rule always scores
        at least its priority (>= 1).
        """
        if not self.matches(context):
            return 0.0

        score = float(self.priority)
        conditions = self.conditions
        if conditions.time_of_day and context.time_of_day in conditions.time_of_day:
            score += _TIME_OF_DAY_BONUS
        if conditions.weather and context.weather.condition in conditions.weather:
            score += _WEATHER_BONUS
        if conditions.mood and context.mood_value in conditions.mood:
            score += _MOOD_BONUS

        return score * (1.0 + self.effectiveness.success_rate)

    def with_effectiveness(self, effectiveness: RuleEffectiveness) -> Rule:
        return self.model_copy(update={"effectiveness": effectiveness})


class AppliedRule(BaseModel):
    """Which rule contributed to a candidate profile, and how strongly."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    name: str
    # The rule's priority (1.0 for the synthetic fallback rule).
    weight: float
    match_score: float

    @property
    def is_fallback(self) -> bool:
        return self.rule_id == FALLBACK_RULE_ID


FALLBACK_RULE_ID = "fallback"
