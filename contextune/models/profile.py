"""User taste profile and rule-derived candidate profile models.

:class:`UserProfile` aggregates what the user store and listening history
know about a listener.  :class:`CandidateProfile` is the normalised output
of the rule matcher: what the request *should* sound like, plus boosts
derived from the user's own taste.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from contextune.models.rule import AppliedRule, AudioFeature, AudioFeatureTarget, WeightedName
from contextune.models.track import Artist, Track


class GenreCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    frequency: int = 1


class FeatureStats(BaseModel):
    """Mean / spread of one audio feature over the user's top tracks."""

    model_config = ConfigDict(frozen=True)

    mean: float
    std: float = 0.0
    min: float
    max: float


class ListeningPattern(BaseModel):
    """How much the user listens in a given context bucket."""

    model_config = ConfigDict(frozen=True)

    time_of_day: str | None = None
    weather: str | None = None
    play_count: int = 0
    avg_completion: float | None = None


class UserPreferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    avoid_explicit: bool = False
    # Free-form flags the ranking core does not interpret.
    extra: dict[str, Any] = Field(default_factory=dict)


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    spotify_id: str | None = None
    top_tracks: list[Track] = Field(default_factory=list)
    top_artists: list[Artist] = Field(default_factory=list)
    top_genres: list[GenreCount] = Field(default_factory=list)
    # Window used for the recently-played penalty.
    recent_tracks: list[Track] = Field(default_factory=list)
    audio_feature_prefs: dict[AudioFeature, FeatureStats] = Field(default_factory=dict)
    listening_patterns: list[ListeningPattern] = Field(default_factory=list)
    preferences: UserPreferences = Field(default_factory=UserPreferences)

    def recent_track_ids(self) -> set[str]:
        return {t.id for t in self.recent_tracks}

    def summary(self) -> dict[str, Any]:
        return {
            "top_genres": [g.name for g in self.top_genres[:5]],
            "top_artists": [a.name for a in self.top_artists[:5]],
            "recent_tracks": [t.name for t in self.recent_tracks[:10]],
            "listening_patterns": [p.model_dump() for p in self.listening_patterns[:5]],
        }


class GenreBoost(BaseModel):
    model_config = ConfigDict(frozen=True)

    genre: str
    boost: float


class ArtistBoost(BaseModel):
    model_config = ConfigDict(frozen=True)

    artist: str
    artist_id: str | None = None
    boost: float


class CandidateProfile(BaseModel):
    """Normalised target attributes for a request.

    Theme and genre weights are sum-normalised across all contributing
    rules and sorted descending.
    """

    model_config = ConfigDict(frozen=True)

    themes: list[WeightedName] = Field(default_factory=list)
    genres: list[WeightedName] = Field(default_factory=list)
    audio_features: dict[AudioFeature, AudioFeatureTarget] = Field(default_factory=dict)
    context_tags: list[str] = Field(default_factory=list)
    mood_tags: list[str] = Field(default_factory=list)
    excluded_genres: list[str] = Field(default_factory=list)
    excluded_mood_tags: list[str] = Field(default_factory=list)
    user_genres: list[GenreBoost] = Field(default_factory=list)
    user_artists: list[ArtistBoost] = Field(default_factory=list)
    context_fingerprint: str = ""
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    @property
    def genre_names(self) -> list[str]:
        return [g.name for g in self.genres]


class RuleMatch(BaseModel):
    """What the rule matcher hands to the candidate fetcher."""

    model_config = ConfigDict(frozen=True)

    candidates: CandidateProfile
    applied_rules: list[AppliedRule] = Field(default_factory=list)
    processing_ms: float = 0.0

    @property
    def is_fallback(self) -> bool:
        return len(self.applied_rules) == 1 and self.applied_rules[0].is_fallback
