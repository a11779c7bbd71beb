"""contextune domain models - re-exports all public model classes.

The models are organized across five submodules by domain concern:
    - context.py        - situational snapshot (time, weather, place, mood)
    - rule.py           - recommendation rules, conditions, effectiveness
    - track.py          - catalog tracks/artists and ranked tracks
    - profile.py        - user taste profile and rule-derived candidate profile
    - recommendation.py - options, results, failures, audit log, feedback
"""

from __future__ import annotations

from contextune.models.context import (
    Activity,
    Context,
    GeoLocation,
    Mood,
    MoodReading,
    Season,
    TimeOfDay,
    Weather,
    WeatherCondition,
)
from contextune.models.profile import (
    ArtistBoost,
    CandidateProfile,
    FeatureStats,
    GenreBoost,
    GenreCount,
    ListeningPattern,
    RuleMatch,
    UserPreferences,
    UserProfile,
)
from contextune.models.recommendation import (
    GLOBAL_SOURCE,
    USER_SOURCE,
    DiversityMetrics,
    FallbackAction,
    FeedbackAction,
    PlaylistRecord,
    PlayStats,
    RecommendationFailure,
    RecommendationLogRecord,
    RecommendationOptions,
    RecommendationResult,
    UserInteraction,
)
from contextune.models.rule import (
    FALLBACK_RULE_ID,
    AppliedRule,
    AudioFeature,
    AudioFeatureTarget,
    GeoRegion,
    Rule,
    RuleConditions,
    RuleEffectiveness,
    RuleRecommendations,
    TemperatureRange,
    WeightedName,
)
from contextune.models.track import Artist, ScoredTrack, Track

__all__ = [
    "FALLBACK_RULE_ID",
    "GLOBAL_SOURCE",
    "USER_SOURCE",
    "Activity",
    "AppliedRule",
    "Artist",
    "ArtistBoost",
    "AudioFeature",
    "AudioFeatureTarget",
    "CandidateProfile",
    "Context",
    "DiversityMetrics",
    "FallbackAction",
    "FeatureStats",
    "FeedbackAction",
    "GenreBoost",
    "GenreCount",
    "GeoLocation",
    "GeoRegion",
    "ListeningPattern",
    "Mood",
    "MoodReading",
    "PlayStats",
    "PlaylistRecord",
    "RecommendationFailure",
    "RecommendationLogRecord",
    "RecommendationOptions",
    "RecommendationResult",
    "Rule",
    "RuleConditions",
    "RuleEffectiveness",
    "RuleMatch",
    "RuleRecommendations",
    "ScoredTrack",
    "Season",
    "TemperatureRange",
    "TimeOfDay",
    "Track",
    "UserInteraction",
    "UserPreferences",
    "UserProfile",
    "Weather",
    "WeatherCondition",
    "WeightedName",
]
