"""Unit tests for the contextune domain models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

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
from contextune.models.profile import CandidateProfile, RuleMatch
from contextune.models.recommendation import (
    AlgorithmInfo,
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
    Rule,
    RuleConditions,
    RuleEffectiveness,
    TemperatureRange,
)
from contextune.models.track import Artist, ScoredTrack, Track
from contextune.utils.errors import NotFoundError
from tests.conftest import make_track, rule_document


# ======================================================================
# Context
# ======================================================================


class TestContextFingerprint:
    def test_fingerprint_joins_categorical_fields(self, morning_sunny_context: Context) -> None:
        assert morning_sunny_context.fingerprint() == "morning_sunny_20_Berlin_summer"

    def test_missing_parts_become_unknown(self) -> None:
        context = Context(time_of_day=TimeOfDay.NIGHT)
        assert context.fingerprint() == "night_unknown_20_unknown_unknown"

    @pytest.mark.parametrize(
        ("temperature", "bucket"),
        [(12.4, "10"), (12.5, "15"), (17.4, "15"), (-2.4, "0"), (-2.6, "-5")],
    )
    def test_temperature_rounds_half_up_to_five(self, temperature: float, bucket: str) -> None:
        context = Context(
            time_of_day=TimeOfDay.MORNING,
            weather=Weather(condition=WeatherCondition.SUNNY, temperature=temperature),
        )
        assert context.fingerprint().split("_")[2] == bucket

    def test_nearby_temperatures_share_fingerprint(self) -> None:
        def ctx(t: float) -> Context:
            return Context(
                time_of_day=TimeOfDay.EVENING,
                weather=Weather(condition=WeatherCondition.RAINY, temperature=t),
            )

        assert ctx(11.0).fingerprint() == ctx(13.9).fingerprint()

    @pytest.mark.parametrize(
        "update",
        [
            {"activity": Activity.WORKING},
            {"mood": MoodReading(primary=Mood.CALM)},
            {"location": GeoLocation(city="Berlin", country="AT")},
            {"location": GeoLocation(city="Berlin", country="DE", continent="Europe")},
            {"weather": Weather(condition=WeatherCondition.SUNNY, temperature=21.0)},
        ],
    )
    def test_rule_cache_key_covers_every_matchable_field(
        self, morning_sunny_context: Context, update: dict
    ) -> None:
        changed = morning_sunny_context.model_copy(update=update)

        assert changed.fingerprint() == morning_sunny_context.fingerprint()
        assert changed.rule_cache_key() != morning_sunny_context.rule_cache_key()

    def test_rule_cache_key_ignores_request_identity(self, morning_sunny_context: Context) -> None:
        other = morning_sunny_context.model_copy(update={"context_id": "ctx-other"})
        assert other.rule_cache_key() == morning_sunny_context.rule_cache_key()

    def test_context_is_frozen(self, morning_sunny_context: Context) -> None:
        with pytest.raises(ValidationError):
            morning_sunny_context.time_of_day = TimeOfDay.NIGHT  # type: ignore[misc]

    def test_summary_flattens_enums(self) -> None:
        context = Context(
            time_of_day=TimeOfDay.AFTERNOON,
            weather=Weather(condition=WeatherCondition.CLOUDY, temperature=18.0),
            location=GeoLocation(city="Paris", country="FR"),
            season=Season.SPRING,
            mood=MoodReading(primary=Mood.CALM, confidence=0.8),
        )
        summary = context.summary()
        assert summary["time_of_day"] == "afternoon"
        assert summary["weather"] == "cloudy"
        assert summary["mood"] == "calm"
        assert summary["activity"] is None


# ======================================================================
# Rules
# ======================================================================


class TestRuleConditions:
    def test_empty_lists_are_wildcards(self) -> None:
        conditions = RuleConditions.model_validate({"time_of_day": [], "weather": []})
        assert conditions.time_of_day is None
        assert conditions.weather is None
        assert conditions.is_satisfied_by(Context(time_of_day=TimeOfDay.NIGHT))

    def test_time_of_day_must_match(self, evening_rainy_context: Context) -> None:
        conditions = RuleConditions(time_of_day=[TimeOfDay.MORNING])
        assert not conditions.is_satisfied_by(evening_rainy_context)

    def test_temperature_range_is_inclusive(self) -> None:
        window = TemperatureRange(min=15, max=35)
        assert window.contains(15)
        assert window.contains(35)
        assert not window.contains(14.9)

    def test_missing_temperature_never_disqualifies(self) -> None:
        conditions = RuleConditions(temperature_range=TemperatureRange(min=30))
        context = Context(time_of_day=TimeOfDay.MORNING)
        assert conditions.is_satisfied_by(context)

    def test_missing_mood_never_disqualifies(self) -> None:
        conditions = RuleConditions(mood=[Mood.HAPPY])
        assert conditions.is_satisfied_by(Context(time_of_day=TimeOfDay.MORNING))

    def test_present_mood_must_match(self) -> None:
        conditions = RuleConditions(mood=[Mood.HAPPY])
        context = Context(time_of_day=TimeOfDay.MORNING, mood=MoodReading(primary=Mood.SAD))
        assert not conditions.is_satisfied_by(context)

    def test_geo_region_city_filter(self, evening_rainy_context: Context) -> None:
        conditions = RuleConditions.model_validate({"geo_region": {"cities": ["Berlin"]}})
        assert not conditions.is_satisfied_by(evening_rainy_context)


class TestRuleMatchScore:
    def test_non_matching_rule_scores_zero(self, morning_sunny_context: Context) -> None:
        rule = Rule.model_validate(rule_document())
        assert rule.match_score(morning_sunny_context) == 0.0

    def test_exact_hits_add_bonuses(self, evening_rainy_context: Context) -> None:
        rule = Rule.model_validate(rule_document())
        # priority 9 + 0.5 time of day + 0.5 weather
        assert rule.match_score(evening_rainy_context) == pytest.approx(10.0)

    def test_success_rate_scales_score(self, evening_rainy_context: Context) -> None:
        rule = Rule.model_validate(rule_document()).with_effectiveness(
            RuleEffectiveness(applied_count=4, success_rate=0.5)
        )
        assert rule.match_score(evening_rainy_context) == pytest.approx(15.0)

    def test_wildcard_rule_scores_its_priority(self) -> None:
        rule = Rule(rule_id="any", name="Any", priority=3)
        assert rule.match_score(Context(time_of_day=TimeOfDay.NIGHT)) == pytest.approx(3.0)

    def test_priority_out_of_range_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Rule(rule_id="bad", name="Bad", priority=11)

    def test_tempo_uses_bpm_range(self) -> None:
        assert AudioFeature.TEMPO.natural_range == (0.0, 250.0)
        assert AudioFeature.ENERGY.natural_range == (0.0, 1.0)


class TestRuleEffectiveness:
    def test_record_increments_and_stamps(self) -> None:
        updated = RuleEffectiveness().record(applied=True, success=True, rating=4)
        assert updated.applied_count == 1
        assert updated.success_rate == pytest.approx(1.0)
        assert updated.avg_rating == pytest.approx(4.0)
        assert updated.last_applied is not None

    def test_running_means(self) -> None:
        eff = RuleEffectiveness()
        eff = eff.record(success=True, rating=5)
        eff = eff.record(success=False, rating=3)
        assert eff.applied_count == 2
        assert eff.success_rate == pytest.approx(0.5)
        assert eff.avg_rating == pytest.approx(4.0)

    def test_zero_count_leaves_rates_untouched(self) -> None:
        eff = RuleEffectiveness().record(applied=False, success=True, rating=5)
        assert eff.applied_count == 0
        assert eff.success_rate == 0.0
        assert eff.avg_rating == 0.0

    def test_record_returns_new_instance(self) -> None:
        original = RuleEffectiveness()
        original.record()
        assert original.applied_count == 0

    def test_fallback_applied_rule(self) -> None:
        applied = AppliedRule(rule_id=FALLBACK_RULE_ID, name="Fallback", weight=1.0, match_score=0.5)
        match = RuleMatch(candidates=CandidateProfile(), applied_rules=[applied])
        assert applied.is_fallback
        assert match.is_fallback


# ======================================================================
# Tracks
# ======================================================================


class TestTrack:
    def test_genres_deduplicate_across_artists(self) -> None:
        track = Track(
            id="t1",
            name="Song",
            artists=[
                Artist(name="A", genres=["indie", "pop"]),
                Artist(name="B", genres=["pop", "rock"]),
            ],
        )
        assert track.genres == ["indie", "pop", "rock"]
        assert track.primary_artist == "A"

    def test_scored_track_keeps_catalog_fields(self) -> None:
        scored = ScoredTrack.from_track(make_track("t1", explicit=True), score=0.7)
        assert scored.explicit is True
        assert scored.score == 0.7
        assert scored.final_score is None

    def test_score_must_be_in_unit_range(self) -> None:
        with pytest.raises(ValidationError):
            ScoredTrack.from_track(make_track("t1"), score=1.2)


# ======================================================================
# Recommendation
# ======================================================================


class TestRecommendationOptions:
    def test_defaults(self) -> None:
        options = RecommendationOptions()
        assert options.target_length == 20
        assert options.diversity_weight == 0.3
        assert options.force_create is False

    @pytest.mark.parametrize("length", [9, 51])
    def test_target_length_bounds(self, length: int) -> None:
        with pytest.raises(ValidationError):
            RecommendationOptions(target_length=length)

    def test_diversity_weight_bounds(self) -> None:
        with pytest.raises(ValidationError):
            RecommendationOptions(diversity_weight=1.5)


class TestRecommendationResult:
    def test_tracks_concatenate_sections(self) -> None:
        result = RecommendationResult(
            rec_id="r1",
            user_id="u1",
            user_tracks=[ScoredTrack.from_track(make_track("a"))],
            global_tracks=[ScoredTrack.from_track(make_track("b"))],
        )
        assert [t.id for t in result.tracks] == ["a", "b"]
        assert result.total_duration_ms == 360_000


class TestRecommendationFailure:
    def test_from_error_uses_message(self) -> None:
        failure = RecommendationFailure.from_error(
            NotFoundError(message="User not found: u1", provider_name="users"),
            rec_id="r1",
            time_of_day="night",
            weather="rainy",
        )
        assert failure.reason == "User not found: u1"
        assert failure.error_type == "NotFoundError"
        assert [a.type for a in failure.alternatives] == ["curated", "search", "popular"]
        assert failure.alternatives[1].query == "night rainy"

    def test_without_context_skips_search(self) -> None:
        failure = RecommendationFailure.from_error(RuntimeError("boom"))
        assert [a.type for a in failure.alternatives] == ["curated", "popular"]


class TestUserInteraction:
    def test_engagement_score_sums_signals(self) -> None:
        interaction = UserInteraction(
            clicked=True,
            opened=True,
            played=True,
            saved=True,
            shared=True,
            rating=4,
            completion_rate=50.0,
        )
        # 1 + 2 + 3 + 5 + 4 + 4 + 0.5 * 2
        assert interaction.engagement_score() == pytest.approx(20.0)

    def test_rating_bounds(self) -> None:
        with pytest.raises(ValidationError):
            UserInteraction(rating=6)

    def test_with_interaction_recomputes_engagement(self) -> None:
        record = RecommendationLogRecord(
            rec_id="r1",
            user_id="u1",
            recommendation_type="hybrid",
            algorithm=AlgorithmInfo(version="1.0", model="hybrid_rule_based"),
        )
        updated = record.with_interaction(UserInteraction(saved=True))
        assert updated.engagement_score == 5.0
        assert record.engagement_score == 0.0
