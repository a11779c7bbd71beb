"""Rule matcher: turns a request context into a normalised candidate profile.

Architecture overview
---------------------
  1. MATCH    -- ask the rule store for active rules that match the
                 context (read through a cache keyed on every matchable
                 context signal).
  2. COMBINE  -- fold every matched rule into one candidate profile.  Each
                 rule contributes ``priority * match_score``.  A rule's own
                 theme and genre weights are first scaled to sum to 1, then
                 accumulate per name scaled by the contribution, and are
                 finally divided by the total contribution, so each map
                 sums to 1.0.  Audio-feature targets are weight-averaged and
                 their min/max bounds intersected.  Tags and exclusions are
                 unioned.
  3. FALLBACK -- when nothing matches (or the store is unreachable), a
                 heuristic profile is built from time of day and weather
                 and reported as a single synthetic "fallback" rule.

The fold is pure: it never mutates a rule or an intermediate profile, so
normalisation can be unit-tested on hand-built rule lists.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from contextune.interfaces.cache_provider import ICacheProvider
from contextune.interfaces.rule_store import IRuleStore
from contextune.models.context import Context, TimeOfDay, WeatherCondition
from contextune.models.profile import (
    ArtistBoost,
    CandidateProfile,
    GenreBoost,
    RuleMatch,
    UserProfile,
)
from contextune.models.rule import (
    FALLBACK_RULE_ID,
    AppliedRule,
    AudioFeature,
    AudioFeatureTarget,
    Rule,
    WeightedName,
)
from contextune.utils.errors import ExternalServiceError
from contextune.utils.logging import get_logger

_DEFAULT_LIMIT = 10
_CACHE_KEY_PREFIX = "rules_"

# User boosts decay with rank and never drop below the floor.
_GENRE_BOOST_START = 1.0
_GENRE_BOOST_STEP = 0.1
_GENRE_BOOST_FLOOR = 0.1
_ARTIST_BOOST_START = 0.5
_ARTIST_BOOST_STEP = 0.05
_ARTIST_BOOST_FLOOR = 0.05
_MAX_BOOSTED_ARTISTS = 10

_FALLBACK_RULE_NAME = "Fallback Rule"
_FALLBACK_MATCH_SCORE = 0.5


# ---------------------------------------------------------------------------
# Combination fold
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _FeatureAccumulator:
    """Running weighted average of one audio-feature target."""

    min: float
    max: float
    target: float | None = None
    weight: float = 0.0

    def fold(self, source: AudioFeatureTarget, contribution: float) -> _FeatureAccumulator:
        target, weight = self.target, self.weight
        if source.target is not None:
            source_weight = (source.weight if source.weight is not None else 1.0) * contribution
            total = weight + source_weight
            if total > 0:
                target = ((target or 0.0) * weight + source.target * source_weight) / total
                weight = total
            elif target is None:
                target = source.target
        return _FeatureAccumulator(
            min=self.min if source.min is None else max(self.min, source.min),
            max=self.max if source.max is None else min(self.max, source.max),
            target=target,
            weight=weight,
        )

    def to_target(self) -> AudioFeatureTarget:
        return AudioFeatureTarget(
            min=self.min, max=self.max, target=self.target, weight=self.weight
        )


@dataclass(frozen=True)
class _Combination:
    """Immutable accumulator threaded through :func:`combine_rules`."""

    # Contribution of the rules that actually carried themes / genres.
    theme_weight: float = 0.0
    genre_weight: float = 0.0
    themes: tuple[tuple[str, float], ...] = ()
    genres: tuple[tuple[str, float], ...] = ()
    features: tuple[tuple[AudioFeature, _FeatureAccumulator], ...] = ()
    context_tags: tuple[str, ...] = ()
    mood_tags: tuple[str, ...] = ()
    excluded_genres: tuple[str, ...] = ()
    excluded_mood_tags: tuple[str, ...] = ()
    applied: tuple[AppliedRule, ...] = field(default_factory=tuple)


def _add_weights(
    current: tuple[tuple[str, float], ...],
    entries: list[WeightedName],
    contribution: float,
) -> tuple[tuple[tuple[str, float], ...], float]:
    """Accumulate one rule's weights; returns the merged map and the contribution used.

    The rule's weights are scaled to sum to 1 first, so a rule with no
    positive weights adds nothing and reports a contribution of 0.
    """
    own_total = sum(entry.weight for entry in entries)
    if own_total <= 0:
        return current, 0.0
    merged = dict(current)
    for entry in entries:
        share = entry.weight / own_total
        merged[entry.name] = merged.get(entry.name, 0.0) + share * contribution
    return tuple(merged.items()), contribution


def _union(current: tuple[str, ...], extra: list[str]) -> tuple[str, ...]:
    merged = dict.fromkeys(current)
    merged.update(dict.fromkeys(extra))
    return tuple(merged)


def _fold_rule(acc: _Combination, rule: Rule, context: Context) -> _Combination:
    match_score = rule.match_score(context)
    contribution = rule.priority * match_score
    recs = rule.recommendations

    features = dict(acc.features)
    for feature, source in recs.audio_features.items():
        low, high = feature.natural_range
        current = features.get(feature, _FeatureAccumulator(min=low, max=high))
        features[feature] = current.fold(source, contribution)

    themes, theme_contribution = _add_weights(acc.themes, recs.themes, contribution)
    genres, genre_contribution = _add_weights(acc.genres, recs.genres, contribution)
    return _Combination(
        theme_weight=acc.theme_weight + theme_contribution,
        genre_weight=acc.genre_weight + genre_contribution,
        themes=themes,
        genres=genres,
        features=tuple(features.items()),
        context_tags=_union(acc.context_tags, recs.context_tags),
        mood_tags=_union(acc.mood_tags, recs.mood_tags),
        excluded_genres=_union(acc.excluded_genres, recs.excluded_genres),
        excluded_mood_tags=_union(acc.excluded_mood_tags, recs.excluded_mood_tags),
        applied=(
            *acc.applied,
            AppliedRule(
                rule_id=rule.rule_id,
                name=rule.name,
                weight=float(rule.priority),
                match_score=match_score,
            ),
        ),
    )


def _ranked(entries: tuple[tuple[str, float], ...], total: float) -> list[WeightedName]:
    # A zero total leaves weights unnormalised instead of dividing by zero.
    divisor = total if total > 0 else 1.0
    weighted = [WeightedName(name=name, weight=weight / divisor) for name, weight in entries]
    return sorted(weighted, key=lambda w: w.weight, reverse=True)


def combine_rules(
    rules: list[Rule],
    context: Context,
    profile: UserProfile | None = None,
) -> tuple[CandidateProfile, list[AppliedRule]]:
    """Fold matched *rules* into a normalised candidate profile.

    Rules that score 0 against *context* are skipped.  Returns the profile
    and the applied-rule records in fold order.
    """
    acc = _Combination()
    for rule in rules:
        if rule.match_score(context) <= 0:
            continue
        acc = _fold_rule(acc, rule, context)

    candidates = CandidateProfile(
        themes=_ranked(acc.themes, acc.theme_weight),
        genres=_ranked(acc.genres, acc.genre_weight),
        audio_features={f: a.to_target() for f, a in acc.features},
        context_tags=list(acc.context_tags),
        mood_tags=list(acc.mood_tags),
        excluded_genres=list(acc.excluded_genres),
        excluded_mood_tags=list(acc.excluded_mood_tags),
        user_genres=user_genre_boosts(profile),
        user_artists=user_artist_boosts(profile),
        context_fingerprint=context.fingerprint(),
    )
    return candidates, list(acc.applied)


# ---------------------------------------------------------------------------
# User boosts
# ---------------------------------------------------------------------------

def user_genre_boosts(profile: UserProfile | None) -> list[GenreBoost]:
    if profile is None:
        return []
    return [
        GenreBoost(
            genre=genre.name,
            boost=max(_GENRE_BOOST_FLOOR, _GENRE_BOOST_START - i * _GENRE_BOOST_STEP),
        )
        for i, genre in enumerate(profile.top_genres)
    ]


def user_artist_boosts(profile: UserProfile | None) -> list[ArtistBoost]:
    if profile is None:
        return []
    return [
        ArtistBoost(
            artist=artist.name,
            artist_id=artist.id,
            boost=max(_ARTIST_BOOST_FLOOR, _ARTIST_BOOST_START - i * _ARTIST_BOOST_STEP),
        )
        for i, artist in enumerate(profile.top_artists[:_MAX_BOOSTED_ARTISTS])
    ]


# ---------------------------------------------------------------------------
# Fallback heuristics
# ---------------------------------------------------------------------------

def fallback_genres(context: Context) -> list[str]:
    condition = context.weather.condition
    if context.time_of_day is TimeOfDay.MORNING:
        return ["pop", "indie", "electronic"]
    if context.time_of_day in (TimeOfDay.EVENING, TimeOfDay.NIGHT):
        if condition is WeatherCondition.RAINY:
            return ["jazz", "acoustic", "r&b"]
        return ["alternative", "indie", "electronic"]
    if condition is WeatherCondition.SUNNY:
        return ["pop", "indie", "reggae"]
    return ["pop", "indie", "alternative"]


def fallback_audio_features(context: Context) -> dict[AudioFeature, AudioFeatureTarget]:
    energy = valence = 0.5

    if context.time_of_day is TimeOfDay.MORNING:
        energy, valence = 0.7, 0.7
    elif context.time_of_day is TimeOfDay.NIGHT:
        energy, valence = 0.3, 0.4

    # Weather overrides time of day.
    if context.weather.condition is WeatherCondition.RAINY:
        energy, valence = 0.3, 0.3
    elif context.weather.condition is WeatherCondition.SUNNY:
        energy, valence = 0.7, 0.8

    return {
        AudioFeature.VALENCE: AudioFeatureTarget(min=0.3, max=0.8, target=valence, weight=1.0),
        AudioFeature.ENERGY: AudioFeatureTarget(min=0.3, max=0.8, target=energy, weight=1.0),
        AudioFeature.DANCEABILITY: AudioFeatureTarget(min=0.2, max=0.8, target=0.5, weight=0.5),
    }


def fallback_match(context: Context, profile: UserProfile | None = None) -> RuleMatch:
    genres = fallback_genres(context)
    candidates = CandidateProfile(
        themes=[WeightedName(name="general", weight=1.0)],
        genres=[WeightedName(name=g, weight=1.0 / len(genres)) for g in genres],
        audio_features=fallback_audio_features(context),
        context_tags=[context.time_of_day.value, context.weather.condition.value],
        mood_tags=["general"],
        user_genres=user_genre_boosts(profile),
        user_artists=user_artist_boosts(profile),
        context_fingerprint=context.fingerprint(),
    )
    return RuleMatch(
        candidates=candidates,
        applied_rules=[
            AppliedRule(
                rule_id=FALLBACK_RULE_ID,
                name=_FALLBACK_RULE_NAME,
                weight=1.0,
                match_score=_FALLBACK_MATCH_SCORE,
            )
        ],
        processing_ms=0.0,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class RuleMatcher:
    """Selects, scores and combines context-matching rules.

    Parameters
    ----------
    rule_store:
        Source of active rules.
    cache:
        Optional cache of matched rule lists keyed by
        :meth:`Context.rule_cache_key`.  A hit returns the list the store
        gave for an identical set of matchable signals; staleness only
        delays effectiveness updates.
    limit:
        Maximum number of rules combined per request.
    """

    def __init__(
        self,
        rule_store: IRuleStore,
        cache: ICacheProvider | None = None,
        limit: int = _DEFAULT_LIMIT,
        cache_ttl: int | None = None,
    ) -> None:
        self._rule_store = rule_store
        self._cache = cache
        self._limit = limit
        self._cache_ttl = cache_ttl
        self._logger = get_logger(__name__)

    async def matching_rules(self, context: Context) -> list[Rule]:
        """Active rules matching *context*, read through the cache."""
        key = f"{_CACHE_KEY_PREFIX}{context.rule_cache_key()}"
        if self._cache is not None:
            cached = await self._cache.get(key)
            if cached is not None:
                return cached

        rules = await self._rule_store.find_matching_rules(context, self._limit)

        if self._cache is not None:
            await self._cache.set(key, rules, ttl=self._cache_ttl)
        return rules

    async def match(self, context: Context, profile: UserProfile | None = None) -> RuleMatch:
        """Build the candidate profile for *context*.

        Never raises for store failures: an unreachable rule store is
        logged and served by the fallback profile.
        """
        start = time.perf_counter()
        try:
            rules = await self.matching_rules(context)
        except ExternalServiceError as exc:
            self._logger.error(
                "rule_store_unavailable",
                provider=self._rule_store.get_provider_name(),
                error=str(exc),
            )
            rules = []

        if not rules:
            self._logger.warning("no_matching_rules", context=context.summary())
            return fallback_match(context, profile)

        candidates, applied = combine_rules(rules, context, profile)
        if not applied:
            # None of the returned rules satisfies this context.
            return fallback_match(context, profile)

        elapsed_ms = (time.perf_counter() - start) * 1000
        self._logger.info(
            "rule_match_complete",
            fingerprint=candidates.context_fingerprint,
            rules_matched=len(applied),
            top_genres=candidates.genre_names[:3],
            processing_ms=round(elapsed_ms, 2),
        )
        return RuleMatch(candidates=candidates, applied_rules=applied, processing_ms=elapsed_ms)

    async def clear_cache(self) -> None:
        if self._cache is not None:
            await self._cache.clear()
        self._logger.info("rule_cache_cleared")
