"""Track ranker: multi-signal weighted scoring of a candidate pool.

Every track receives four component scores in [0, 1]:

    score = 0.40 * context      (genre / boosted-artist / mood keyword fit)
          + 0.35 * preference   (top artists, shared title words, popularity tier)
          + 0.15 * popularity   (catalog popularity / 100)
          + 0.10 * novelty      (how new the track is to this listener)

followed by multiplicative penalties, in order: x0.7 if the track is in the
listener's recent-plays window, then x0.5 if it is explicit and the
listener avoids explicit content.  The result is clamped to [0, 1].

Ranking quality loss is preferable to request failure, so any unexpected
error returns the pool unranked with a uniform score of 0.5.
"""

from __future__ import annotations

from contextune.models.context import Context, Mood, WeatherCondition
from contextune.models.profile import CandidateProfile, UserProfile
from contextune.models.track import ScoredTrack, Track
from contextune.utils.confidence import clamp_unit
from contextune.utils.logging import get_logger

# Component weights.
CONTEXT_WEIGHT = 0.40
PREFERENCE_WEIGHT = 0.35
POPULARITY_WEIGHT = 0.15
NOVELTY_WEIGHT = 0.10

# Penalties.
RECENTLY_PLAYED_PENALTY = 0.7
EXPLICIT_PENALTY = 0.5

# Reason thresholds.
_CONTEXT_REASON_THRESHOLD = 0.7
_PREFERENCE_REASON_THRESHOLD = 0.7
_NOVELTY_REASON_THRESHOLD = 0.8

_DEFAULT_POPULARITY = 50.0
_FALLBACK_SCORE = 0.5
_MIN_SIGNIFICANT_WORD = 3

# Title keywords per detected mood.
_MOOD_KEYWORDS: dict[Mood, tuple[str, ...]] = {
    Mood.HAPPY: ("happy", "joy"),
    Mood.CALM: ("calm", "peace"),
}
_MOOD_KEYWORD_BONUS = 0.5
_RAIN_KEYWORD_BONUS = 0.3


def _popularity(track: Track) -> float:
    return track.popularity if track.popularity is not None else _DEFAULT_POPULARITY


def _artist_matches(track: Track, profile: UserProfile) -> bool:
    """True if any track artist is one of the listener's top artists.

    Ids are compared when both sides carry one; otherwise names are
    compared case-insensitively.
    """
    for artist in track.artists:
        for top in profile.top_artists:
            if artist.id and top.id:
                if artist.id == top.id:
                    return True
            elif artist.name.lower() == top.name.lower():
                return True
    return False


def is_recently_played(track: Track, profile: UserProfile) -> bool:
    return track.id in profile.recent_track_ids()


# ---------------------------------------------------------------------------
# Component scores
# ---------------------------------------------------------------------------

def mood_match(track: Track, context: Context) -> float:
    """Keyword match between the track title and the detected mood / weather."""
    score = 0.0
    name = track.name.lower()
    mood = context.mood_value
    keywords = _MOOD_KEYWORDS.get(mood) if mood is not None else None
    if keywords and any(k in name for k in keywords):
        score += _MOOD_KEYWORD_BONUS
    if context.weather.condition is WeatherCondition.RAINY and "rain" in name:
        score += _RAIN_KEYWORD_BONUS
    return clamp_unit(score)


def context_score(track: Track, context: Context, candidates: CandidateProfile) -> float:
    score = 0.0

    # Genre: the track's own genre tags when the catalog supplied them,
    # otherwise the profile's top genres stand in for them.
    track_genres = [g.lower() for g in track.genres]
    if not track_genres:
        track_genres = [g.name.lower() for g in candidates.genres[:3]]
    for genre in candidates.genres:
        needle = genre.name.lower()
        if any(needle in tg for tg in track_genres):
            score += genre.weight * 0.3
            break

    track_artist_names = {a.name.lower() for a in track.artists}
    for boost in candidates.user_artists:
        if boost.artist.lower() in track_artist_names:
            score += boost.boost * 0.4
            break

    score += mood_match(track, context) * 0.3
    return clamp_unit(score)


def preference_score(track: Track, profile: UserProfile) -> float:
    score = 0.0

    if _artist_matches(track, profile):
        score += 0.4

    top_words = {w for t in profile.top_tracks for w in t.name.lower().split()}
    overlap = sum(
        1 for w in track.name.lower().split()
        if len(w) > _MIN_SIGNIFICANT_WORD and w in top_words
    )
    if overlap > 0:
        score += min(0.3, overlap * 0.1)

    popularity = _popularity(track)
    if 30 <= popularity <= 80:
        score += 0.3
    elif popularity > 80:
        score += 0.2
    else:
        score += 0.1

    return clamp_unit(score)


def novelty_score(track: Track, profile: UserProfile) -> float:
    if is_recently_played(track, profile):
        return 0.1
    if _artist_matches(track, profile):
        return 0.6
    popularity = track.popularity if track.popularity is not None else 0.0
    if popularity > 20:
        return 0.8
    return 0.5


# ---------------------------------------------------------------------------
# Ranker
# ---------------------------------------------------------------------------

class TrackRanker:
    """Scores and sorts a candidate pool against context and taste."""

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    def score_track(
        self,
        track: Track,
        context: Context,
        profile: UserProfile,
        candidates: CandidateProfile,
    ) -> ScoredTrack:
        reasons: list[str] = []

        ctx = context_score(track, context, candidates)
        if ctx > _CONTEXT_REASON_THRESHOLD:
            reasons.append("Great context match")

        pref = preference_score(track, profile)
        if pref > _PREFERENCE_REASON_THRESHOLD:
            reasons.append("Matches your taste")

        pop = clamp_unit(_popularity(track) / 100)

        nov = novelty_score(track, profile)
        if nov > _NOVELTY_REASON_THRESHOLD:
            reasons.append("New discovery")

        score = (
            CONTEXT_WEIGHT * ctx
            + PREFERENCE_WEIGHT * pref
            + POPULARITY_WEIGHT * pop
            + NOVELTY_WEIGHT * nov
        )
        if is_recently_played(track, profile):
            score *= RECENTLY_PLAYED_PENALTY
        if track.explicit and profile.preferences.avoid_explicit:
            score *= EXPLICIT_PENALTY

        return ScoredTrack.from_track(
            track,
            score=clamp_unit(score),
            reasons=reasons,
            context_score=ctx,
            preference_score=pref,
            popularity_score=pop,
            novelty_score=nov,
        )

    def rank(
        self,
        tracks: list[Track],
        context: Context,
        profile: UserProfile,
        candidates: CandidateProfile,
    ) -> list[ScoredTrack]:
        """Score every track and return them best first.

        Never raises; on error the pool comes back in its original order
        with a uniform score of 0.5 and no reasons.
        """
        try:
            scored = [self.score_track(t, context, profile, candidates) for t in tracks]
        except Exception as exc:  # noqa: BLE001
            self._logger.error("ranking_failed", error=str(exc), pool_size=len(tracks))
            return [
                ScoredTrack.from_track(t, score=_FALLBACK_SCORE, reasons=[]) for t in tracks
            ]

        scored.sort(key=lambda t: t.score, reverse=True)
        self._logger.debug(
            "tracks_ranked",
            pool_size=len(scored),
            top_score=scored[0].score if scored else None,
        )
        return scored
