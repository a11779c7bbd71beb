"""Recommendation request, result, audit-log and feedback models.

The lifecycle of a recommendation:

1. ``RecommendationOptions`` arrive with a request.
2. The orchestrator produces a ``RecommendationResult`` (two sections:
   tracks sourced from the user's playlists and from the global catalog)
   or a ``RecommendationFailure`` carrying a human-readable reason and
   suggested fallback actions.
3. Exactly one ``RecommendationLogRecord`` is appended to the audit log
   per invocation, success or failure.
4. Later, feedback events (click / open / play / save / share / rate /
   session_update) update only the record's ``interaction`` block and its
   derived ``engagement_score``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from contextune.models.rule import AppliedRule
from contextune.models.track import ScoredTrack

USER_SOURCE = "user_playlists"
GLOBAL_SOURCE = "global_catalog"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# Request options
# ---------------------------------------------------------------------------
class RecommendationOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_length: int = Field(default=20, ge=10, le=50)
    diversity_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    # Skip the recent-similar-playlist check and always build a new one.
    force_create: bool = False
    idempotency_window_seconds: int = Field(default=2 * 60 * 60, ge=0)
    # Cooperative deadline for the whole pipeline; None disables it.
    deadline_seconds: float | None = Field(default=None, gt=0)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------
class DiversityMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    artist_count: int = 0
    genre_count: int = 0
    tempo_variance: float = 0.0
    mood_variance: float = 0.0


class PlaylistRecord(BaseModel):
    """A playlist previously created for a user, used for idempotency."""

    model_config = ConfigDict(frozen=True)

    playlist_id: str
    user_id: str
    rec_id: str | None = None
    name: str
    description: str = ""
    time_of_day: str | None = None
    weather: str | None = None
    city: str | None = None
    track_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


class RecommendationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    rec_id: str
    user_id: str
    user_tracks: list[ScoredTrack] = Field(default_factory=list)
    global_tracks: list[ScoredTrack] = Field(default_factory=list)
    playlist_name: str = ""
    playlist_description: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    diversity: DiversityMetrics = Field(default_factory=DiversityMetrics)
    applied_rules: list[AppliedRule] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    # Branches that failed and were treated as empty.
    degraded_branches: list[str] = Field(default_factory=list)
    processing_ms: float = 0.0
    generated_at: datetime = Field(default_factory=_utcnow)
    # True when an existing recent playlist was returned instead of a new one.
    is_existing: bool = False
    playlist: PlaylistRecord | None = None

    @property
    def tracks(self) -> list[ScoredTrack]:
        return [*self.user_tracks, *self.global_tracks]

    @property
    def total_duration_ms(self) -> int:
        return sum(t.duration_ms for t in self.tracks)


# ---------------------------------------------------------------------------
# Failure
# ---------------------------------------------------------------------------
class FallbackAction(BaseModel):
    """An alternative the caller can offer when no playlist can be built."""

    model_config = ConfigDict(frozen=True)

    type: str
    title: str
    description: str
    action: str
    url: str | None = None
    query: str | None = None


CURATED_PLAYLIST_URL = "https://open.spotify.com/playlist/37i9dQZF1DX0XUsuxWHRQd"
FEATURED_PLAYLISTS_URL = "https://open.spotify.com/browse/featured"


class RecommendationFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    rec_id: str | None = None
    reason: str
    error_type: str
    retry_available: bool = True
    retry_delay_seconds: int = 60
    alternatives: list[FallbackAction] = Field(default_factory=list)

    @classmethod
    def from_error(
        cls,
        error: Exception,
        rec_id: str | None = None,
        time_of_day: str | None = None,
        weather: str | None = None,
    ) -> RecommendationFailure:
        alternatives = [
            FallbackAction(
                type="curated",
                title="Curated Playlist",
                description="Hand-picked playlist for similar moods",
                action="redirect",
                url=CURATED_PLAYLIST_URL,
            ),
        ]
        if time_of_day:
            query = f"{time_of_day} {weather or 'music'}"
            alternatives.append(
                FallbackAction(
                    type="search",
                    title="Search Spotify",
                    description=f'Search for "{query}" on Spotify',
                    action="search",
                    query=query,
                )
            )
        alternatives.append(
            FallbackAction(
                type="popular",
                title="Popular Now",
                description="Currently trending playlists",
                action="redirect",
                url=FEATURED_PLAYLISTS_URL,
            )
        )
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        return cls(
            rec_id=rec_id,
            reason=message,
            error_type=type(error).__name__,
            alternatives=alternatives,
        )


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------
class FeedbackAction(str, Enum):  # noqa: UP042: StrEnum requires Python 3.11+
    CLICK = "click"
    OPEN = "open"
    PLAY = "play"
    SAVE = "save"
    SHARE = "share"
    RATE = "rate"
    SESSION_UPDATE = "session_update"


class UserInteraction(BaseModel):
    model_config = ConfigDict(frozen=True)

    clicked: bool = False
    clicked_at: datetime | None = None
    opened: bool = False
    opened_at: datetime | None = None
    played: bool = False
    played_at: datetime | None = None
    saved: bool = False
    saved_at: datetime | None = None
    shared: bool = False
    shared_at: datetime | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    rated_at: datetime | None = None
    feedback: str | None = None
    tracks_played: int = 0
    tracks_skipped: int = 0
    session_duration_seconds: float = 0.0
    # Percentage of delivered tracks that were played.
    completion_rate: float | None = None

    def engagement_score(self) -> float:
        score = 0.0
        if self.clicked:
            score += 1
        if self.opened:
            score += 2
        if self.played:
            score += 3
        if self.saved:
            score += 5
        if self.shared:
            score += 4
        if self.rating:
            score += self.rating
        if self.completion_rate:
            score += (self.completion_rate / 100) * 2
        return score


class PlayStats(BaseModel):
    """Listening-session counters reported with a ``session_update``."""

    model_config = ConfigDict(frozen=True)

    tracks_played: int = Field(default=0, ge=0)
    tracks_skipped: int = Field(default=0, ge=0)
    session_duration_seconds: float = Field(default=0.0, ge=0.0)


class LoggedTrack(BaseModel):
    model_config = ConfigDict(frozen=True)

    track_id: str
    title: str
    artist: str | None = None
    score: float = 0.0
    final_score: float | None = None
    reasons: list[str] = Field(default_factory=list)
    position: int
    source: str | None = None


class LoggedError(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)


class AlgorithmInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    model: str
    confidence: float | None = None
    processing_ms: float = 0.0


class LogInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    context: dict[str, Any] = Field(default_factory=dict)
    user_profile: dict[str, Any] = Field(default_factory=dict)
    applied_rules: list[AppliedRule] = Field(default_factory=list)


class LogOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    tracks: list[LoggedTrack] = Field(default_factory=list)
    playlist_name: str | None = None
    playlist_description: str | None = None
    total_tracks: int = 0
    total_duration_ms: int = 0
    diversity: DiversityMetrics | None = None
    playlist_id: str | None = None


class RecommendationLogRecord(BaseModel):
    """One immutable audit entry per orchestrator invocation.

    Only ``interaction`` and ``engagement_score`` are ever replaced after the
    record is written, and only via feedback calls.
    """

    model_config = ConfigDict(frozen=True)

    rec_id: str
    user_id: str
    context_id: str | None = None
    delivered_at: datetime = Field(default_factory=_utcnow)
    # "hybrid" for generated results, "preview" for previews, "existing"
    # for idempotent hits, "failed" when the request failed.
    recommendation_type: str
    algorithm: AlgorithmInfo
    input: LogInput = Field(default_factory=LogInput)
    output: LogOutput | None = None
    errors: list[LoggedError] = Field(default_factory=list)
    interaction: UserInteraction = Field(default_factory=UserInteraction)
    engagement_score: float = 0.0

    def with_interaction(self, interaction: UserInteraction) -> RecommendationLogRecord:
        return self.model_copy(
            update={
                "interaction": interaction,
                "engagement_score": interaction.engagement_score(),
            }
        )
