"""Recommendation orchestrator: the two-branch hybrid pipeline.

Coordinates context capture, profile building, rule matching, candidate
fetching, ranking and diversity selection into one request, and writes
exactly one audit record per invocation.

ARCHITECTURE NOTE (for junior developers):
    A request produces a single playlist blended from TWO sources:

        - the user branch    -> tracks from the listener's own playlists
                                (40% of the target length, rounded down)
        - the global branch  -> tracks from the whole catalog
                                (the remaining 60%)

    Both branches share one rule match (the candidate profile tells the
    ranker what "fits the moment"), then run concurrently with
    ``asyncio.gather(..., return_exceptions=True)``.  A branch that raises
    is logged, recorded in ``degraded_branches`` and treated as empty.
    Only when BOTH branches come back empty does the request fail with
    ServiceUnavailableError; tracks are never fabricated.

    Public entry points:
        - generate_recommendations()  -> checks for a recent similar
          playlist first (idempotency), then builds and saves a new one.
        - preview_recommendations()   -> the identical pipeline, without
          the idempotency check and without saving anything.

    Errors the caller should see as a "could not build a playlist"
    outcome (NotFound, NoCandidates, ServiceUnavailable, deadline or
    cancellation) come back as a RecommendationFailure value rather than
    an exception.  Audit-log writes are best-effort and never turn a
    successful request into a failed one.
"""

from __future__ import annotations

import asyncio
import math
import time
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

import structlog

from contextune.interfaces.catalog_provider import ICatalogProvider
from contextune.interfaces.log_sink import ILogSink
from contextune.interfaces.playlist_store import IPlaylistStore
from contextune.models.context import Context, GeoLocation
from contextune.models.profile import CandidateProfile, RuleMatch, UserProfile
from contextune.models.recommendation import (
    GLOBAL_SOURCE,
    USER_SOURCE,
    AlgorithmInfo,
    DiversityMetrics,
    LoggedError,
    LoggedTrack,
    LogInput,
    LogOutput,
    PlaylistRecord,
    RecommendationFailure,
    RecommendationLogRecord,
    RecommendationOptions,
    RecommendationResult,
)
from contextune.models.track import ScoredTrack, Track
from contextune.services.candidate_fetcher import CandidateFetcher, dedupe_tracks
from contextune.services.context_service import ContextService
from contextune.services.diversity_selector import DiversitySelector
from contextune.services.playlist_namer import PlaylistNamer, playlist_tags
from contextune.services.profile_builder import ProfileBuilder
from contextune.services.rule_matcher import RuleMatcher
from contextune.services.track_ranker import TrackRanker
from contextune.utils.concurrency import parallel_fetch
from contextune.utils.confidence import calculate_confidence, mean, population_variance
from contextune.utils.errors import ContextuneError, ServiceUnavailableError
from contextune.utils.logging import get_logger

# Branch weights in the blended confidence score.
USER_BRANCH_WEIGHT = 0.6
GLOBAL_BRANCH_WEIGHT = 0.4

# Neutral values for tracks without audio features in the diversity metrics.
_DEFAULT_TEMPO = 120.0
_DEFAULT_VALENCE = 0.5

_TYPE_GENERATED = "hybrid"
_TYPE_PREVIEW = "preview"
_TYPE_EXISTING = "existing"
_TYPE_FAILED = "failed"


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def filter_for_context(
    tracks: list[Track],
    candidates: CandidateProfile,
    profile: UserProfile,
) -> list[Track]:
    """Drop tracks in an excluded genre, and explicit tracks when the
    listener avoids explicit content."""
    excluded = {g.lower() for g in candidates.excluded_genres}
    kept: list[Track] = []
    for track in tracks:
        if excluded and any(g.lower() in excluded for g in track.genres):
            continue
        if track.explicit and profile.preferences.avoid_explicit:
            continue
        kept.append(track)
    return kept


def diversity_metrics(tracks: list[ScoredTrack]) -> DiversityMetrics:
    artists = {name for t in tracks for name in t.artist_names}
    genres = {g for t in tracks for g in t.genres}
    tempos = [t.tempo if t.tempo is not None else _DEFAULT_TEMPO for t in tracks]
    valences = [t.valence if t.valence is not None else _DEFAULT_VALENCE for t in tracks]
    return DiversityMetrics(
        artist_count=len(artists),
        genre_count=len(genres),
        tempo_variance=population_variance(tempos),
        mood_variance=population_variance(valences),
    )


def blended_confidence(user_tracks: list[ScoredTrack], global_tracks: list[ScoredTrack]) -> float:
    """0.6 / 0.4 weighted mean of each populated branch's mean score."""
    scores: list[float] = []
    weights: list[float] = []
    if user_tracks:
        scores.append(mean([t.score for t in user_tracks]))
        weights.append(USER_BRANCH_WEIGHT)
    if global_tracks:
        scores.append(mean([t.score for t in global_tracks]))
        weights.append(GLOBAL_BRANCH_WEIGHT)
    return calculate_confidence(scores, weights)


def _logged_tracks(tracks: list[ScoredTrack]) -> list[LoggedTrack]:
    return [
        LoggedTrack(
            track_id=t.id,
            title=t.name,
            artist=t.primary_artist,
            score=t.score,
            final_score=t.final_score,
            reasons=t.reasons,
            position=position,
            source=t.source,
        )
        for position, t in enumerate(tracks, start=1)
    ]


@dataclass
class _RequestState:
    """What a request has learned so far; read by the audit writer even
    when the pipeline fails partway through."""

    rec_id: str
    user_id: str
    started: float
    context: Context | None = None
    profile: UserProfile | None = None
    match: RuleMatch | None = None
    degraded: list[str] = field(default_factory=list)

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


class RecommendationOrchestrator:
    """Runs the hybrid recommendation pipeline for one request at a time.

    All collaborators are injected; the orchestrator holds no per-request
    state between calls.

    Parameters
    ----------
    rule_matcher:
        Turns a context into a candidate profile.
    candidate_fetcher:
        Builds the global-catalog track pool.
    track_ranker:
        Scores candidate tracks.
    diversity_selector:
        Picks the final list from a ranked pool.
    profile_builder:
        Builds the listener's taste profile.
    catalog:
        Music catalog, used directly for the user's own playlists.
    log_sink:
        Audit log; one record is written per invocation.
    playlist_store:
        Optional store of generated playlists.  Without it there is no
        idempotency check and nothing is saved.
    context_service:
        Captures a context when the caller does not supply one.
    playlist_namer:
        Name and description templates.
    algorithm_version, algorithm_model:
        Recorded in every audit record.
    user_portion:
        Share of the target length sourced from the user's playlists.
    user_branch_diversity_weight:
        Diversity weight for the user branch selection.
    max_user_playlists:
        How many of the user's playlists feed the user branch.
    default_deadline_seconds:
        Deadline applied when the request options carry none.
    """

    def __init__(
        self,
        rule_matcher: RuleMatcher,
        candidate_fetcher: CandidateFetcher,
        track_ranker: TrackRanker,
        diversity_selector: DiversitySelector,
        profile_builder: ProfileBuilder,
        catalog: ICatalogProvider,
        log_sink: ILogSink,
        playlist_store: IPlaylistStore | None = None,
        context_service: ContextService | None = None,
        playlist_namer: PlaylistNamer | None = None,
        algorithm_version: str = "1.0",
        algorithm_model: str = "hybrid_rule_based",
        user_portion: float = 0.4,
        user_branch_diversity_weight: float = 0.5,
        max_user_playlists: int = 10,
        default_deadline_seconds: float | None = None,
    ) -> None:
        self._rule_matcher = rule_matcher
        self._fetcher = candidate_fetcher
        self._ranker = track_ranker
        self._selector = diversity_selector
        self._profile_builder = profile_builder
        self._catalog = catalog
        self._log_sink = log_sink
        self._playlist_store = playlist_store
        self._context_service = context_service or ContextService()
        self._namer = playlist_namer or PlaylistNamer()
        self._algorithm_version = algorithm_version
        self._algorithm_model = algorithm_model
        self._user_portion = user_portion
        self._user_branch_diversity_weight = user_branch_diversity_weight
        self._max_user_playlists = max_user_playlists
        self._default_deadline = default_deadline_seconds
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_recommendations(
        self,
        user_id: str,
        context: Context | None = None,
        options: RecommendationOptions | None = None,
        location: GeoLocation | None = None,
        timezone: str | None = None,
    ) -> RecommendationResult | RecommendationFailure:
        """Build (or reuse) a context-aware playlist for *user_id*.

        Parameters
        ----------
        user_id:
            The listener.
        context:
            Pre-captured context.  When ``None`` a fresh one is captured
            from *location* and *timezone*.
        options:
            Length, diversity, idempotency and deadline settings.

        Returns
        -------
        RecommendationResult | RecommendationFailure
            The result, marked ``is_existing`` when a recent similar
            playlist was returned, or a structured failure.
        """
        return await self._run(user_id, context, options, location, timezone, persist=True)

    async def preview_recommendations(
        self,
        user_id: str,
        context: Context | None = None,
        options: RecommendationOptions | None = None,
        location: GeoLocation | None = None,
        timezone: str | None = None,
    ) -> RecommendationResult | RecommendationFailure:
        """Run the same pipeline without the idempotency check and without
        saving a playlist record."""
        return await self._run(user_id, context, options, location, timezone, persist=False)

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    async def _run(
        self,
        user_id: str,
        context: Context | None,
        options: RecommendationOptions | None,
        location: GeoLocation | None,
        timezone: str | None,
        persist: bool,
    ) -> RecommendationResult | RecommendationFailure:
        options = options or RecommendationOptions()
        state = _RequestState(
            rec_id=str(uuid.uuid4()),
            user_id=user_id,
            started=time.perf_counter(),
            context=context,
        )
        deadline = options.deadline_seconds or self._default_deadline

        with structlog.contextvars.bound_contextvars(rec_id=state.rec_id, user_id=user_id):
            self._logger.info(
                "recommendation_started",
                target_length=options.target_length,
                persist=persist,
            )
            pipeline = self._pipeline(state, options, location, timezone, persist)
            try:
                if deadline is not None:
                    result = await asyncio.wait_for(pipeline, timeout=deadline)
                else:
                    result = await pipeline
            except (asyncio.TimeoutError, asyncio.CancelledError) as exc:
                error = ServiceUnavailableError(
                    message=(
                        "Recommendation request timed out"
                        if isinstance(exc, asyncio.TimeoutError)
                        else "Recommendation request was cancelled"
                    )
                )
                return await self._fail(state, error)
            except ContextuneError as exc:
                return await self._fail(state, exc)
            except Exception as exc:
                await self._write_audit(self._failure_record(state, exc))
                raise

            record_type = _TYPE_GENERATED if persist else _TYPE_PREVIEW
            if result.is_existing:
                record_type = _TYPE_EXISTING
            await self._write_audit(self._result_record(state, result, record_type))
            self._logger.info(
                "recommendation_complete",
                user_tracks=len(result.user_tracks),
                global_tracks=len(result.global_tracks),
                confidence=round(result.confidence, 3),
                is_existing=result.is_existing,
                processing_ms=round(result.processing_ms, 1),
            )
            return result

    async def _pipeline(
        self,
        state: _RequestState,
        options: RecommendationOptions,
        location: GeoLocation | None,
        timezone: str | None,
        persist: bool,
    ) -> RecommendationResult:
        if state.context is None:
            state.context = await self._context_service.capture(state.user_id, location, timezone)
        context = state.context

        if persist and not options.force_create:
            existing = await self._find_existing(state.user_id, context, options)
            if existing is not None:
                return self._existing_result(state, context, existing)

        profile = await self._profile_builder.build(state.user_id)
        state.profile = profile
        match = await self._rule_matcher.match(context, profile)
        state.match = match

        user_target = math.floor(self._user_portion * options.target_length)
        global_target = options.target_length - user_target

        user_outcome, global_outcome = await asyncio.gather(
            self._user_branch(state.user_id, context, profile, match.candidates, user_target),
            self._global_branch(
                context, profile, match.candidates, global_target, options.diversity_weight
            ),
            return_exceptions=True,
        )
        user_tracks = self._branch_tracks(state, USER_SOURCE, user_outcome)
        global_tracks = self._branch_tracks(state, GLOBAL_SOURCE, global_outcome)

        if not user_tracks and not global_tracks:
            message = "No tracks could be recommended for this context"
            if isinstance(global_outcome, BaseException):
                message = f"{message}: {global_outcome}"
            raise ServiceUnavailableError(message=message)

        # A catalog track already delivered by the user branch is not repeated.
        user_ids = {t.id for t in user_tracks}
        global_tracks = [t for t in global_tracks if t.id not in user_ids]

        tracks = [*user_tracks, *global_tracks]
        result = RecommendationResult(
            rec_id=state.rec_id,
            user_id=state.user_id,
            user_tracks=user_tracks,
            global_tracks=global_tracks,
            playlist_name=self._namer.name(context),
            playlist_description=self._namer.description(context, len(tracks)),
            confidence=blended_confidence(user_tracks, global_tracks),
            diversity=diversity_metrics(tracks),
            applied_rules=match.applied_rules,
            context=context.summary(),
            tags=playlist_tags(context),
            degraded_branches=list(state.degraded),
            processing_ms=state.elapsed_ms(),
        )

        if persist and self._playlist_store is not None:
            playlist = await self._save_playlist(self._playlist_store, result, context)
            if playlist is not None:
                result = result.model_copy(update={"playlist": playlist})
        return result

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def _user_branch(
        self,
        user_id: str,
        context: Context,
        profile: UserProfile,
        candidates: CandidateProfile,
        target: int,
    ) -> list[ScoredTrack]:
        playlists = await self._catalog.get_user_playlists(
            user_id, limit=self._max_user_playlists
        )
        if not playlists:
            return []

        tracks = await parallel_fetch(
            self._catalog.get_playlist_tracks,
            [{"playlist_id": p.id} for p in playlists[: self._max_user_playlists]],
            logger=self._logger,
            error_msg="user_playlist_fetch_failed",
        )
        pool = filter_for_context(dedupe_tracks(tracks), candidates, profile)
        if not pool:
            return []

        ranked = self._ranker.rank(pool, context, profile, candidates)
        return self._selector.select(ranked, target, self._user_branch_diversity_weight)

    async def _global_branch(
        self,
        context: Context,
        profile: UserProfile,
        candidates: CandidateProfile,
        target: int,
        diversity_weight: float,
    ) -> list[ScoredTrack]:
        pool = await self._fetcher.fetch(candidates, target)
        ranked = self._ranker.rank(pool, context, profile, candidates)
        return self._selector.select(ranked, target, diversity_weight)

    def _branch_tracks(
        self,
        state: _RequestState,
        source: str,
        outcome: list[ScoredTrack] | BaseException,
    ) -> list[ScoredTrack]:
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            self._logger.warning(
                "branch_degraded",
                branch=source,
                error_type=type(outcome).__name__,
                error=str(outcome),
            )
            state.degraded.append(source)
            return []
        return [t.model_copy(update={"source": source}) for t in outcome]

    # ------------------------------------------------------------------
    # Playlist records
    # ------------------------------------------------------------------

    async def _find_existing(
        self, user_id: str, context: Context, options: RecommendationOptions
    ) -> PlaylistRecord | None:
        if self._playlist_store is None:
            return None
        window = timedelta(seconds=options.idempotency_window_seconds)
        try:
            return await self._playlist_store.find_recent_similar(user_id, context, window)
        except ContextuneError as exc:
            self._logger.warning("existing_playlist_lookup_failed", error=str(exc))
            return None

    def _existing_result(
        self, state: _RequestState, context: Context, existing: PlaylistRecord
    ) -> RecommendationResult:
        self._logger.info(
            "existing_playlist_returned",
            playlist_id=existing.playlist_id,
            created_at=existing.created_at.isoformat(),
        )
        return RecommendationResult(
            rec_id=state.rec_id,
            user_id=state.user_id,
            playlist_name=existing.name,
            playlist_description=existing.description,
            context=context.summary(),
            tags=existing.tags,
            processing_ms=state.elapsed_ms(),
            is_existing=True,
            playlist=existing,
        )

    async def _save_playlist(
        self, store: IPlaylistStore, result: RecommendationResult, context: Context
    ) -> PlaylistRecord | None:
        record = PlaylistRecord(
            playlist_id=str(uuid.uuid4()),
            user_id=result.user_id,
            rec_id=result.rec_id,
            name=result.playlist_name,
            description=result.playlist_description,
            time_of_day=context.time_of_day.value,
            weather=context.weather.condition.value,
            city=context.location.city,
            track_ids=[t.id for t in result.tracks],
            tags=result.tags,
        )
        try:
            return await store.save(record)
        except ContextuneError as exc:
            self._logger.warning("playlist_save_failed", error=str(exc))
            return None

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    async def _fail(self, state: _RequestState, error: Exception) -> RecommendationFailure:
        self._logger.warning(
            "recommendation_failed",
            error_type=type(error).__name__,
            error=str(error),
        )
        await self._write_audit(self._failure_record(state, error))
        context = state.context
        return RecommendationFailure.from_error(
            error,
            rec_id=state.rec_id,
            time_of_day=context.time_of_day.value if context else None,
            weather=context.weather.condition.value if context else None,
        )

    async def _write_audit(self, record: RecommendationLogRecord) -> None:
        try:
            await self._log_sink.write(record)
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "audit_log_write_failed",
                recommendation_type=record.recommendation_type,
                error=str(exc),
            )

    def _log_input(self, state: _RequestState) -> LogInput:
        return LogInput(
            context=state.context.summary() if state.context else {},
            user_profile=state.profile.summary() if state.profile else {},
            applied_rules=state.match.applied_rules if state.match else [],
        )

    def _algorithm(self, state: _RequestState, confidence: float | None) -> AlgorithmInfo:
        return AlgorithmInfo(
            version=self._algorithm_version,
            model=self._algorithm_model,
            confidence=confidence,
            processing_ms=state.elapsed_ms(),
        )

    def _result_record(
        self,
        state: _RequestState,
        result: RecommendationResult,
        record_type: str,
    ) -> RecommendationLogRecord:
        playlist = result.playlist
        total_tracks = len(result.tracks)
        if result.is_existing and playlist is not None:
            total_tracks = len(playlist.track_ids)
        output = LogOutput(
            tracks=_logged_tracks(result.tracks),
            playlist_name=result.playlist_name,
            playlist_description=result.playlist_description,
            total_tracks=total_tracks,
            total_duration_ms=result.total_duration_ms,
            diversity=None if result.is_existing else result.diversity,
            playlist_id=playlist.playlist_id if playlist else None,
        )
        return RecommendationLogRecord(
            rec_id=state.rec_id,
            user_id=state.user_id,
            context_id=state.context.context_id if state.context else None,
            recommendation_type=record_type,
            algorithm=self._algorithm(state, None if result.is_existing else result.confidence),
            input=self._log_input(state),
            output=output,
        )

    def _failure_record(self, state: _RequestState, error: Exception) -> RecommendationLogRecord:
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        return RecommendationLogRecord(
            rec_id=state.rec_id,
            user_id=state.user_id,
            context_id=state.context.context_id if state.context else None,
            recommendation_type=_TYPE_FAILED,
            algorithm=self._algorithm(state, None),
            input=self._log_input(state),
            errors=[LoggedError(type=type(error).__name__, message=message)],
        )
