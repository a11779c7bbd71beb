"""Records listener feedback against a delivered recommendation.

Feedback only ever touches the ``interaction`` block of an audit record
(and the engagement score derived from it).  Decisive signals are also
fed back into the effectiveness statistics of every stored rule that
shaped the recommendation: a save or a rating of 4 or more counts as a
success, a lower rating or a session abandoned early as a failure.
"""

from __future__ import annotations

from datetime import datetime, timezone

from contextune.interfaces.log_sink import ILogSink
from contextune.interfaces.rule_store import IRuleStore
from contextune.models.recommendation import (
    FeedbackAction,
    PlayStats,
    RecommendationLogRecord,
    UserInteraction,
)
from contextune.utils.errors import NotFoundError
from contextune.utils.logging import get_logger

_SUCCESS_RATING = 4
# Sessions that played less than this share of the playlist count as failures.
_ABANDONED_COMPLETION_RATE = 30.0


class FeedbackService:
    """Applies feedback events to recommendation audit records.

    Parameters
    ----------
    log_sink:
        The audit log holding the recommendation records.
    rule_store:
        Optional rule store; when given, feedback outcomes update the
        effectiveness of the rules a recommendation applied.
    """

    def __init__(self, log_sink: ILogSink, rule_store: IRuleStore | None = None) -> None:
        self._log_sink = log_sink
        self._rule_store = rule_store
        self._logger = get_logger(__name__)

    async def record(
        self,
        rec_id: str,
        user_id: str,
        action: FeedbackAction | str,
        rating: int | None = None,
        feedback: str | None = None,
        play_stats: PlayStats | None = None,
    ) -> RecommendationLogRecord:
        """Apply one feedback *action* and return the updated record.

        Raises
        ------
        NotFoundError
            If *rec_id* is unknown or belongs to another user.
        ValueError
            If the action is unknown, a ``rate`` carries no rating in 1-5,
            or a ``session_update`` carries no play stats.
        """
        action = FeedbackAction(action)

        record = await self._log_sink.get(rec_id)
        if record is None or record.user_id != user_id:
            raise NotFoundError(
                message=f"Recommendation not found: {rec_id}",
                provider_name="recommendation_log",
            )

        interaction = self._apply(record, action, rating, feedback, play_stats)
        updated = await self._log_sink.update_interaction(rec_id, interaction)

        self._logger.info(
            "feedback_recorded",
            rec_id=rec_id,
            user_id=user_id,
            action=action.value,
            rating=rating,
            engagement_score=updated.engagement_score,
        )

        success = _outcome(action, rating, interaction)
        if success is not None:
            await self._record_outcome(
                record, success, rating if action is FeedbackAction.RATE else None
            )
        return updated

    def _apply(
        self,
        record: RecommendationLogRecord,
        action: FeedbackAction,
        rating: int | None,
        feedback: str | None,
        play_stats: PlayStats | None,
    ) -> UserInteraction:
        now = datetime.now(tz=timezone.utc)  # noqa: UP017
        current = record.interaction

        if action is FeedbackAction.CLICK:
            return current.model_copy(update={"clicked": True, "clicked_at": now})
        if action is FeedbackAction.OPEN:
            return current.model_copy(update={"opened": True, "opened_at": now})
        if action is FeedbackAction.PLAY:
            return current.model_copy(update={"played": True, "played_at": now})
        if action is FeedbackAction.SAVE:
            return current.model_copy(update={"saved": True, "saved_at": now})
        if action is FeedbackAction.SHARE:
            return current.model_copy(update={"shared": True, "shared_at": now})

        if action is FeedbackAction.RATE:
            if rating is None or not 1 <= rating <= 5:
                raise ValueError("rate feedback requires a rating between 1 and 5")
            update: dict[str, object] = {"rating": rating, "rated_at": now}
            if feedback:
                update["feedback"] = feedback
            return current.model_copy(update=update)

        if play_stats is None:
            raise ValueError("session_update feedback requires play stats")
        total_tracks = record.output.total_tracks if record.output else 0
        completion_rate = (
            play_stats.tracks_played / total_tracks * 100 if total_tracks > 0 else None
        )
        return current.model_copy(
            update={
                "tracks_played": play_stats.tracks_played,
                "tracks_skipped": play_stats.tracks_skipped,
                "session_duration_seconds": play_stats.session_duration_seconds,
                "completion_rate": completion_rate,
            }
        )

    async def _record_outcome(
        self, record: RecommendationLogRecord, success: bool, rating: int | None
    ) -> None:
        if self._rule_store is None:
            return
        for applied in record.input.applied_rules:
            if applied.is_fallback:
                continue
            try:
                await self._rule_store.update_effectiveness(
                    applied.rule_id, applied=True, success=success, rating=rating
                )
            except NotFoundError:
                # Rule removed since the recommendation was delivered.
                self._logger.warning("feedback_rule_missing", rule_id=applied.rule_id)


def _outcome(
    action: FeedbackAction, rating: int | None, interaction: UserInteraction
) -> bool | None:
    """Rule outcome implied by one feedback event, or ``None`` when it says nothing."""
    if action is FeedbackAction.SAVE:
        return True
    if action is FeedbackAction.RATE and rating is not None:
        return rating >= _SUCCESS_RATING
    if action is FeedbackAction.SESSION_UPDATE and interaction.completion_rate is not None:
        if interaction.completion_rate < _ABANDONED_COMPLETION_RATE:
            return False
    return None
