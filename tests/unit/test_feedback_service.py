"""Unit tests for the feedback service."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from contextune.interfaces.log_sink import ILogSink
from contextune.interfaces.rule_store import IRuleStore
from contextune.models.recommendation import (
    AlgorithmInfo,
    FeedbackAction,
    LogInput,
    LogOutput,
    PlayStats,
    RecommendationLogRecord,
    UserInteraction,
)
from contextune.models.rule import FALLBACK_RULE_ID, AppliedRule, Rule
from contextune.providers.rules.yaml_rule_store import YAMLRuleStore
from contextune.services.feedback_service import FeedbackService
from contextune.utils.errors import NotFoundError

# ─── Sample data ─────────────────────────────────────────────────────────


def _record(total_tracks: int = 20, rules: list[AppliedRule] | None = None) -> RecommendationLogRecord:
    return RecommendationLogRecord(
        rec_id="rec-1",
        user_id="user-1",
        recommendation_type="hybrid",
        algorithm=AlgorithmInfo(version="1.0", model="hybrid_rule_based"),
        input=LogInput(
            applied_rules=rules
            if rules is not None
            else [
                AppliedRule(rule_id="evening_rainy_chill", name="Chill", weight=9, match_score=10),
                AppliedRule(rule_id=FALLBACK_RULE_ID, name="Fallback", weight=1, match_score=0.5),
            ]
        ),
        output=LogOutput(total_tracks=total_tracks),
    )


def _sink(record: RecommendationLogRecord | None) -> ILogSink:
    mock = MagicMock(spec=ILogSink)
    mock.get = AsyncMock(return_value=record)

    async def _update(rec_id: str, interaction: UserInteraction) -> RecommendationLogRecord:
        assert record is not None
        return record.with_interaction(interaction)

    mock.update_interaction = AsyncMock(side_effect=_update)
    return mock


@pytest.fixture
def rule_store() -> IRuleStore:
    mock = MagicMock(spec=IRuleStore)
    mock.update_effectiveness = AsyncMock()
    return mock


# ═══════════════════════════════════════════════════════════════════════════
# Interaction updates
# ═══════════════════════════════════════════════════════════════════════════


class TestRecord:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("action", "flag", "engagement"),
        [
            ("click", "clicked", 1.0),
            ("open", "opened", 2.0),
            ("play", "played", 3.0),
            ("save", "saved", 5.0),
            ("share", "shared", 4.0),
        ],
    )
    async def test_flag_actions(self, action: str, flag: str, engagement: float) -> None:
        service = FeedbackService(_sink(_record()))

        updated = await service.record("rec-1", "user-1", action)

        assert getattr(updated.interaction, flag) is True
        assert getattr(updated.interaction, f"{flag}_at") is not None
        assert updated.engagement_score == pytest.approx(engagement)

    @pytest.mark.asyncio
    async def test_rate_stores_rating_and_comment(self) -> None:
        service = FeedbackService(_sink(_record()))

        updated = await service.record(
            "rec-1", "user-1", FeedbackAction.RATE, rating=3, feedback="too slow"
        )

        assert updated.interaction.rating == 3
        assert updated.interaction.feedback == "too slow"
        assert updated.engagement_score == pytest.approx(3.0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [None, 0, 6])
    async def test_rate_requires_valid_rating(self, rating: int | None) -> None:
        service = FeedbackService(_sink(_record()))
        with pytest.raises(ValueError, match="between 1 and 5"):
            await service.record("rec-1", "user-1", "rate", rating=rating)

    @pytest.mark.asyncio
    async def test_session_update_completion_rate(self) -> None:
        service = FeedbackService(_sink(_record(total_tracks=20)))

        updated = await service.record(
            "rec-1",
            "user-1",
            "session_update",
            play_stats=PlayStats(tracks_played=15, tracks_skipped=3, session_duration_seconds=2700),
        )

        assert updated.interaction.completion_rate == pytest.approx(75.0)
        assert updated.interaction.tracks_skipped == 3
        assert updated.engagement_score == pytest.approx(1.5)

    @pytest.mark.asyncio
    async def test_session_update_with_empty_output(self) -> None:
        service = FeedbackService(_sink(_record(total_tracks=0)))
        updated = await service.record(
            "rec-1", "user-1", "session_update", play_stats=PlayStats(tracks_played=2)
        )
        assert updated.interaction.completion_rate is None

    @pytest.mark.asyncio
    async def test_session_update_requires_stats(self) -> None:
        service = FeedbackService(_sink(_record()))
        with pytest.raises(ValueError, match="play stats"):
            await service.record("rec-1", "user-1", "session_update")

    @pytest.mark.asyncio
    async def test_unknown_action(self) -> None:
        service = FeedbackService(_sink(_record()))
        with pytest.raises(ValueError):
            await service.record("rec-1", "user-1", "dislike")

    @pytest.mark.asyncio
    async def test_unknown_recommendation(self) -> None:
        service = FeedbackService(_sink(None))
        with pytest.raises(NotFoundError, match="rec-1"):
            await service.record("rec-1", "user-1", "click")

    @pytest.mark.asyncio
    async def test_other_users_recommendation(self) -> None:
        sink = _sink(_record())
        service = FeedbackService(sink)
        with pytest.raises(NotFoundError):
            await service.record("rec-1", "intruder", "click")
        sink.update_interaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_previous_interaction_kept(self) -> None:
        record = _record().with_interaction(UserInteraction(clicked=True))
        service = FeedbackService(_sink(record))

        updated = await service.record("rec-1", "user-1", "play")

        assert updated.interaction.clicked is True
        assert updated.engagement_score == pytest.approx(4.0)


# ═══════════════════════════════════════════════════════════════════════════
# Rule effectiveness
# ═══════════════════════════════════════════════════════════════════════════


class TestRuleCredit:
    @pytest.mark.asyncio
    async def test_high_rating_credits_stored_rules(self, rule_store: IRuleStore) -> None:
        service = FeedbackService(_sink(_record()), rule_store=rule_store)

        await service.record("rec-1", "user-1", "rate", rating=5)

        rule_store.update_effectiveness.assert_awaited_once_with(
            "evening_rainy_chill", applied=True, success=True, rating=5
        )

    @pytest.mark.asyncio
    async def test_save_credits_without_rating(self, rule_store: IRuleStore) -> None:
        service = FeedbackService(_sink(_record()), rule_store=rule_store)

        await service.record("rec-1", "user-1", "save")

        rule_store.update_effectiveness.assert_awaited_once_with(
            "evening_rainy_chill", applied=True, success=True, rating=None
        )

    @pytest.mark.asyncio
    async def test_low_rating_counts_as_failure(self, rule_store: IRuleStore) -> None:
        service = FeedbackService(_sink(_record()), rule_store=rule_store)

        await service.record("rec-1", "user-1", "rate", rating=3)

        rule_store.update_effectiveness.assert_awaited_once_with(
            "evening_rainy_chill", applied=True, success=False, rating=3
        )

    @pytest.mark.asyncio
    async def test_abandoned_session_counts_as_failure(self, rule_store: IRuleStore) -> None:
        service = FeedbackService(_sink(_record(total_tracks=10)), rule_store=rule_store)

        await service.record(
            "rec-1", "user-1", "session_update", play_stats=PlayStats(tracks_played=2)
        )

        rule_store.update_effectiveness.assert_awaited_once_with(
            "evening_rainy_chill", applied=True, success=False, rating=None
        )

    @pytest.mark.asyncio
    async def test_completed_session_leaves_rules_alone(self, rule_store: IRuleStore) -> None:
        service = FeedbackService(_sink(_record(total_tracks=10)), rule_store=rule_store)

        await service.record(
            "rec-1", "user-1", "session_update", play_stats=PlayStats(tracks_played=8)
        )

        rule_store.update_effectiveness.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["click", "open", "play", "share"])
    async def test_engagement_actions_leave_rules_alone(
        self, rule_store: IRuleStore, action: str
    ) -> None:
        service = FeedbackService(_sink(_record()), rule_store=rule_store)
        await service.record("rec-1", "user-1", action)
        rule_store.update_effectiveness.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_negative_rating_lowers_success_rate(self) -> None:
        store = YAMLRuleStore([Rule(rule_id="evening_rainy_chill", name="Chill")])
        service = FeedbackService(_sink(_record()), rule_store=store)

        await service.record("rec-1", "user-1", "save")
        await service.record("rec-1", "user-1", "rate", rating=2)

        stats = (await store.get_rule("evening_rainy_chill")).effectiveness
        assert stats.applied_count == 2
        assert stats.success_rate == pytest.approx(0.5)
        assert stats.avg_rating == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_removed_rule_is_skipped(self, rule_store: IRuleStore) -> None:
        rule_store.update_effectiveness = AsyncMock(side_effect=NotFoundError(message="gone"))
        rules = [
            AppliedRule(rule_id="gone", name="Gone", weight=5, match_score=5),
            AppliedRule(rule_id="kept", name="Kept", weight=5, match_score=5),
        ]
        service = FeedbackService(_sink(_record(rules=rules)), rule_store=rule_store)

        updated = await service.record("rec-1", "user-1", "save")

        assert updated.interaction.saved is True
        assert rule_store.update_effectiveness.await_count == 2
