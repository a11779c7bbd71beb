"""Unit tests for the greedy diversity selector."""

from __future__ import annotations

import pytest

from contextune.models.track import ScoredTrack
from contextune.services.diversity_selector import DiversitySelector
from tests.conftest import make_track


def _scored(track_id: str, artist: str, score: float) -> ScoredTrack:
    return ScoredTrack.from_track(make_track(track_id, artist=artist), score=score)


class TestPenalty:
    def test_seen_artist(self) -> None:
        track = _scored("a", "Artist X", 0.9)
        selector = DiversitySelector()
        assert selector.penalty(track, {"Artist X"}, 3) == pytest.approx(0.3)
        assert selector.penalty(track, {"Artist Y"}, 3) == 0.0

    def test_amplified_every_fifth_selection(self) -> None:
        track = _scored("a", "Artist X", 0.9)
        selector = DiversitySelector()
        assert selector.penalty(track, {"Artist X"}, 5) == pytest.approx(0.45)
        assert selector.penalty(track, {"Artist X"}, 10) == pytest.approx(0.45)
        assert selector.penalty(track, set(), 5) == 0.0

    def test_custom_emphasis(self) -> None:
        track = _scored("a", "Artist X", 0.9)
        selector = DiversitySelector(emphasis_multiplier=2.0, emphasis_interval=3)
        assert selector.penalty(track, {"Artist X"}, 3) == pytest.approx(0.6)
        assert selector.penalty(track, {"Artist X"}, 5) == pytest.approx(0.3)


class TestSelect:
    def test_repeated_artist_penalised(self) -> None:
        ranked = [_scored(f"x{i}", "Artist X", 0.9 - i * 0.02) for i in range(6)]
        ranked += [_scored(f"o{i}", f"Other {i}", 0.5 - i * 0.05) for i in range(4)]

        selected = DiversitySelector().select(ranked, target=5, diversity_weight=0.3)

        assert len(selected) == 5
        assert selected[0].final_score == pytest.approx(0.9)
        for track in selected[1:]:
            assert track.final_score == pytest.approx(track.score * (1 - 0.3 * 0.3))
            assert track.final_score < track.score

    def test_lenient_slots_then_discounted_fill(self) -> None:
        ranked = [_scored(f"t{i}", f"Artist {i}", 0.1) for i in range(25)]

        selected = DiversitySelector().select(ranked, target=20)

        assert len(selected) == 20
        # 70% of 20 slots are admitted regardless of the 0.2 threshold.
        assert all(t.final_score == pytest.approx(0.1) for t in selected[:14])
        assert all(t.final_score == pytest.approx(0.08) for t in selected[14:])

    def test_small_pool_returns_everything(self) -> None:
        ranked = [_scored(f"t{i}", f"Artist {i}", 0.6) for i in range(3)]
        assert len(DiversitySelector().select(ranked, target=10)) == 3

    @pytest.mark.parametrize(("pool", "target"), [(0, 5), (4, 5), (12, 5), (30, 20)])
    def test_size_is_min_of_target_and_pool(self, pool: int, target: int) -> None:
        ranked = [_scored(f"t{i}", f"Artist {i % 3}", 0.9 - i * 0.01) for i in range(pool)]
        assert len(DiversitySelector().select(ranked, target)) == min(target, pool)

    def test_duplicate_ids_selected_once(self) -> None:
        ranked = [_scored("a", "A", 0.9), _scored("a", "A", 0.8), _scored("b", "B", 0.7)]
        selected = DiversitySelector().select(ranked, target=3)
        assert [t.id for t in selected] == ["a", "b"]

    def test_zero_diversity_weight_keeps_scores(self) -> None:
        ranked = [_scored(f"x{i}", "Artist X", 0.8) for i in range(4)]
        selected = DiversitySelector().select(ranked, target=4, diversity_weight=0.0)
        assert all(t.final_score == pytest.approx(0.8) for t in selected)
