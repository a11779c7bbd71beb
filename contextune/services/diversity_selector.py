"""Diversity selector: greedy, artist-aware pick of the final track list.

Walks the ranked pool best-first.  A candidate sharing an artist with an
already-selected track takes a penalty of 0.3; on every selection count
that is a positive multiple of five, the penalty is amplified (x1.5 by
default) to push variety periodically.  The adjusted score is

    adjusted = score * (1 - penalty * diversity_weight)

A track is admitted if ``adjusted > 0.2`` or if fewer than 70% of the
target slots are filled yet; the early slots are lenient so a weak pool
does not starve the list.  If the walk ends short of the target, the
highest-scoring unselected tracks fill the gap with their score
discounted by 0.8.

The result always holds exactly ``min(target, len(pool))`` tracks.
"""

from __future__ import annotations

from contextune.models.track import ScoredTrack
from contextune.utils.logging import get_logger

SEEN_ARTIST_PENALTY = 0.3
EMPHASIS_INTERVAL = 5
EMPHASIS_MULTIPLIER = 1.5
ADMISSION_THRESHOLD = 0.2
LENIENT_FRACTION = 0.7
FILL_DISCOUNT = 0.8


class DiversitySelector:
    """Greedy diversity-constrained selection.

    Parameters
    ----------
    emphasis_multiplier:
        Penalty amplification applied at every ``emphasis_interval``-th
        selection.
    emphasis_interval:
        Selection-count period for the amplification.
    """

    def __init__(
        self,
        emphasis_multiplier: float = EMPHASIS_MULTIPLIER,
        emphasis_interval: int = EMPHASIS_INTERVAL,
    ) -> None:
        self._emphasis_multiplier = emphasis_multiplier
        self._emphasis_interval = emphasis_interval
        self._logger = get_logger(__name__)

    def penalty(self, track: ScoredTrack, seen_artists: set[str], selected_count: int) -> float:
        penalty = 0.0
        if any(name in seen_artists for name in track.artist_names):
            penalty += SEEN_ARTIST_PENALTY
        if selected_count > 0 and selected_count % self._emphasis_interval == 0:
            penalty *= self._emphasis_multiplier
        return penalty

    def select(
        self,
        ranked: list[ScoredTrack],
        target: int,
        diversity_weight: float = 0.3,
    ) -> list[ScoredTrack]:
        """Pick up to *target* tracks from the best-first *ranked* pool.

        Never raises; on an unexpected error the pool is truncated to
        *target* as-is.
        """
        try:
            return self._select(ranked, target, diversity_weight)
        except Exception as exc:  # noqa: BLE001
            self._logger.error("selection_failed", error=str(exc), pool_size=len(ranked))
            return [t.model_copy(update={"final_score": t.score}) for t in ranked[:target]]

    def _select(
        self,
        ranked: list[ScoredTrack],
        target: int,
        diversity_weight: float,
    ) -> list[ScoredTrack]:
        selected: list[ScoredTrack] = []
        selected_ids: set[str] = set()
        seen_artists: set[str] = set()
        lenient_slots = target * LENIENT_FRACTION

        for track in ranked:
            if len(selected) >= target:
                break
            if track.id in selected_ids:
                continue

            penalty = self.penalty(track, seen_artists, len(selected))
            adjusted = track.score * (1 - penalty * diversity_weight)

            if adjusted > ADMISSION_THRESHOLD or len(selected) < lenient_slots:
                selected.append(track.model_copy(update={"final_score": adjusted}))
                selected_ids.add(track.id)
                seen_artists.update(track.artist_names)

        admitted = len(selected)
        if admitted < target:
            remaining = sorted(
                (t for t in ranked if t.id not in selected_ids),
                key=lambda t: t.score,
                reverse=True,
            )
            for track in remaining:
                if len(selected) >= target:
                    break
                if track.id in selected_ids:
                    continue
                selected.append(track.model_copy(update={"final_score": track.score * FILL_DISCOUNT}))
                selected_ids.add(track.id)

        self._logger.debug(
            "tracks_selected",
            target=target,
            admitted=admitted,
            filled=len(selected) - admitted,
            distinct_artists=len(seen_artists),
        )
        return selected
