"""Confidence and spread statistics for recommendation results.

Three operations are used by the orchestrator:

1. **calculate_confidence** -- weighted average of per-branch mean scores.
   The user-playlist branch and the global-catalog branch are weighted
   0.6 / 0.4; an empty branch simply drops out of the average, which
   renormalizes the remaining weight.
2. **confidence_to_level** -- maps a numeric score to a human-readable
   tier for CLI output and logs.
3. **population_variance** -- ``sum((x - mean)^2) / n`` used for the tempo
   and valence spread of a result set.
"""

from enum import Enum


class ConfidenceLevel(Enum):
    """Human-readable confidence tiers."""

    VERY_LOW = "very_low"    # < 0.2
    LOW = "low"              # 0.2 - 0.4
    MEDIUM = "medium"        # 0.4 - 0.6
    HIGH = "high"            # 0.6 - 0.8
    VERY_HIGH = "very_high"  # >= 0.8


def clamp_unit(value: float) -> float:
    """Clamp *value* into [0.0, 1.0]."""
    return max(0.0, min(1.0, value))


def mean(values: list[float]) -> float:
    """Arithmetic mean, or 0.0 for an empty list."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def calculate_confidence(
    scores: list[float],
    weights: list[float] | None = None,
) -> float:
    """Compute a weighted average confidence score.

    Args:
        scores: Individual scores, each in [0.0, 1.0].
        weights: Optional weights for each score. Defaults to equal weighting.

    Returns:
        Weighted average clamped to [0.0, 1.0]; 0.0 when *scores* is empty
        or every weight is zero.

    Raises:
        ValueError: If the lengths of scores and weights differ.
    """
    if not scores:
        return 0.0

    if weights is None:
        weights = [1.0] * len(scores)

    if len(scores) != len(weights):
        raise ValueError("scores and weights must have the same length")

    total_weight = sum(weights)
    if total_weight == 0:
        return 0.0

    weighted_sum = sum(s * w for s, w in zip(scores, weights))
    return clamp_unit(weighted_sum / total_weight)


def confidence_to_level(score: float) -> ConfidenceLevel:
    """Map a numeric confidence score to a human-readable level."""
    if score < 0.2:
        return ConfidenceLevel.VERY_LOW
    if score < 0.4:
        return ConfidenceLevel.LOW
    if score < 0.6:
        return ConfidenceLevel.MEDIUM
    if score < 0.8:
        return ConfidenceLevel.HIGH
    return ConfidenceLevel.VERY_HIGH


def population_variance(values: list[float]) -> float:
    """Population variance ``sum((x - mean)^2) / n``; 0.0 for empty input."""
    if not values:
        return 0.0
    avg = mean(values)
    return sum((v - avg) ** 2 for v in values) / len(values)
