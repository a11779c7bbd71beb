"""Pipeline orchestration for the contextune recommendation core."""

from contextune.pipeline.orchestrator import RecommendationOrchestrator

__all__ = [
    "RecommendationOrchestrator",
]
