"""Abstract base class for the recommendation audit log.

The log is append-only: one record per orchestrator invocation.  After a
record is written, only feedback calls may replace its interaction block.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from contextune.models.recommendation import RecommendationLogRecord, UserInteraction


class ILogSink(ABC):
    """Contract for audit-log persistence."""

    @abstractmethod
    async def write(self, record: RecommendationLogRecord) -> None:
        """Append *record*.  Callers swallow failures from this method."""

    @abstractmethod
    async def get(self, rec_id: str) -> RecommendationLogRecord | None:
        """Return the record for *rec_id*, or ``None`` if absent."""

    @abstractmethod
    async def update_interaction(
        self, rec_id: str, interaction: UserInteraction
    ) -> RecommendationLogRecord:
        """Replace the interaction block and recompute engagement.

        Raises
        ------
        contextune.utils.errors.NotFoundError
            If no record with *rec_id* exists.
        """

    @abstractmethod
    async def history(self, user_id: str, limit: int = 20) -> list[RecommendationLogRecord]:
        """The user's most recent records, newest first."""
