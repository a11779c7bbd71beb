"""Abstract base class for local listening-history stores."""

from __future__ import annotations

from abc import ABC, abstractmethod

from contextune.models.profile import ListeningPattern
from contextune.models.track import Track


class IHistoryStore(ABC):
    """Contract for the service's own record of what users listened to."""

    @abstractmethod
    async def get_recent_tracks(self, user_id: str, n: int = 50) -> list[Track]:
        """The *n* most recent plays recorded for *user_id*, newest first."""

    @abstractmethod
    async def get_listening_patterns(self, user_id: str, days: int = 30) -> list[ListeningPattern]:
        """Play counts grouped by time of day and weather over *days*."""

    @abstractmethod
    async def record_play(
        self,
        user_id: str,
        track: Track,
        time_of_day: str | None = None,
        weather: str | None = None,
        completion: float | None = None,
    ) -> None:
        """Append one play event."""
