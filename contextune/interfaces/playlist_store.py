"""Abstract base class for generated-playlist records.

Used by the orchestrator's idempotency check: a user asking for a playlist
in the same time-of-day / weather / city within the window gets the
existing one back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta

from contextune.models.context import Context
from contextune.models.recommendation import PlaylistRecord


class IPlaylistStore(ABC):
    """Contract for generated-playlist persistence."""

    @abstractmethod
    async def find_recent_similar(
        self, user_id: str, context: Context, window: timedelta
    ) -> PlaylistRecord | None:
        """Newest playlist for *user_id* created within *window* whose
        time of day, weather and city equal *context*'s."""

    @abstractmethod
    async def save(self, record: PlaylistRecord) -> PlaylistRecord:
        """Persist *record* and return it."""

    @abstractmethod
    async def list_for_user(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> list[PlaylistRecord]:
        """The user's playlists, newest first."""
