"""Abstract base class for user-profile stores.

Supplies the raw taste data the profile builder aggregates into a
:class:`~contextune.models.profile.UserProfile`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from contextune.models.track import Artist, Track


@dataclass(frozen=True)
class UserAccount:
    """Identity and stored preference flags for a user.

    Attributes
    ----------
    user_id:
        Internal user identifier.
    spotify_id:
        Catalog account id, when linked.
    display_name:
        Name shown in the UI.
    preferences:
        Free-form preference flags, e.g. ``{"avoid_explicit": True}``.
    """

    user_id: str
    spotify_id: str | None = None
    display_name: str | None = None
    preferences: dict[str, Any] = field(default_factory=dict)


class IUserStore(ABC):
    """Contract for user account and listening-taste lookups."""

    @abstractmethod
    async def get_account(self, user_id: str) -> UserAccount | None:
        """Return the account for *user_id*, or ``None`` if unknown."""

    @abstractmethod
    async def get_top_tracks(
        self, user_id: str, time_range: str = "medium_term", limit: int = 30
    ) -> list[Track]:
        """The user's most-played tracks."""

    @abstractmethod
    async def get_top_artists(
        self, user_id: str, time_range: str = "medium_term", limit: int = 30
    ) -> list[Artist]:
        """The user's most-played artists, with genre tags."""

    @abstractmethod
    async def get_recently_played(self, user_id: str, limit: int = 30) -> list[Track]:
        """Tracks the user played most recently, newest first."""

    @abstractmethod
    async def get_audio_features(self, track_ids: list[str]) -> list[dict[str, float]]:
        """Audio-feature dicts (valence, energy, ...) for *track_ids*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
