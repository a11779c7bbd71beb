"""Abstract base class for music-catalog providers.

The catalog is where candidate tracks come from: seeded recommendation
queries, free-text search, and the tracks inside a user's playlists.
Implementations wrap the Spotify Web API or any compatible catalog.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from contextune.models.rule import AudioFeature, AudioFeatureTarget
from contextune.models.track import Track


@dataclass(frozen=True)
class PlaylistSummary:
    """A playlist owned or followed by the user.

    Attributes
    ----------
    id:
        Catalog playlist identifier.
    name:
        Display name.
    track_count:
        Number of tracks the catalog reports for the playlist.
    owner_id:
        Catalog id of the owner, when known.
    """

    id: str
    name: str
    track_count: int = 0
    owner_id: str | None = None


class ICatalogProvider(ABC):
    """Contract for music-catalog access.

    All operations are async; none of them retry.  Failures surface as
    :class:`~contextune.utils.errors.ExternalServiceError`.
    """

    @abstractmethod
    async def fetch_by_seeds(
        self,
        genres: list[str],
        artists: list[str],
        audio_features: dict[AudioFeature, AudioFeatureTarget],
        limit: int,
    ) -> list[Track]:
        """Seeded recommendation query.

        Parameters
        ----------
        genres:
            Up to three genre seeds.
        artists:
            Up to two artist seeds (ids, or names the provider resolves).
        audio_features:
            Min / max / target constraints to pass through.
        limit:
            Maximum number of tracks to return.
        """

    @abstractmethod
    async def search(self, query: str, limit: int) -> list[Track]:
        """Free-text track search."""

    @abstractmethod
    async def get_user_playlists(self, user_id: str, limit: int = 10) -> list[PlaylistSummary]:
        """Playlists belonging to *user_id*, most relevant first."""

    @abstractmethod
    async def get_playlist_tracks(self, playlist_id: str, limit: int = 100) -> list[Track]:
        """Tracks contained in *playlist_id*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
