"""Spotify Web API adapters.

Two implementations share one authenticated :class:`SpotifyClient`:

    1. SpotifyCatalogProvider - ICatalogProvider: seeded recommendations,
       track search, the user's playlists and their tracks.
    2. SpotifyUserStore       - IUserStore: account, top tracks/artists,
       recently played and audio features.

Both map HTTP 429 to RateLimitError and every other failure to
ExternalServiceError; neither retries.
"""

from contextune.providers.spotify.spotify_catalog_provider import SpotifyCatalogProvider
from contextune.providers.spotify.spotify_client import SpotifyClient
from contextune.providers.spotify.spotify_user_store import SpotifyUserStore

__all__ = [
    "SpotifyCatalogProvider",
    "SpotifyClient",
    "SpotifyUserStore",
]
