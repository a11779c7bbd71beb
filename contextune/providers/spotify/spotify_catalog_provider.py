"""Spotify catalog provider implementing ICatalogProvider.

Maps the catalog capability onto four Web API endpoints:

    fetch_by_seeds      -> GET /recommendations
    search              -> GET /search?type=track
    get_user_playlists  -> GET /me/playlists
    get_playlist_tracks -> GET /playlists/{id}/tracks

Artist seeds may be Spotify ids or display names; names are resolved to
ids through ``/search?type=artist`` before the recommendations call.
"""

from __future__ import annotations

import re
from typing import Any

from contextune.interfaces.catalog_provider import ICatalogProvider, PlaylistSummary
from contextune.models.rule import AudioFeature, AudioFeatureTarget
from contextune.models.track import Track
from contextune.providers.spotify.spotify_client import SpotifyClient, parse_tracks
from contextune.utils.logging import get_logger

# Spotify caps seeds at five in total and page sizes at 100 / 50.
_MAX_GENRE_SEEDS = 3
_MAX_ARTIST_SEEDS = 2
_MAX_RECOMMENDATIONS = 100
_MAX_SEARCH_PAGE = 50
_MAX_PLAYLIST_PAGE = 100
_DEFAULT_GENRE_SEED = "pop"

_SPOTIFY_ID_RE = re.compile(r"^[0-9A-Za-z]{22}$")


def _genre_seed(name: str) -> str:
    """Spotify genre seeds are lower-case and hyphenated (``indie_rock`` -> ``indie-rock``)."""
    return name.strip().lower().replace("_", "-").replace(" ", "-")


def format_audio_feature_targets(
    audio_features: dict[AudioFeature, AudioFeatureTarget],
) -> dict[str, float]:
    """Flatten feature targets into ``target_*`` / ``min_*`` / ``max_*`` params."""
    params: dict[str, float] = {}
    for feature, bounds in audio_features.items():
        if bounds.target is not None:
            params[f"target_{feature.value}"] = bounds.target
        if bounds.min is not None:
            params[f"min_{feature.value}"] = bounds.min
        if bounds.max is not None:
            params[f"max_{feature.value}"] = bounds.max
    return params


class SpotifyCatalogProvider(ICatalogProvider):
    """Music catalog backed by the Spotify Web API."""

    def __init__(self, client: SpotifyClient) -> None:
        self._client = client
        self._logger = get_logger(__name__)

    async def _resolve_artist_ids(self, artists: list[str]) -> list[str]:
        ids: list[str] = []
        for artist in artists[:_MAX_ARTIST_SEEDS]:
            if _SPOTIFY_ID_RE.match(artist):
                ids.append(artist)
                continue
            data = await self._client.get_json(
                "/search", params={"q": artist, "type": "artist", "limit": 1}
            )
            items = (data.get("artists") or {}).get("items") or []
            if items and items[0].get("id"):
                ids.append(items[0]["id"])
            else:
                self._logger.debug("spotify_artist_unresolved", artist=artist)
        return ids

    # ------------------------------------------------------------------
    # ICatalogProvider implementation
    # ------------------------------------------------------------------

    async def fetch_by_seeds(
        self,
        genres: list[str],
        artists: list[str],
        audio_features: dict[AudioFeature, AudioFeatureTarget],
        limit: int,
    ) -> list[Track]:
        seed_genres = [_genre_seed(g) for g in genres[:_MAX_GENRE_SEEDS] if g.strip()]
        seed_artists = await self._resolve_artist_ids(artists)
        if not seed_genres and not seed_artists:
            seed_genres = [_DEFAULT_GENRE_SEED]

        params: dict[str, Any] = {
            "limit": max(1, min(limit, _MAX_RECOMMENDATIONS)),
            "market": self._client.market,
        }
        if seed_genres:
            params["seed_genres"] = ",".join(seed_genres)
        if seed_artists:
            params["seed_artists"] = ",".join(seed_artists)
        params.update(format_audio_feature_targets(audio_features))

        data = await self._client.get_json("/recommendations", params=params)
        tracks = parse_tracks(data.get("tracks") or [])
        self._logger.debug(
            "spotify_recommendations_fetched",
            seed_genres=seed_genres,
            seed_artists=seed_artists,
            count=len(tracks),
        )
        return tracks

    async def search(self, query: str, limit: int) -> list[Track]:
        data = await self._client.get_json(
            "/search",
            params={
                "q": query,
                "type": "track",
                "limit": max(1, min(limit, _MAX_SEARCH_PAGE)),
                "market": self._client.market,
            },
        )
        items = (data.get("tracks") or {}).get("items") or []
        return parse_tracks(items)

    async def get_user_playlists(self, user_id: str, limit: int = 10) -> list[PlaylistSummary]:
        """Playlists of the user the access token belongs to.

        *user_id* is the service's own id; the token already identifies the
        Spotify account, so it is only used for logging.
        """
        data = await self._client.get_json("/me/playlists", params={"limit": max(1, min(limit, 50))})
        summaries: list[PlaylistSummary] = []
        for item in data.get("items") or []:
            if not item or not item.get("id"):
                continue
            summaries.append(
                PlaylistSummary(
                    id=item["id"],
                    name=item.get("name") or "",
                    track_count=(item.get("tracks") or {}).get("total", 0),
                    owner_id=(item.get("owner") or {}).get("id"),
                )
            )
        self._logger.debug("spotify_playlists_fetched", user_id=user_id, count=len(summaries))
        return summaries[:limit]

    async def get_playlist_tracks(self, playlist_id: str, limit: int = 100) -> list[Track]:
        data = await self._client.get_json(
            f"/playlists/{playlist_id}/tracks",
            params={
                "limit": max(1, min(limit, _MAX_PLAYLIST_PAGE)),
                "market": self._client.market,
            },
        )
        # Playlist items wrap the track object; episodes and local files
        # are skipped by parse_tracks.
        return parse_tracks([(item or {}).get("track") or {} for item in data.get("items") or []])

    def get_provider_name(self) -> str:
        return "spotify"
