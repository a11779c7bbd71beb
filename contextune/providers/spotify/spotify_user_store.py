"""Spotify-backed user store implementing IUserStore.

Reads the listener's taste from the account the access token belongs to:

    get_account          -> GET /me
    get_top_tracks       -> GET /me/top/tracks
    get_top_artists      -> GET /me/top/artists
    get_recently_played  -> GET /me/player/recently-played
    get_audio_features   -> GET /audio-features (chunks of 100 ids)

Preference flags (e.g. ``avoid_explicit``) are not stored by Spotify; they
are supplied per user at construction time.
"""

from __future__ import annotations

from typing import Any

from contextune.interfaces.user_store import IUserStore, UserAccount
from contextune.models.track import Artist, Track
from contextune.providers.spotify.spotify_client import (
    SpotifyClient,
    parse_artist,
    parse_track,
    parse_tracks,
)
from contextune.utils.logging import get_logger

_AUDIO_FEATURE_CHUNK = 100
_AUDIO_FEATURE_KEYS = (
    "valence",
    "energy",
    "danceability",
    "acousticness",
    "instrumentalness",
    "tempo",
)


def _clamp_limit(limit: int) -> int:
    return max(1, min(limit, 50))


class SpotifyUserStore(IUserStore):
    """User taste data read from the Spotify Web API."""

    def __init__(
        self,
        client: SpotifyClient,
        preferences: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self._client = client
        self._preferences = preferences or {}
        self._logger = get_logger(__name__)

    async def get_account(self, user_id: str) -> UserAccount | None:
        data = await self._client.get_json("/me")
        spotify_id = data.get("id")
        if not spotify_id:
            return None
        return UserAccount(
            user_id=user_id,
            spotify_id=spotify_id,
            display_name=data.get("display_name"),
            preferences=dict(self._preferences.get(user_id, {})),
        )

    async def get_top_tracks(
        self, user_id: str, time_range: str = "medium_term", limit: int = 30
    ) -> list[Track]:
        data = await self._client.get_json(
            "/me/top/tracks", params={"time_range": time_range, "limit": _clamp_limit(limit)}
        )
        return parse_tracks(data.get("items") or [])

    async def get_top_artists(
        self, user_id: str, time_range: str = "medium_term", limit: int = 30
    ) -> list[Artist]:
        data = await self._client.get_json(
            "/me/top/artists", params={"time_range": time_range, "limit": _clamp_limit(limit)}
        )
        return [parse_artist(item) for item in data.get("items") or [] if item]

    async def get_recently_played(self, user_id: str, limit: int = 30) -> list[Track]:
        data = await self._client.get_json(
            "/me/player/recently-played", params={"limit": _clamp_limit(limit)}
        )
        tracks: list[Track] = []
        for item in data.get("items") or []:
            track = parse_track((item or {}).get("track") or {})
            if track is not None:
                tracks.append(track)
        return tracks

    async def get_audio_features(self, track_ids: list[str]) -> list[dict[str, float]]:
        if not track_ids:
            return []

        features: list[dict[str, float]] = []
        for start in range(0, len(track_ids), _AUDIO_FEATURE_CHUNK):
            chunk = track_ids[start : start + _AUDIO_FEATURE_CHUNK]
            data = await self._client.get_json("/audio-features", params={"ids": ",".join(chunk)})
            for item in data.get("audio_features") or []:
                # Spotify returns null for ids it has no analysis for.
                if not item:
                    continue
                features.append({
                    key: float(item[key])
                    for key in _AUDIO_FEATURE_KEYS
                    if item.get(key) is not None
                })
        self._logger.debug("spotify_audio_features_fetched", requested=len(track_ids), found=len(features))
        return features

    def get_provider_name(self) -> str:
        return "spotify"
