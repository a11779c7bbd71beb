"""Builds a :class:`UserProfile` from the user store and listening history.

The account lookup is the only hard requirement: an unknown user raises
:class:`NotFoundError`.  Every other sub-fetch (top tracks, top artists,
recent plays, local history, audio features, listening patterns) is run
concurrently and degrades to an empty value when it fails, so a flaky
upstream produces a thinner profile rather than a failed request.
"""

from __future__ import annotations

import asyncio
import math
from collections import Counter
from typing import Any, TypeVar

from contextune.interfaces.history_store import IHistoryStore
from contextune.interfaces.user_store import IUserStore, UserAccount
from contextune.models.profile import (
    FeatureStats,
    GenreCount,
    ListeningPattern,
    UserPreferences,
    UserProfile,
)
from contextune.models.rule import AudioFeature
from contextune.models.track import Artist, Track
from contextune.services.candidate_fetcher import dedupe_tracks
from contextune.utils.errors import NotFoundError
from contextune.utils.logging import get_logger

_T = TypeVar("_T")

_TOP_LIMIT = 30
_TIME_RANGE = "medium_term"
_HISTORY_LIMIT = 50
_PATTERN_DAYS = 30
_MAX_GENRES = 10
_FEATURE_SAMPLE = 20

# Sizes retained on the profile.
_PROFILE_TOP_TRACKS = 20
_PROFILE_TOP_ARTISTS = 15
_PROFILE_RECENT_PLAYED = 20
_PROFILE_HISTORY = 30


def top_genres(artists: list[Artist], limit: int = _MAX_GENRES) -> list[GenreCount]:
    """Count genre tags across *artists*, most frequent first."""
    counts: Counter[str] = Counter()
    for artist in artists:
        counts.update(artist.genres)
    return [GenreCount(name=name, frequency=n) for name, n in counts.most_common(limit)]


def feature_stats(rows: list[dict[str, float]]) -> dict[AudioFeature, FeatureStats]:
    """Mean, population std, min and max per audio feature.

    Features missing from every row are omitted.
    """
    stats: dict[AudioFeature, FeatureStats] = {}
    for feature in AudioFeature:
        values = [row[feature.value] for row in rows if row.get(feature.value) is not None]
        if not values:
            continue
        avg = sum(values) / len(values)
        std = math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))
        stats[feature] = FeatureStats(mean=avg, std=std, min=min(values), max=max(values))
    return stats


def preferences_from(account: UserAccount) -> UserPreferences:
    prefs = dict(account.preferences)
    avoid_explicit = bool(prefs.pop("avoid_explicit", False))
    return UserPreferences(avoid_explicit=avoid_explicit, extra=prefs)


class ProfileBuilder:
    """Aggregates account, taste and history data into a profile.

    Parameters
    ----------
    user_store:
        Source of the account and catalog-side taste data.
    history_store:
        Optional local listening history.  Without it the profile has no
        listening patterns and only catalog-side recent plays.
    """

    def __init__(
        self,
        user_store: IUserStore,
        history_store: IHistoryStore | None = None,
    ) -> None:
        self._user_store = user_store
        self._history_store = history_store
        self._logger = get_logger(__name__)

    async def build(self, user_id: str) -> UserProfile:
        """Build the profile for *user_id*.

        Raises
        ------
        NotFoundError
            If the user store has no account for *user_id*.
        """
        account = await self._user_store.get_account(user_id)
        if account is None:
            raise NotFoundError(
                message=f"User not found: {user_id}",
                provider_name=self._user_store.get_provider_name(),
            )

        top_tracks, top_artists, recently_played, history = await asyncio.gather(
            self._degrade(
                "top_tracks",
                self._user_store.get_top_tracks(user_id, _TIME_RANGE, _TOP_LIMIT),
                [],
            ),
            self._degrade(
                "top_artists",
                self._user_store.get_top_artists(user_id, _TIME_RANGE, _TOP_LIMIT),
                [],
            ),
            self._degrade(
                "recently_played",
                self._user_store.get_recently_played(user_id, _TOP_LIMIT),
                [],
            ),
            self._history_tracks(user_id),
        )

        audio_prefs: dict[AudioFeature, FeatureStats] = {}
        sample_ids = [t.id for t in top_tracks[:_FEATURE_SAMPLE]]
        if sample_ids:
            rows = await self._degrade(
                "audio_features", self._user_store.get_audio_features(sample_ids), []
            )
            audio_prefs = feature_stats(rows)

        patterns = await self._patterns(user_id)
        recent = dedupe_tracks(
            [*recently_played[:_PROFILE_RECENT_PLAYED], *history[:_PROFILE_HISTORY]]
        )

        profile = UserProfile(
            user_id=user_id,
            spotify_id=account.spotify_id,
            top_tracks=top_tracks[:_PROFILE_TOP_TRACKS],
            top_artists=top_artists[:_PROFILE_TOP_ARTISTS],
            top_genres=top_genres(top_artists),
            recent_tracks=recent,
            audio_feature_prefs=audio_prefs,
            listening_patterns=patterns,
            preferences=preferences_from(account),
        )
        self._logger.info(
            "profile_built",
            user_id=user_id,
            top_tracks=len(profile.top_tracks),
            top_artists=len(profile.top_artists),
            top_genres=len(profile.top_genres),
            recent_tracks=len(profile.recent_tracks),
        )
        return profile

    async def _history_tracks(self, user_id: str) -> list[Track]:
        if self._history_store is None:
            return []
        return await self._degrade(
            "history", self._history_store.get_recent_tracks(user_id, _HISTORY_LIMIT), []
        )

    async def _patterns(self, user_id: str) -> list[ListeningPattern]:
        if self._history_store is None:
            return []
        return await self._degrade(
            "listening_patterns",
            self._history_store.get_listening_patterns(user_id, _PATTERN_DAYS),
            [],
        )

    async def _degrade(self, part: str, coro: Any, default: _T) -> _T:
        try:
            return await coro
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("profile_part_unavailable", part=part, error=str(exc))
            return default
