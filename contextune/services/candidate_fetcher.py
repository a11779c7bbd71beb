"""Candidate fetcher: turns a candidate profile into a pool of catalog tracks.

The pool is deliberately over-fetched (up to three times the target
length) so the ranker and diversity selector have headroom.

Query plan:
  1. Seeded recommendations using the top 3 genres and top 2 user-boosted
     artists, constrained by the combined audio-feature targets.
  2. If that returns fewer than ``target`` tracks, a free-text search
     ``genre:<top genre> <top theme>`` tops the pool up.
  3. If both produced nothing usable, one last seeded query with the
     default ``pop`` genre seed.

Catalog errors from the individual queries are logged and treated as
empty results; only a completely empty pool is an error.
"""

from __future__ import annotations

from contextune.interfaces.catalog_provider import ICatalogProvider
from contextune.models.profile import CandidateProfile
from contextune.models.track import Track
from contextune.utils.errors import ExternalServiceError, NoCandidatesError
from contextune.utils.logging import get_logger

_MAX_GENRE_SEEDS = 3
_MAX_ARTIST_SEEDS = 2
_MAX_SEEDED_LIMIT = 100
_OVERFETCH_FACTOR = 3
_DEFAULT_GENRE = "pop"


def dedupe_tracks(tracks: list[Track]) -> list[Track]:
    """Drop repeated track ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[Track] = []
    for track in tracks:
        if track.id in seen:
            continue
        seen.add(track.id)
        unique.append(track)
    return unique


class CandidateFetcher:
    """Builds the raw track pool for the global-catalog branch."""

    def __init__(self, catalog: ICatalogProvider) -> None:
        self._catalog = catalog
        self._logger = get_logger(__name__)

    async def fetch(self, candidates: CandidateProfile, target: int) -> list[Track]:
        """Fetch up to ``3 * target`` unique tracks for *candidates*.

        Raises
        ------
        NoCandidatesError
            If every query, including the default-genre fallback, came back
            empty or failed.
        """
        seed_genres = candidates.genre_names[:_MAX_GENRE_SEEDS]
        seed_artists = [
            boost.artist_id or boost.artist
            for boost in candidates.user_artists[:_MAX_ARTIST_SEEDS]
        ]

        tracks: list[Track] = []
        if seed_genres or seed_artists:
            tracks.extend(
                await self._seeded(seed_genres, seed_artists, candidates, target)
            )

        if len(tracks) < target and candidates.themes:
            top_genre = seed_genres[0] if seed_genres else _DEFAULT_GENRE
            query = f"genre:{top_genre} {candidates.themes[0].name}"
            tracks.extend(await self._search(query, target))

        pool = dedupe_tracks(tracks)

        if not pool:
            self._logger.warning("candidate_fetch_default_seed", genres=seed_genres)
            pool = dedupe_tracks(
                await self._seeded([_DEFAULT_GENRE], [], candidates, target)
            )

        if not pool:
            raise NoCandidatesError(
                message="No candidate tracks could be fetched for this context",
                provider_name=self._catalog.get_provider_name(),
            )

        pool = pool[: target * _OVERFETCH_FACTOR]
        self._logger.info(
            "candidates_fetched",
            pool_size=len(pool),
            target=target,
            seed_genres=seed_genres,
            seed_artists=len(seed_artists),
        )
        return pool

    async def _seeded(
        self,
        genres: list[str],
        artists: list[str],
        candidates: CandidateProfile,
        target: int,
    ) -> list[Track]:
        try:
            return await self._catalog.fetch_by_seeds(
                genres=genres,
                artists=artists,
                audio_features=candidates.audio_features,
                limit=min(target * 2, _MAX_SEEDED_LIMIT),
            )
        except ExternalServiceError as exc:
            self._logger.warning(
                "candidate_fetch_failed",
                query="seeded",
                genres=genres,
                error=str(exc),
            )
            return []

    async def _search(self, query: str, target: int) -> list[Track]:
        try:
            return await self._catalog.search(query, limit=target)
        except ExternalServiceError as exc:
            self._logger.warning(
                "candidate_fetch_failed",
                query=query,
                error=str(exc),
            )
            return []
