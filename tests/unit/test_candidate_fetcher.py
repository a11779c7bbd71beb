"""Unit tests for the candidate fetcher query plan."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from contextune.interfaces.catalog_provider import ICatalogProvider
from contextune.models.profile import ArtistBoost, CandidateProfile
from contextune.models.rule import WeightedName
from contextune.services.candidate_fetcher import CandidateFetcher, dedupe_tracks
from contextune.utils.errors import ExternalServiceError, NoCandidatesError, RateLimitError
from tests.conftest import make_track


def _catalog(seeded: list | None = None, search: list | None = None) -> ICatalogProvider:
    mock = MagicMock(spec=ICatalogProvider)
    mock.get_provider_name.return_value = "mock_catalog"
    mock.fetch_by_seeds = AsyncMock(return_value=seeded or [])
    mock.search = AsyncMock(return_value=search or [])
    return mock


def _candidates(**overrides) -> CandidateProfile:
    data = {
        "themes": [WeightedName(name="rainy_night_lofi", weight=0.6)],
        "genres": [
            WeightedName(name="lofi", weight=0.4),
            WeightedName(name="acoustic", weight=0.3),
            WeightedName(name="jazz", weight=0.2),
            WeightedName(name="r&b", weight=0.1),
        ],
        "user_artists": [
            ArtistBoost(artist="Favourite Band", artist_id="id-fav", boost=0.5),
            ArtistBoost(artist="Second Band", boost=0.45),
            ArtistBoost(artist="Third Band", boost=0.4),
        ],
    }
    data.update(overrides)
    return CandidateProfile(**data)


def _tracks(prefix: str, n: int) -> list:
    return [make_track(f"{prefix}{i}") for i in range(n)]


class TestDedupeTracks:
    def test_keeps_first_occurrence(self) -> None:
        first = make_track("a", name="First")
        tracks = dedupe_tracks([first, make_track("b"), make_track("a", name="Second")])
        assert [t.id for t in tracks] == ["a", "b"]
        assert tracks[0].name == "First"


class TestCandidateFetcher:
    @pytest.mark.asyncio
    async def test_seeds_use_top_three_genres_and_two_artists(self) -> None:
        catalog = _catalog(seeded=_tracks("s", 30))

        await CandidateFetcher(catalog).fetch(_candidates(), target=12)

        kwargs = catalog.fetch_by_seeds.await_args.kwargs
        assert kwargs["genres"] == ["lofi", "acoustic", "jazz"]
        assert kwargs["artists"] == ["id-fav", "Second Band"]
        assert kwargs["limit"] == 24
        catalog.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_short_pool_topped_up_by_theme_search(self) -> None:
        catalog = _catalog(seeded=_tracks("s", 3), search=_tracks("q", 5))

        pool = await CandidateFetcher(catalog).fetch(_candidates(), target=10)

        catalog.search.assert_awaited_once_with("genre:lofi rainy_night_lofi", limit=10)
        assert len(pool) == 8

    @pytest.mark.asyncio
    async def test_pool_capped_at_three_times_target(self) -> None:
        catalog = _catalog(seeded=_tracks("s", 100))

        pool = await CandidateFetcher(catalog).fetch(_candidates(), target=10)

        assert len(pool) == 30

    @pytest.mark.asyncio
    async def test_duplicates_across_queries_removed(self) -> None:
        shared = _tracks("s", 4)
        catalog = _catalog(seeded=shared, search=shared + _tracks("q", 2))

        pool = await CandidateFetcher(catalog).fetch(_candidates(), target=10)

        assert len({t.id for t in pool}) == len(pool) == 6

    @pytest.mark.asyncio
    async def test_failures_fall_back_to_pop_seed(self) -> None:
        catalog = MagicMock(spec=ICatalogProvider)
        catalog.get_provider_name.return_value = "mock_catalog"
        catalog.fetch_by_seeds = AsyncMock(
            side_effect=[RateLimitError(provider_name="spotify"), _tracks("p", 5)]
        )
        catalog.search = AsyncMock(side_effect=ExternalServiceError(provider_name="spotify"))

        pool = await CandidateFetcher(catalog).fetch(_candidates(), target=10)

        assert len(pool) == 5
        fallback_call = catalog.fetch_by_seeds.await_args_list[1]
        assert fallback_call.kwargs["genres"] == ["pop"]
        assert fallback_call.kwargs["artists"] == []

    @pytest.mark.asyncio
    async def test_empty_everywhere_raises(self) -> None:
        catalog = _catalog(seeded=[], search=[])

        with pytest.raises(NoCandidatesError):
            await CandidateFetcher(catalog).fetch(_candidates(), target=10)

    @pytest.mark.asyncio
    async def test_no_seeds_goes_straight_to_search(self) -> None:
        catalog = _catalog(search=_tracks("q", 3))
        candidates = _candidates(genres=[], user_artists=[])

        pool = await CandidateFetcher(catalog).fetch(candidates, target=10)

        catalog.search.assert_awaited_once_with("genre:pop rainy_night_lofi", limit=10)
        catalog.fetch_by_seeds.assert_not_awaited()
        assert len(pool) == 3
