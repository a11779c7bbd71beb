"""Shared pytest fixtures for the contextune test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from contextune.interfaces.catalog_provider import ICatalogProvider, PlaylistSummary
from contextune.interfaces.log_sink import ILogSink
from contextune.interfaces.playlist_store import IPlaylistStore
from contextune.interfaces.user_store import IUserStore, UserAccount
from contextune.models.context import (
    Context,
    GeoLocation,
    Season,
    TimeOfDay,
    Weather,
    WeatherCondition,
)
from contextune.models.profile import GenreCount, UserProfile
from contextune.models.rule import Rule
from contextune.models.track import Artist, Track
from contextune.providers.cache.memory_cache import MemoryCacheProvider

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def rules_path(project_root: Path) -> Path:
    """The rule file shipped with the project."""
    return project_root / "config" / "rules.yaml"


# ---------------------------------------------------------------------------
# Contexts
# ---------------------------------------------------------------------------


@pytest.fixture
def morning_sunny_context() -> Context:
    """Morning, sunny, 20 degrees C in Berlin."""
    return Context(
        time_of_day=TimeOfDay.MORNING,
        weather=Weather(condition=WeatherCondition.SUNNY, temperature=20.0, humidity=40),
        location=GeoLocation(city="Berlin", country="DE", latitude=52.52, longitude=13.40),
        season=Season.SUMMER,
        context_id="ctx-morning",
    )


@pytest.fixture
def evening_rainy_context() -> Context:
    """Evening, rainy, 12 degrees C in London."""
    return Context(
        time_of_day=TimeOfDay.EVENING,
        weather=Weather(condition=WeatherCondition.RAINY, temperature=12.0, humidity=85),
        location=GeoLocation(city="London", country="GB", latitude=51.51, longitude=-0.13),
        season=Season.AUTUMN,
        context_id="ctx-evening",
    )


@pytest.fixture
def afternoon_foggy_context() -> Context:
    """A context no shipped rule matches."""
    return Context(
        time_of_day=TimeOfDay.AFTERNOON,
        weather=Weather(condition=WeatherCondition.FOG, temperature=8.0),
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def rule_document(rule_id: str = "evening_rainy_chill", **overrides: Any) -> dict[str, Any]:
    """A rule document in the shape the YAML rule store loads."""
    document: dict[str, Any] = {
        "rule_id": rule_id,
        "name": "Rainy Evening Chill",
        "priority": 9,
        "conditions": {
            "time_of_day": ["evening", "night"],
            "weather": ["rainy", "stormy", "cloudy"],
        },
        "recommendations": {
            "themes": [
                {"name": "rainy_night_lofi", "weight": 3.0},
                {"name": "acoustic_chill", "weight": 2.5},
            ],
            "genres": [
                {"name": "lofi", "weight": 3.0},
                {"name": "acoustic", "weight": 2.5},
                {"name": "jazz", "weight": 2.0},
            ],
            "audio_features": {
                "energy": {"min": 0.1, "max": 0.5, "target": 0.3, "weight": 2.0},
                "valence": {"min": 0.2, "max": 0.7, "target": 0.4, "weight": 1.0},
            },
            "mood_tags": ["chill", "relaxing"],
            "context_tags": ["evening", "rainy"],
        },
    }
    document.update(overrides)
    return document


@pytest.fixture
def rainy_rule() -> Rule:
    return Rule.model_validate(rule_document())


@pytest.fixture
def morning_rule() -> Rule:
    return Rule.model_validate(
        rule_document(
            "morning_sunny_energetic",
            name="Morning Sunny Energy",
            priority=8,
            conditions={
                "time_of_day": ["morning"],
                "weather": ["sunny", "partly_cloudy"],
                "temperature_range": {"min": 15, "max": 35},
            },
            recommendations={
                "themes": [{"name": "energetic_start", "weight": 3.0}],
                "genres": [
                    {"name": "pop", "weight": 2.5},
                    {"name": "indie_rock", "weight": 2.0},
                ],
                "audio_features": {
                    "energy": {"min": 0.6, "max": 1.0, "target": 0.8, "weight": 2.0},
                },
                "mood_tags": ["happy"],
                "context_tags": ["morning"],
                "excluded_genres": ["metal"],
            },
        )
    )


# ---------------------------------------------------------------------------
# Tracks and profiles
# ---------------------------------------------------------------------------


def make_track(
    track_id: str,
    artist: str = "Artist",
    genres: list[str] | None = None,
    **fields: Any,
) -> Track:
    """A catalog track with one credited artist."""
    fields.setdefault("name", f"Song {track_id}")
    fields.setdefault("popularity", 50)
    fields.setdefault("duration_ms", 180_000)
    return Track(
        id=track_id,
        artists=[Artist(id=None, name=artist, genres=genres or [])],
        **fields,
    )


@pytest.fixture
def sample_tracks() -> list[Track]:
    """Ten tracks by five artists, two tracks each."""
    return [
        make_track(f"t{i}", artist=f"Artist {i // 2}", genres=["indie"], popularity=40 + i)
        for i in range(10)
    ]


@pytest.fixture
def sample_profile() -> UserProfile:
    return UserProfile(
        user_id="user-1",
        spotify_id="spotify-user-1",
        top_tracks=[make_track("top1", artist="Favourite Band", name="Sunny Morning Drive")],
        top_artists=[
            Artist(id=None, name="Favourite Band", genres=["indie", "pop"]),
            Artist(id=None, name="Second Band", genres=["indie"]),
        ],
        top_genres=[GenreCount(name="indie", frequency=2), GenreCount(name="pop", frequency=1)],
    )


@pytest.fixture
def empty_profile() -> UserProfile:
    return UserProfile(user_id="user-1")


# ---------------------------------------------------------------------------
# Mock collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_catalog(sample_tracks: list[Track]) -> ICatalogProvider:
    """Catalog with two user playlists and a ten-track seeded pool."""
    mock = MagicMock(spec=ICatalogProvider)
    mock.get_provider_name.return_value = "mock_catalog"
    mock.fetch_by_seeds = AsyncMock(return_value=sample_tracks)
    mock.search = AsyncMock(return_value=[])
    mock.get_user_playlists = AsyncMock(
        return_value=[
            PlaylistSummary(id="pl-1", name="Mine", track_count=3),
            PlaylistSummary(id="pl-2", name="Also mine", track_count=3),
        ]
    )

    async def _playlist_tracks(playlist_id: str, limit: int = 100) -> list[Track]:
        return [
            make_track(f"{playlist_id}-{i}", artist=f"{playlist_id} artist {i}", genres=["indie"])
            for i in range(3)
        ]

    mock.get_playlist_tracks = AsyncMock(side_effect=_playlist_tracks)
    return mock


@pytest.fixture
def mock_user_store() -> IUserStore:
    """User store knowing exactly one account, ``user-1``."""
    mock = MagicMock(spec=IUserStore)
    mock.get_provider_name.return_value = "mock_users"
    mock.get_account = AsyncMock(
        return_value=UserAccount(user_id="user-1", spotify_id="spotify-user-1")
    )
    mock.get_top_tracks = AsyncMock(return_value=[])
    mock.get_top_artists = AsyncMock(return_value=[])
    mock.get_recently_played = AsyncMock(return_value=[])
    mock.get_audio_features = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def mock_log_sink() -> ILogSink:
    mock = MagicMock(spec=ILogSink)
    mock.write = AsyncMock(return_value=None)
    mock.get = AsyncMock(return_value=None)
    mock.update_interaction = AsyncMock()
    mock.history = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def mock_playlist_store() -> IPlaylistStore:
    """Playlist store with no recent playlists that echoes saved records."""
    mock = MagicMock(spec=IPlaylistStore)
    mock.find_recent_similar = AsyncMock(return_value=None)
    mock.save = AsyncMock(side_effect=lambda record: record)
    mock.list_for_user = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def memory_cache() -> MemoryCacheProvider:
    return MemoryCacheProvider(max_size=32, ttl=60)
