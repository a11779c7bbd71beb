"""contextune application wiring.

Constructs every provider and service via dependency injection from
``.env`` / environment settings and ``config/config.yaml``, and exposes
standalone helpers for the CLI and for scripting:

- ``build_orchestrator``  -> the wired :class:`RecommendationOrchestrator`
- ``run_preview``         -> one preview request with setup and teardown
- ``default_options``     -> request options seeded from settings
"""

from __future__ import annotations

import random
from typing import Any

import httpx
import structlog

from contextune.config.loader import load_config
from contextune.config.settings import Settings
from contextune.interfaces.weather_provider import IWeatherProvider
from contextune.models.context import Context, GeoLocation
from contextune.models.recommendation import (
    RecommendationFailure,
    RecommendationOptions,
    RecommendationResult,
)
from contextune.pipeline.orchestrator import RecommendationOrchestrator
from contextune.providers.cache.memory_cache import MemoryCacheProvider
from contextune.providers.history.sqlite_history_store import SQLiteHistoryStore
from contextune.providers.recommendation_log.sqlite_log_sink import SQLiteLogSink
from contextune.providers.recommendation_log.sqlite_playlist_store import SQLitePlaylistStore
from contextune.providers.rules.yaml_rule_store import YAMLRuleStore
from contextune.providers.spotify.spotify_catalog_provider import SpotifyCatalogProvider
from contextune.providers.spotify.spotify_client import SpotifyClient
from contextune.providers.spotify.spotify_user_store import SpotifyUserStore
from contextune.providers.weather.openweathermap_provider import OpenWeatherMapProvider
from contextune.services.candidate_fetcher import CandidateFetcher
from contextune.services.context_service import ContextService
from contextune.services.diversity_selector import DiversitySelector
from contextune.services.feedback_service import FeedbackService
from contextune.services.playlist_namer import PlaylistNamer
from contextune.services.profile_builder import ProfileBuilder
from contextune.services.rule_matcher import RuleMatcher
from contextune.services.track_ranker import TrackRanker
from contextune.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def configure_app_logging(app_settings: Settings) -> None:
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )


def default_options(app_settings: Settings, **overrides: Any) -> RecommendationOptions:
    """Request options seeded from settings; ``None`` overrides are ignored."""
    values: dict[str, Any] = {
        "target_length": app_settings.default_target_length,
        "diversity_weight": app_settings.default_diversity_weight,
        "idempotency_window_seconds": app_settings.idempotency_window_seconds,
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return RecommendationOptions(**values)


def _build_weather_provider(
    app_settings: Settings, http_client: httpx.AsyncClient
) -> IWeatherProvider | None:
    if not app_settings.weather_enabled():
        _logger.info("weather_disabled", reason="no OPENWEATHERMAP_API_KEY")
        return None
    return OpenWeatherMapProvider(
        api_key=app_settings.openweathermap_api_key,
        base_url=app_settings.openweathermap_base_url,
        http_client=http_client,
    )


def _build_all(app_settings: Settings, rng: random.Random | None = None) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components.  The SQLite stores still
    need :func:`initialize` before first use.  *rng* pins the playlist
    name template pick.
    """
    config = load_config(settings=app_settings)
    engine = config.get("engine", {})

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds)

    # -- Providers --
    spotify = SpotifyClient(
        access_token=app_settings.spotify_access_token,
        base_url=app_settings.spotify_api_base_url,
        market=app_settings.spotify_market,
        http_client=http_client,
    )
    catalog = SpotifyCatalogProvider(spotify)
    user_store = SpotifyUserStore(spotify)
    weather = _build_weather_provider(app_settings, http_client)
    rule_cache = MemoryCacheProvider(
        max_size=app_settings.rule_cache_max_size,
        ttl=app_settings.rule_cache_ttl_seconds,
    )
    weather_cache = MemoryCacheProvider(max_size=app_settings.rule_cache_max_size, ttl=600)
    rule_store = YAMLRuleStore.from_file(app_settings.rules_path)
    history_store = SQLiteHistoryStore(db_path=app_settings.history_db_path)
    log_sink = SQLiteLogSink(db_path=app_settings.recommendation_log_db_path)
    playlist_store = SQLitePlaylistStore(db_path=app_settings.recommendation_log_db_path)

    # -- Services --
    rule_matcher = RuleMatcher(
        rule_store=rule_store,
        cache=rule_cache,
        limit=app_settings.rule_match_limit,
        cache_ttl=app_settings.rule_cache_ttl_seconds,
    )
    context_service = ContextService(weather_provider=weather, cache=weather_cache)
    profile_builder = ProfileBuilder(user_store=user_store, history_store=history_store)

    orchestrator = RecommendationOrchestrator(
        rule_matcher=rule_matcher,
        candidate_fetcher=CandidateFetcher(catalog),
        track_ranker=TrackRanker(),
        diversity_selector=DiversitySelector(),
        profile_builder=profile_builder,
        catalog=catalog,
        log_sink=log_sink,
        playlist_store=playlist_store,
        context_service=context_service,
        playlist_namer=PlaylistNamer(rng),
        algorithm_version=str(engine.get("version", "1.0")),
        algorithm_model=engine.get("model", "hybrid_rule_based"),
        user_portion=engine.get("user_portion", 0.4),
        user_branch_diversity_weight=engine.get("user_branch_diversity_weight", 0.5),
        max_user_playlists=engine.get("max_user_playlists", 10),
        default_deadline_seconds=app_settings.request_deadline_seconds,
    )
    feedback_service = FeedbackService(log_sink=log_sink, rule_store=rule_store)

    _logger.info(
        "components_built",
        rules=len(rule_store),
        weather=weather is not None,
        app_env=app_settings.app_env,
    )

    return {
        "http_client": http_client,
        "config": config,
        "catalog": catalog,
        "user_store": user_store,
        "rule_store": rule_store,
        "history_store": history_store,
        "log_sink": log_sink,
        "playlist_store": playlist_store,
        "rule_matcher": rule_matcher,
        "context_service": context_service,
        "orchestrator": orchestrator,
        "feedback_service": feedback_service,
    }


async def initialize(components: dict[str, Any]) -> None:
    """Create the SQLite tables behind the stores."""
    for key in ("history_store", "log_sink", "playlist_store"):
        await components[key].initialize()


async def shutdown(components: dict[str, Any]) -> None:
    await components["http_client"].aclose()


def build_orchestrator(custom_settings: Settings | None = None) -> RecommendationOrchestrator:
    """Build the orchestrator with every collaborator wired in.

    Parameters
    ----------
    custom_settings:
        Application settings.  Read from the environment when omitted.
    """
    return _build_all(custom_settings or Settings())["orchestrator"]


async def run_preview(
    user_id: str,
    context: Context | None = None,
    options: RecommendationOptions | None = None,
    location: GeoLocation | None = None,
    timezone: str | None = None,
    custom_settings: Settings | None = None,
    rng: random.Random | None = None,
) -> RecommendationResult | RecommendationFailure:
    """Build everything, run one preview request and release resources."""
    app_settings = custom_settings or Settings()
    components = _build_all(app_settings, rng=rng)
    try:
        await initialize(components)
        orchestrator: RecommendationOrchestrator = components["orchestrator"]
        return await orchestrator.preview_recommendations(
            user_id,
            context=context,
            options=options or default_options(app_settings),
            location=location,
            timezone=timezone,
        )
    finally:
        await shutdown(components)
