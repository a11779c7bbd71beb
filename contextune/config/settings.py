"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources, highest
# priority first:
#
#   1. Environment variables: e.g. SPOTIFY_ACCESS_TOKEN=BQD...
#   2. .env file            : key=value lines in the project root
#
# Field ``spotify_access_token`` maps to env var ``SPOTIFY_ACCESS_TOKEN``.
# Defaults apply when neither source sets a field.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """contextune settings.

    Environment variables override defaults. Loaded from .env when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Music catalog (Spotify Web API) ===
    spotify_api_base_url: str = "https://api.spotify.com/v1"
    # Empty string = "not configured"; the catalog provider is still built
    # but every call will fail with an ExternalServiceError.
    spotify_access_token: str = ""
    spotify_market: str = "US"

    # === Weather (OpenWeatherMap) ===
    openweathermap_api_key: str = ""
    openweathermap_base_url: str = "https://api.openweathermap.org/data/2.5"

    # === Storage ===
    rules_path: str = "config/rules.yaml"
    history_db_path: str = "data/listening_history.db"
    recommendation_log_db_path: str = "data/recommendations.db"

    # === Engine tuning ===
    rule_cache_ttl_seconds: int = 1800
    rule_cache_max_size: int = 512
    rule_match_limit: int = 10
    idempotency_window_seconds: int = 2 * 60 * 60
    default_target_length: int = 20
    default_diversity_weight: float = 0.3
    request_deadline_seconds: float = 30.0
    http_timeout_seconds: float = 15.0

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def weather_enabled(self) -> bool:
        return bool(self.openweathermap_api_key)
