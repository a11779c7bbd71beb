"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml : static defaults checked into the repo
#   2. .env file          : local developer overrides (not committed)
#   3. Environment vars   : set at deploy time
#
# load_config() reads the YAML file, then deep-merges the env-derived
# Settings values on top.  load_rule_documents() reads the rule file that
# the YAML rule store validates into Rule models.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path
from typing import Any

import yaml

from contextune.config.settings import Settings
from contextune.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to merge; a fresh one is read from the
                  environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "catalog": {
            "base_url": settings.spotify_api_base_url,
            "market": settings.spotify_market,
        },
        "weather": {
            "enabled": settings.weather_enabled(),
        },
        "rules": {
            "path": settings.rules_path,
            "cache_ttl_seconds": settings.rule_cache_ttl_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def load_rule_documents(path: str | Path) -> list[dict[str, Any]]:
    """Read the raw rule documents from a YAML file.

    The file holds a top-level ``rules:`` list.  A missing file yields no
    rules (the matcher then serves the fallback profile).

    Raises:
        ConfigurationError: If the file is not valid YAML or has the wrong shape.
    """
    rules_path = Path(path)
    if not rules_path.exists():
        return []

    try:
        with open(rules_path) as f:
            document = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            message=f"Rule file {rules_path} is not valid YAML: {exc}",
            provider_name="yaml_rules",
        ) from exc

    rules = document.get("rules", []) if isinstance(document, dict) else None
    if not isinstance(rules, list):
        raise ConfigurationError(
            message=f"Rule file {rules_path} must contain a top-level 'rules' list",
            provider_name="yaml_rules",
        )
    return rules


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
