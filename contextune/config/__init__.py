"""Configuration module - exports Settings and the YAML loaders."""

from contextune.config.loader import load_config, load_rule_documents
from contextune.config.settings import Settings

__all__ = ["Settings", "load_config", "load_rule_documents"]
