"""Recommendation audit log and generated-playlist persistence (SQLite)."""

from contextune.providers.recommendation_log.sqlite_log_sink import SQLiteLogSink
from contextune.providers.recommendation_log.sqlite_playlist_store import SQLitePlaylistStore

__all__ = ["SQLiteLogSink", "SQLitePlaylistStore"]
