"""Listening-history store implementations."""

from contextune.providers.history.sqlite_history_store import SQLiteHistoryStore

__all__ = ["SQLiteHistoryStore"]
