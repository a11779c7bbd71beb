"""SQLite-backed store of generated playlists.

Backs the orchestrator's idempotency check: the context columns
(time of day, weather, city) are stored alongside the JSON document so the
recent-similar lookup is a single indexed query.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import aiosqlite
import structlog

from contextune.interfaces.playlist_store import IPlaylistStore
from contextune.models.context import Context
from contextune.models.recommendation import PlaylistRecord
from contextune.utils.errors import ExternalServiceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/recommendations.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS playlists (
    playlist_id  TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    time_of_day  TEXT,
    weather      TEXT,
    city         TEXT,
    created_at   TEXT NOT NULL,
    record       TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_playlists_user_time ON playlists(user_id, created_at);",
]

_UPSERT_SQL = """\
INSERT INTO playlists (playlist_id, user_id, time_of_day, weather, city, created_at, record)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(playlist_id)
DO UPDATE SET record = excluded.record;
"""

# ``IS`` rather than ``=`` so a missing city matches a missing city.
_SELECT_SIMILAR_SQL = """\
SELECT record FROM playlists
WHERE user_id = ?
  AND created_at >= ?
  AND time_of_day IS ?
  AND weather IS ?
  AND city IS ?
ORDER BY created_at DESC
LIMIT 1;
"""

_SELECT_FOR_USER_SQL = """\
SELECT record FROM playlists
WHERE user_id = ?
ORDER BY created_at DESC
LIMIT ? OFFSET ?;
"""


class SQLitePlaylistStore(IPlaylistStore):
    """Generated-playlist records persisted with aiosqlite."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the playlists table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("playlist_store_initialized", path=str(self._db_path))

    async def find_recent_similar(
        self, user_id: str, context: Context, window: timedelta
    ) -> PlaylistRecord | None:
        cutoff = (datetime.now(tz=timezone.utc) - window).isoformat()  # noqa: UP017
        params = (
            user_id,
            cutoff,
            context.time_of_day.value,
            context.weather.condition.value,
            context.location.city,
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_SIMILAR_SQL, params)
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise ExternalServiceError(
                message=f"Failed to look up recent playlists: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if row is None:
            return None
        return PlaylistRecord.model_validate_json(row["record"])

    async def save(self, record: PlaylistRecord) -> PlaylistRecord:
        params = (
            record.playlist_id,
            record.user_id,
            record.time_of_day,
            record.weather,
            record.city,
            record.created_at.isoformat(),
            record.model_dump_json(),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_UPSERT_SQL, params)
                await db.commit()
        except aiosqlite.Error as exc:
            raise ExternalServiceError(
                message=f"Failed to save playlist {record.playlist_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("playlist_saved", playlist_id=record.playlist_id, user_id=record.user_id)
        return record

    async def list_for_user(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> list[PlaylistRecord]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_FOR_USER_SQL, (user_id, limit, offset))
            rows = await cursor.fetchall()
        return [PlaylistRecord.model_validate_json(r["record"]) for r in rows]

    def get_provider_name(self) -> str:
        return "sqlite_playlists"
