"""SQLite-backed listening-history store.

Persists play events to a local SQLite database at
``data/listening_history.db``.  Uses ``aiosqlite`` for async I/O.

Artists are stored as a JSON array on the play row so recent tracks can be
rebuilt without a join; listening patterns are aggregated in SQL.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import aiosqlite
import structlog

from contextune.interfaces.history_store import IHistoryStore
from contextune.models.profile import ListeningPattern
from contextune.models.track import Artist, Track
from contextune.utils.errors import ExternalServiceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/listening_history.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS plays (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      TEXT    NOT NULL,
    track_id     TEXT    NOT NULL,
    track_name   TEXT    NOT NULL,
    artists      TEXT    NOT NULL DEFAULT '[]',
    album        TEXT,
    popularity   REAL,
    duration_ms  INTEGER NOT NULL DEFAULT 0,
    explicit     INTEGER NOT NULL DEFAULT 0,
    time_of_day  TEXT,
    weather      TEXT,
    completion   REAL,
    played_at    TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_plays_user_time ON plays(user_id, played_at);",
    "CREATE INDEX IF NOT EXISTS idx_plays_track ON plays(track_id);",
]

_INSERT_SQL = """\
INSERT INTO plays (
    user_id, track_id, track_name, artists, album, popularity,
    duration_ms, explicit, time_of_day, weather, completion, played_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_RECENT_SQL = """\
SELECT track_id, track_name, artists, album, popularity, duration_ms, explicit
FROM plays
WHERE user_id = ?
ORDER BY played_at DESC, id DESC
LIMIT ?;
"""

_SELECT_PATTERNS_SQL = """\
SELECT time_of_day,
       weather,
       COUNT(*)        AS play_count,
       AVG(completion) AS avg_completion
FROM plays
WHERE user_id = ? AND played_at >= ?
GROUP BY time_of_day, weather
ORDER BY play_count DESC;
"""


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class SQLiteHistoryStore(IHistoryStore):
    """SQLite-backed listening history."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the plays table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("history_db_initialized", path=str(self._db_path))

    async def get_recent_tracks(self, user_id: str, n: int = 50) -> list[Track]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_RECENT_SQL, (user_id, n))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise ExternalServiceError(
                message=f"Failed to read listening history: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        tracks: list[Track] = []
        for row in rows:
            artists = [Artist.model_validate(a) for a in json.loads(row["artists"] or "[]")]
            tracks.append(
                Track(
                    id=row["track_id"],
                    name=row["track_name"],
                    artists=artists,
                    album=row["album"],
                    popularity=row["popularity"],
                    duration_ms=row["duration_ms"] or 0,
                    explicit=bool(row["explicit"]),
                )
            )
        return tracks

    async def get_listening_patterns(self, user_id: str, days: int = 30) -> list[ListeningPattern]:
        cutoff = (_utcnow() - timedelta(days=days)).isoformat()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_PATTERNS_SQL, (user_id, cutoff))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise ExternalServiceError(
                message=f"Failed to aggregate listening patterns: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return [
            ListeningPattern(
                time_of_day=row["time_of_day"],
                weather=row["weather"],
                play_count=row["play_count"],
                avg_completion=row["avg_completion"],
            )
            for row in rows
        ]

    async def record_play(
        self,
        user_id: str,
        track: Track,
        time_of_day: str | None = None,
        weather: str | None = None,
        completion: float | None = None,
    ) -> None:
        artists = json.dumps([a.model_dump(mode="json") for a in track.artists])
        params = (
            user_id,
            track.id,
            track.name,
            artists,
            track.album,
            track.popularity,
            track.duration_ms,
            int(track.explicit),
            time_of_day,
            weather,
            completion,
            _utcnow().isoformat(),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_INSERT_SQL, params)
                await db.commit()
        except aiosqlite.Error as exc:
            raise ExternalServiceError(
                message=f"Failed to record play: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("play_recorded", user_id=user_id, track_id=track.id, time_of_day=time_of_day)

    def get_provider_name(self) -> str:
        return "sqlite_history"
