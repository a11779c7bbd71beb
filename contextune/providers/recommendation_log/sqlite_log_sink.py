"""SQLite-backed recommendation audit log.

Each orchestrator invocation appends one row holding the full
:class:`~contextune.models.recommendation.RecommendationLogRecord` as a
JSON document.  Rows are never rewritten except through
:meth:`update_interaction`, which replaces only the interaction block and
the derived engagement score.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from contextune.interfaces.log_sink import ILogSink
from contextune.models.recommendation import RecommendationLogRecord, UserInteraction
from contextune.utils.errors import ExternalServiceError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/recommendations.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS recommendation_logs (
    rec_id               TEXT PRIMARY KEY,
    user_id              TEXT NOT NULL,
    recommendation_type  TEXT NOT NULL,
    engagement_score     REAL NOT NULL DEFAULT 0,
    delivered_at         TEXT NOT NULL,
    record               TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_logs_user_time ON recommendation_logs(user_id, delivered_at);",
]

_INSERT_SQL = """\
INSERT INTO recommendation_logs (
    rec_id, user_id, recommendation_type, engagement_score, delivered_at, record
) VALUES (?, ?, ?, ?, ?, ?);
"""

_UPDATE_SQL = """\
UPDATE recommendation_logs
SET record = ?, engagement_score = ?
WHERE rec_id = ?;
"""

_SELECT_ONE_SQL = "SELECT record FROM recommendation_logs WHERE rec_id = ?;"

_SELECT_HISTORY_SQL = """\
SELECT record FROM recommendation_logs
WHERE user_id = ?
ORDER BY delivered_at DESC
LIMIT ?;
"""


class SQLiteLogSink(ILogSink):
    """Append-only audit log persisted with aiosqlite."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the log table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("recommendation_log_initialized", path=str(self._db_path))

    async def write(self, record: RecommendationLogRecord) -> None:
        params = (
            record.rec_id,
            record.user_id,
            record.recommendation_type,
            record.engagement_score,
            record.delivered_at.isoformat(),
            record.model_dump_json(),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_INSERT_SQL, params)
                await db.commit()
        except aiosqlite.Error as exc:
            raise ExternalServiceError(
                message=f"Failed to write recommendation log {record.rec_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "recommendation_logged",
            rec_id=record.rec_id,
            recommendation_type=record.recommendation_type,
        )

    async def get(self, rec_id: str) -> RecommendationLogRecord | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_ONE_SQL, (rec_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return RecommendationLogRecord.model_validate_json(row["record"])

    async def update_interaction(
        self, rec_id: str, interaction: UserInteraction
    ) -> RecommendationLogRecord:
        existing = await self.get(rec_id)
        if existing is None:
            raise NotFoundError(
                message=f"Recommendation '{rec_id}' not found",
                provider_name=self.get_provider_name(),
            )

        updated = existing.with_interaction(interaction)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPDATE_SQL,
                (updated.model_dump_json(), updated.engagement_score, rec_id),
            )
            await db.commit()

        logger.debug(
            "recommendation_interaction_updated",
            rec_id=rec_id,
            engagement_score=updated.engagement_score,
        )
        return updated

    async def history(self, user_id: str, limit: int = 20) -> list[RecommendationLogRecord]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_HISTORY_SQL, (user_id, limit))
            rows = await cursor.fetchall()
        return [RecommendationLogRecord.model_validate_json(r["record"]) for r in rows]

    def get_provider_name(self) -> str:
        return "sqlite_recommendation_log"
