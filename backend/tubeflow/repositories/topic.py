"""TopicRepository: persistence for Topic entities.

Every mutation of an existing topic is a single conditional
`UPDATE ... WHERE id = ? [AND <expected>]` statement so concurrent requests
and poller passes cannot overwrite each other's writes. Callers inspect the
returned row count to learn whether their precondition still held.

ERROR LOGGING REQUIREMENTS:
- Log method entry/exit at DEBUG level with parameters (sanitized)
- Log all exceptions with full stack trace and context
- Include entity IDs (topic_id) in all logs
- Add timing logs for operations >1 second
"""

import time
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.logging import db_logger, get_logger
from tubeflow.models.topic import Topic, TopicLevel, TopicStatus

logger = get_logger(__name__)


class TopicRepository:
    """Repository for Topic CRUD and conditional updates."""

    TABLE_NAME = "topics"
    SLOW_OPERATION_THRESHOLD_MS = 1000  # 1 second

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _check_slow(self, query: str, start_time: float) -> float:
        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(query=query, duration_ms=duration_ms, table=self.TABLE_NAME)
        return duration_ms

    async def create(self, **fields: Any) -> Topic:
        """Insert a topic and return it with server defaults loaded."""
        start_time = time.monotonic()
        logger.debug(
            "Creating topic",
            extra={"topic_name": fields.get("topic_name"), "user_id": fields.get("user_id")},
        )
        try:
            topic = Topic(**fields)
            self.session.add(topic)
            await self.session.flush()
            await self.session.refresh(topic)
            duration_ms = self._check_slow("INSERT INTO topics", start_time)
            logger.debug(
                "Topic created",
                extra={"topic_id": topic.id, "duration_ms": round(duration_ms, 2)},
            )
            return topic
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e,
                table=self.TABLE_NAME,
                context=f"Creating topic name={fields.get('topic_name')!r}",
            )
            raise

    async def get_by_id(self, topic_id: str, refresh: bool = False) -> Topic | None:
        """Fetch one topic; `refresh` bypasses the session identity map."""
        start_time = time.monotonic()
        try:
            stmt = select(Topic).where(Topic.id == topic_id)
            if refresh:
                stmt = stmt.execution_options(populate_existing=True)
            result = await self.session.execute(stmt)
            topic = result.scalar_one_or_none()
            self._check_slow(f"SELECT FROM topics WHERE id={topic_id}", start_time)
            return topic
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch topic by ID",
                extra={
                    "topic_id": topic_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise

    async def list_all(self, user_id: str | None = None) -> list[Topic]:
        """All topics, newest first."""
        start_time = time.monotonic()
        stmt = select(Topic).order_by(Topic.created_at.desc(), Topic.id)
        if user_id is not None:
            stmt = stmt.where(Topic.user_id == user_id)
        try:
            result = await self.session.execute(stmt)
            topics = list(result.scalars().all())
            self._check_slow("SELECT FROM topics ORDER BY created_at DESC", start_time)
            return topics
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list topics",
                extra={"user_id": user_id, "error_type": type(e).__name__},
                exc_info=True,
            )
            raise

    async def count_by(self, column: str, user_id: str | None = None) -> dict[str, int]:
        """Count topics grouped by `status` or `level`."""
        col = Topic.status if column == "status" else Topic.level
        stmt = select(col, func.count()).group_by(col)
        if user_id is not None:
            stmt = stmt.where(Topic.user_id == user_id)
        result = await self.session.execute(stmt)
        return {value: count for value, count in result.all()}

    async def update_fields(
        self,
        topic_id: str,
        values: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> bool:
        """Conditionally update one topic.

        Args:
            topic_id: Topic to update
            values: Column values to write
            expected: Column values the row must still hold for the write to
                apply (compare-and-set)

        Returns:
            True if the row was updated, False if it is gone or `expected`
            no longer matched.
        """
        start_time = time.monotonic()
        stmt = update(Topic).where(Topic.id == topic_id)
        for column, value in (expected or {}).items():
            attr = getattr(Topic, column)
            stmt = stmt.where(attr.is_(None) if value is None else attr == value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        try:
            result = await self.session.execute(stmt)
            updated = bool(result.rowcount)
            duration_ms = self._check_slow(f"UPDATE topics WHERE id={topic_id}", start_time)
            logger.debug(
                "Topic conditional update",
                extra={
                    "topic_id": topic_id,
                    "fields": sorted(values),
                    "expected": sorted(expected or {}),
                    "updated": updated,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return updated
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Updating topic id={topic_id}"
            )
            raise

    async def delete(self, topic_id: str) -> bool:
        """Hard delete; returns False when the topic did not exist."""
        try:
            result = await self.session.execute(
                delete(Topic)
                .where(Topic.id == topic_id)
                .execution_options(synchronize_session=False)
            )
            deleted = bool(result.rowcount)
            logger.debug("Topic delete", extra={"topic_id": topic_id, "deleted": deleted})
            return deleted
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Deleting topic id={topic_id}"
            )
            raise

    async def find_by_source_keyword(self, keyword_id: str) -> list[Topic]:
        result = await self.session.execute(
            select(Topic).where(Topic.source_keyword_id == keyword_id)
        )
        return list(result.scalars().all())

    async def find_unlinked_by_name(self, topic_name: str, user_id: str) -> Topic | None:
        """Oldest topic with this exact name and owner that has no keyword link."""
        result = await self.session.execute(
            select(Topic)
            .where(
                Topic.topic_name == topic_name,
                Topic.user_id == user_id,
                Topic.source_keyword_id.is_(None),
            )
            .order_by(Topic.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_pending_ids(self, limit: int) -> list[str]:
        """Ids of up to `limit` pending topics, oldest first."""
        result = await self.session.execute(
            select(Topic.id)
            .where(Topic.status == TopicStatus.PENDING.value)
            .order_by(Topic.created_at, Topic.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def claim(self, topic_id: str, runner_id: str, now: datetime) -> bool:
        """Atomically move a pending scripting topic to processing.

        Returns False when another runner claimed it first or it left the
        pending state in the meantime.
        """
        stmt = (
            update(Topic)
            .where(
                Topic.id == topic_id,
                Topic.status == TopicStatus.PENDING.value,
                Topic.level == TopicLevel.SCRIPTING.value,
            )
            .values(
                status=TopicStatus.PROCESSING.value,
                claimed_by=runner_id,
                claimed_at=now,
                attempt_count=Topic.attempt_count + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Claiming topic id={topic_id}"
            )
            raise

    async def list_stale_claims(self, cutoff: datetime) -> list[Topic]:
        """Processing topics whose claim is older than `cutoff` (or missing)."""
        result = await self.session.execute(
            select(Topic).where(
                Topic.status == TopicStatus.PROCESSING.value,
                (Topic.claimed_at.is_(None)) | (Topic.claimed_at < cutoff),
            )
        )
        return list(result.scalars().all())
