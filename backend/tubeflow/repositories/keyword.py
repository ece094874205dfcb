"""KeywordRepository: persistence for QuestionKeyword entities.

ERROR LOGGING REQUIREMENTS:
- Log all exceptions with full stack trace and context
- Include entity IDs (keyword_id) in all logs
- Add timing logs for operations >1 second
"""

import time
from dataclasses import dataclass
from typing import Any

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.logging import db_logger, get_logger
from tubeflow.models.question_keyword import QuestionKeyword

logger = get_logger(__name__)

# Columns a caller may sort by.
SORTABLE_COLUMNS = (
    "keyword",
    "competition",
    "overall",
    "search_volume",
    "thirty_day_ago_searches",
    "number_of_words",
    "created_at",
)


@dataclass
class KeywordQuery:
    """Filter, sort and pagination options for listing keywords."""

    user_id: str | None = None
    search: str | None = None
    min_overall: float | None = None
    max_overall: float | None = None
    min_search_volume: int | None = None
    max_search_volume: int | None = None
    min_competition: float | None = None
    max_competition: float | None = None
    added_to_title: bool | None = None
    sort_by: str = "overall"
    sort_order: str = "desc"
    page: int = 1
    limit: int = 50


class KeywordRepository:
    """Repository for QuestionKeyword CRUD operations."""

    TABLE_NAME = "question_keywords"
    SLOW_OPERATION_THRESHOLD_MS = 1000  # 1 second

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, **fields: Any) -> QuestionKeyword:
        try:
            keyword = QuestionKeyword(**fields)
            self.session.add(keyword)
            await self.session.flush()
            await self.session.refresh(keyword)
            logger.debug(
                "Keyword created",
                extra={"keyword_id": keyword.id, "keyword": keyword.keyword},
            )
            return keyword
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e,
                table=self.TABLE_NAME,
                context=f"Creating keyword {fields.get('keyword')!r}",
            )
            raise

    async def get_by_id(self, keyword_id: str) -> QuestionKeyword | None:
        try:
            result = await self.session.execute(
                select(QuestionKeyword).where(QuestionKeyword.id == keyword_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch keyword by ID",
                extra={
                    "keyword_id": keyword_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise

    async def get_by_keyword(self, keyword: str, user_id: str) -> QuestionKeyword | None:
        result = await self.session.execute(
            select(QuestionKeyword).where(
                QuestionKeyword.keyword == keyword,
                QuestionKeyword.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def update(self, keyword: QuestionKeyword, values: dict[str, Any]) -> QuestionKeyword:
        """Apply `values` to a loaded keyword and flush."""
        for field, value in values.items():
            setattr(keyword, field, value)
        try:
            await self.session.flush()
            await self.session.refresh(keyword)
            return keyword
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Updating keyword id={keyword.id}"
            )
            raise

    async def set_added_to_title(self, keyword_id: str, flag: bool) -> bool:
        """Flip the added_to_title flag only if it currently holds `not flag`."""
        result = await self.session.execute(
            update(QuestionKeyword)
            .where(
                QuestionKeyword.id == keyword_id,
                QuestionKeyword.added_to_title.is_(not flag),
            )
            .values(added_to_title=flag)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def delete(self, keyword_id: str) -> bool:
        try:
            result = await self.session.execute(
                delete(QuestionKeyword)
                .where(QuestionKeyword.id == keyword_id)
                .execution_options(synchronize_session=False)
            )
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Deleting keyword id={keyword_id}"
            )
            raise

    def _filtered(self, query: KeywordQuery) -> Any:
        stmt = select(QuestionKeyword)
        conditions = []
        if query.user_id is not None:
            conditions.append(QuestionKeyword.user_id == query.user_id)
        if query.search:
            conditions.append(
                func.lower(QuestionKeyword.keyword).contains(
                    query.search.lower(), autoescape=True
                )
            )
        bounds = [
            (QuestionKeyword.overall, query.min_overall, query.max_overall),
            (QuestionKeyword.search_volume, query.min_search_volume, query.max_search_volume),
            (QuestionKeyword.competition, query.min_competition, query.max_competition),
        ]
        for column, low, high in bounds:
            if low is not None:
                conditions.append(column >= low)
            if high is not None:
                conditions.append(column <= high)
        if query.added_to_title is not None:
            conditions.append(QuestionKeyword.added_to_title.is_(query.added_to_title))
        return stmt.where(*conditions)

    async def list_page(self, query: KeywordQuery) -> tuple[list[QuestionKeyword], int]:
        """Return one page of matching keywords and the total match count."""
        start_time = time.monotonic()
        base = self._filtered(query)

        sort_column = getattr(QuestionKeyword, query.sort_by)
        ordering = sort_column.asc() if query.sort_order == "asc" else sort_column.desc()

        try:
            total = (
                await self.session.execute(
                    select(func.count()).select_from(base.subquery())
                )
            ).scalar_one()
            result = await self.session.execute(
                base.order_by(ordering, QuestionKeyword.id)
                .offset((query.page - 1) * query.limit)
                .limit(query.limit)
            )
            keywords = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list keywords",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
                exc_info=True,
            )
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(
                query="SELECT FROM question_keywords (filtered)",
                duration_ms=duration_ms,
                table=self.TABLE_NAME,
            )
        return keywords, total

    async def stats(self, user_id: str | None = None) -> dict[str, Any]:
        """Aggregate counts and averages in one query."""
        stmt = select(
            func.count(QuestionKeyword.id),
            func.avg(QuestionKeyword.overall),
            func.avg(QuestionKeyword.competition),
            func.avg(QuestionKeyword.search_volume),
            func.sum(case((QuestionKeyword.overall >= 70, 1), else_=0)),
            func.sum(case((QuestionKeyword.competition <= 30, 1), else_=0)),
        )
        if user_id is not None:
            stmt = stmt.where(QuestionKeyword.user_id == user_id)
        row = (await self.session.execute(stmt)).one()
        return {
            "total": row[0] or 0,
            "avg_overall": float(row[1] or 0),
            "avg_competition": float(row[2] or 0),
            "avg_search_volume": float(row[3] or 0),
            "high_score_count": int(row[4] or 0),
            "low_competition_count": int(row[5] or 0),
        }
