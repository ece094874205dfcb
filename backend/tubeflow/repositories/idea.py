"""IdeaRepository: persistence for Idea entities."""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.logging import db_logger, get_logger
from tubeflow.models.idea import Idea

logger = get_logger(__name__)

SORTABLE_COLUMNS = (
    "title",
    "competition",
    "overall",
    "search_volume",
    "created_at",
    "updated_at",
)


@dataclass
class IdeaQuery:
    """Filter, sort and pagination options for listing ideas."""

    user_id: str | None = None
    search: str | None = None
    converted_to_topic: bool | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"
    page: int = 1
    limit: int = 50


class IdeaRepository:
    """Repository for Idea CRUD operations."""

    TABLE_NAME = "ideas"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, **fields: Any) -> Idea:
        try:
            idea = Idea(**fields)
            self.session.add(idea)
            await self.session.flush()
            await self.session.refresh(idea)
            logger.debug("Idea created", extra={"idea_id": idea.id})
            return idea
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Creating idea {fields.get('title')!r}"
            )
            raise

    async def get_by_id(self, idea_id: str, refresh: bool = False) -> Idea | None:
        stmt = select(Idea).where(Idea.id == idea_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update(self, idea: Idea, values: dict[str, Any]) -> Idea:
        for field, value in values.items():
            setattr(idea, field, value)
        try:
            await self.session.flush()
            await self.session.refresh(idea)
            return idea
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Updating idea id={idea.id}"
            )
            raise

    async def mark_converted(self, idea_id: str) -> bool:
        """Set the converted latch; False if it was already set."""
        result = await self.session.execute(
            update(Idea)
            .where(Idea.id == idea_id, Idea.converted_to_topic.is_(False))
            .values(converted_to_topic=True)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def delete(self, idea_id: str) -> bool:
        try:
            result = await self.session.execute(
                delete(Idea)
                .where(Idea.id == idea_id)
                .execution_options(synchronize_session=False)
            )
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Deleting idea id={idea_id}"
            )
            raise

    async def list_page(self, query: IdeaQuery) -> tuple[list[Idea], int]:
        conditions = []
        if query.user_id is not None:
            conditions.append(Idea.user_id == query.user_id)
        if query.search:
            conditions.append(
                func.lower(Idea.title).contains(query.search.lower(), autoescape=True)
            )
        if query.converted_to_topic is not None:
            conditions.append(Idea.converted_to_topic.is_(query.converted_to_topic))
        base = select(Idea).where(*conditions)

        sort_column = getattr(Idea, query.sort_by)
        ordering = sort_column.asc() if query.sort_order == "asc" else sort_column.desc()

        total = (
            await self.session.execute(select(func.count()).select_from(base.subquery()))
        ).scalar_one()
        result = await self.session.execute(
            base.order_by(ordering, Idea.id)
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
        )
        return list(result.scalars().all()), total

    async def stats(self, user_id: str | None = None) -> dict[str, int]:
        stmt = select(
            func.count(Idea.id),
            func.sum(case((Idea.converted_to_topic.is_(True), 1), else_=0)),
        )
        if user_id is not None:
            stmt = stmt.where(Idea.user_id == user_id)
        row = (await self.session.execute(stmt)).one()
        return {"total_ideas": row[0] or 0, "converted_count": int(row[1] or 0)}
