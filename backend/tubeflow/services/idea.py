"""Idea store service."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.config import get_settings
from tubeflow.core.logging import get_logger
from tubeflow.models.idea import Idea
from tubeflow.repositories.idea import SORTABLE_COLUMNS, IdeaQuery, IdeaRepository
from tubeflow.services.errors import NotFoundError, ValidationError
from tubeflow.services.keyword import Page, validate_paging

logger = get_logger(__name__)

METRIC_FIELDS = (
    "competition",
    "overall",
    "search_volume",
    "thirty_day_ago_searches",
    "number_of_words",
)


def _title(value: str | None) -> str:
    title = (value or "").strip()
    if not title:
        logger.warning("Validation failed", extra={"field": "title"})
        raise ValidationError("title", value, "Title is required")
    return title


class IdeaService:
    """Idea CRUD, listing and stats within one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repo = IdeaRepository(session)

    async def create_idea(
        self,
        title: str | None,
        description: str | None = None,
        user_id: str | None = None,
        metrics: dict[str, Any] | None = None,
    ) -> Idea:
        carried = {k: v for k, v in (metrics or {}).items() if k in METRIC_FIELDS and v is not None}
        idea = await self.repo.create(
            title=_title(title),
            description=(description or "").strip(),
            user_id=user_id or get_settings().default_user_id,
            **carried,
        )
        logger.info("Idea created", extra={"idea_id": idea.id})
        return idea

    async def list_ideas(self, query: IdeaQuery) -> Page:
        validate_paging(
            query.sort_by, query.sort_order, query.page, query.limit, SORTABLE_COLUMNS
        )
        items, total = await self.repo.list_page(query)
        return Page(items=items, total=total, page=query.page, limit=query.limit)

    async def idea_stats(self, user_id: str | None = None) -> dict[str, int]:
        return await self.repo.stats(user_id)

    async def get_idea(self, idea_id: str) -> Idea:
        idea = await self.repo.get_by_id(idea_id, refresh=True)
        if idea is None:
            raise NotFoundError("Idea", idea_id)
        return idea

    async def update_idea(
        self, idea_id: str, title: str | None = None, description: str | None = None
    ) -> Idea:
        """Only title and description are editable."""
        idea = await self.get_idea(idea_id)
        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = _title(title)
        if description is not None:
            changes["description"] = description.strip()
        if not changes:
            return idea
        updated = await self.repo.update(idea, changes)
        logger.info("Idea updated", extra={"idea_id": idea_id, "fields": sorted(changes)})
        return updated

    async def delete_idea(self, idea_id: str) -> None:
        if not await self.repo.delete(idea_id):
            raise NotFoundError("Idea", idea_id)
        logger.info("Idea deleted", extra={"idea_id": idea_id})
