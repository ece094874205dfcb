"""Keyword store: listing, stats, manual edits and import upserts.

ERROR LOGGING REQUIREMENTS:
- Log method entry at DEBUG level with keyword_id
- Log validation failures at WARNING level with field names and rejected values
- Log state changes (upsert inserted/updated, delete) at INFO level
"""

import math
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.config import get_settings
from tubeflow.core.logging import get_logger
from tubeflow.models.question_keyword import MIN_OVERALL_SCORE, QuestionKeyword
from tubeflow.repositories.keyword import SORTABLE_COLUMNS, KeywordQuery, KeywordRepository
from tubeflow.services.errors import ConflictError, NotFoundError, ValidationError

logger = get_logger(__name__)

EDITABLE_FIELDS = (
    "keyword",
    "competition",
    "overall",
    "search_volume",
    "thirty_day_ago_searches",
    "timestamp",
    "number_of_words",
)


@dataclass
class Page:
    """One page of results plus pagination metadata."""

    items: list[Any]
    total: int
    page: int
    limit: int
    pages: int = field(init=False)

    def __post_init__(self) -> None:
        self.pages = math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, int]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages,
        }


def validate_paging(
    sort_by: str, sort_order: str, page: int, limit: int, sortable: tuple[str, ...]
) -> None:
    """Shared checks for list endpoints."""
    if sort_by not in sortable:
        raise ValidationError("sort_by", sort_by, f"Cannot sort by '{sort_by}'")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order", sort_order, "Sort order must be 'asc' or 'desc'")
    if page < 1:
        raise ValidationError("page", page, "Page must be at least 1")
    if not 1 <= limit <= 500:
        raise ValidationError("limit", limit, "Limit must be between 1 and 500")


class KeywordService:
    """Keyword operations within one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repo = KeywordRepository(session)

    async def list_keywords(self, query: KeywordQuery) -> Page:
        validate_paging(
            query.sort_by, query.sort_order, query.page, query.limit, SORTABLE_COLUMNS
        )
        items, total = await self.repo.list_page(query)
        return Page(items=items, total=total, page=query.page, limit=query.limit)

    async def keyword_stats(self, user_id: str | None = None) -> dict[str, Any]:
        raw = await self.repo.stats(user_id)
        return {
            "total": raw["total"],
            "avg_overall": round(raw["avg_overall"], 2),
            "avg_competition": round(raw["avg_competition"], 2),
            "avg_search_volume": round(raw["avg_search_volume"]),
            "high_score_count": raw["high_score_count"],
            "low_competition_count": raw["low_competition_count"],
        }

    async def get_keyword(self, keyword_id: str) -> QuestionKeyword:
        logger.debug("Fetching keyword", extra={"keyword_id": keyword_id})
        keyword = await self.repo.get_by_id(keyword_id)
        if keyword is None:
            raise NotFoundError("Keyword", keyword_id)
        return keyword

    async def update_keyword(self, keyword_id: str, values: dict[str, Any]) -> QuestionKeyword:
        """Manual edit. The stored row is untouched when validation fails."""
        keyword = await self.get_keyword(keyword_id)
        changes = {k: v for k, v in values.items() if k in EDITABLE_FIELDS}

        if "keyword" in changes:
            text = (changes["keyword"] or "").strip()
            if not text:
                logger.warning(
                    "Keyword update rejected: empty keyword",
                    extra={"keyword_id": keyword_id},
                )
                raise ValidationError("keyword", changes["keyword"], "Keyword is required")
            changes["keyword"] = text
            existing = await self.repo.get_by_keyword(text, keyword.user_id)
            if existing is not None and existing.id != keyword.id:
                logger.warning(
                    "Keyword update rejected: duplicate keyword",
                    extra={"keyword_id": keyword_id, "existing_id": existing.id},
                )
                raise ConflictError(f"Keyword '{text}' already exists")

        if "overall" in changes:
            overall = changes["overall"]
            if overall is None or overall <= MIN_OVERALL_SCORE:
                logger.warning(
                    "Keyword update rejected: overall too low",
                    extra={"keyword_id": keyword_id, "overall": overall},
                )
                raise ValidationError(
                    "overall",
                    overall,
                    f"Overall score must be greater than {MIN_OVERALL_SCORE}",
                )

        updated = await self.repo.update(keyword, changes)
        logger.info(
            "Keyword updated",
            extra={"keyword_id": keyword_id, "fields": sorted(changes)},
        )
        return updated

    async def delete_keyword(self, keyword_id: str) -> None:
        if not await self.repo.delete(keyword_id):
            raise NotFoundError("Keyword", keyword_id)
        logger.info("Keyword deleted", extra={"keyword_id": keyword_id})

    async def upsert_keyword(
        self, fields: dict[str, Any], user_id: str | None = None
    ) -> str:
        """Insert or update in place on (keyword, user_id).

        Returns "inserted", "updated" or "skipped". Rows without a keyword or
        with overall <= 50 are skipped.
        """
        owner = user_id or get_settings().default_user_id
        text = str(fields.get("keyword") or "").strip()
        overall = fields.get("overall")
        if not text or overall is None or overall <= MIN_OVERALL_SCORE:
            return "skipped"

        metrics = {k: fields[k] for k in EDITABLE_FIELDS if k in fields and k != "keyword"}
        existing = await self.repo.get_by_keyword(text, owner)
        if existing is not None:
            await self.repo.update(existing, metrics)
            logger.debug("Keyword updated in place", extra={"keyword_id": existing.id})
            return "updated"

        created = await self.repo.create(keyword=text, user_id=owner, **metrics)
        logger.debug("Keyword inserted", extra={"keyword_id": created.id})
        return "inserted"
