"""Ideas API endpoints.

- POST   /api/v1/ideas
- GET    /api/v1/ideas                              - Search, sort and paginate
- GET    /api/v1/ideas/stats
- GET    /api/v1/ideas/{idea_id}
- PUT    /api/v1/ideas/{idea_id}                    - Edit title/description
- DELETE /api/v1/ideas/{idea_id}
- POST   /api/v1/ideas/{idea_id}/convert-to-topic   - Create a topic (once per idea)
- POST   /api/v1/ideas/{idea_id}/remove-from-ideas  - Restore the idea as a keyword
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.database import get_session
from tubeflow.core.logging import get_logger
from tubeflow.repositories.idea import IdeaQuery
from tubeflow.schemas.common import Envelope, PaginatedEnvelope, ok, paginated
from tubeflow.schemas.idea import (
    IdeaConvertRequest,
    IdeaCreate,
    IdeaResponse,
    IdeaStats,
    IdeaUpdate,
)
from tubeflow.schemas.keyword import KeywordResponse
from tubeflow.schemas.topic import TopicResponse
from tubeflow.services.conversion import ConversionService
from tubeflow.services.idea import METRIC_FIELDS, IdeaService

logger = get_logger(__name__)

router = APIRouter()


def _idea(idea: Any) -> dict[str, Any]:
    return IdeaResponse.model_validate(idea).model_dump(mode="json")


@router.post(
    "",
    response_model=Envelope[IdeaResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_idea(
    data: IdeaCreate,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    metrics = data.model_dump(include=set(METRIC_FIELDS), exclude_none=True)
    idea = await IdeaService(session).create_idea(
        data.title, data.description, data.user_id, metrics
    )
    return ok(_idea(idea), "Idea created successfully")


@router.get("", response_model=PaginatedEnvelope[list[IdeaResponse]])
async def list_ideas(
    user_id: str | None = Query(None),
    search: str | None = Query(None, description="Case-insensitive title substring"),
    converted_to_topic: bool | None = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    page: int = Query(1),
    limit: int = Query(50),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    query = IdeaQuery(
        user_id=user_id,
        search=search,
        converted_to_topic=converted_to_topic,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    result = await IdeaService(session).list_ideas(query)
    return paginated([_idea(i) for i in result.items], result.pagination())


@router.get("/stats", response_model=Envelope[IdeaStats])
async def idea_stats(
    user_id: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return ok(await IdeaService(session).idea_stats(user_id))


@router.get("/{idea_id}", response_model=Envelope[IdeaResponse])
async def get_idea(
    idea_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return ok(_idea(await IdeaService(session).get_idea(idea_id)))


@router.put("/{idea_id}", response_model=Envelope[IdeaResponse])
async def update_idea(
    idea_id: str,
    data: IdeaUpdate,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    idea = await IdeaService(session).update_idea(idea_id, data.title, data.description)
    return ok(_idea(idea), "Idea updated successfully")


@router.delete("/{idea_id}", response_model=Envelope[None])
async def delete_idea(
    idea_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    await IdeaService(session).delete_idea(idea_id)
    return ok(None, "Idea deleted successfully")


@router.post("/{idea_id}/convert-to-topic")
async def convert_idea_to_topic(
    idea_id: str,
    data: IdeaConvertRequest | None = None,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    overrides = data or IdeaConvertRequest()
    conversion = await ConversionService(session).convert_idea_to_topic(
        idea_id, overrides.topic_name, overrides.description
    )
    logger.debug(
        "Idea converted", extra={"idea_id": idea_id, "topic_id": conversion.topic.id}
    )
    return ok(
        {
            "idea": _idea(conversion.idea),
            "topic": TopicResponse.model_validate(conversion.topic).model_dump(mode="json"),
        },
        "Idea converted to topic successfully",
    )


@router.post("/{idea_id}/remove-from-ideas", response_model=Envelope[KeywordResponse])
async def remove_idea_to_keywords(
    idea_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    keyword = await ConversionService(session).remove_idea_to_keywords(idea_id)
    return ok(
        KeywordResponse.model_validate(keyword).model_dump(mode="json"),
        "Idea removed and keyword restored",
    )
