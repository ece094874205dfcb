"""Topics API endpoints.

Topic lifecycle, from creation through script, title, thumbnail and extra
assets to editing and upload:
- POST   /api/v1/topics                             - Create a topic
- GET    /api/v1/topics                             - List topics, newest first
- GET    /api/v1/topics/stats/status                - Counts per status and level
- GET    /api/v1/topics/{topic_id}                  - Get a topic
- DELETE /api/v1/topics/{topic_id}                  - Delete a topic
- POST   /api/v1/topics/{topic_id}/regenerate       - Discard and regenerate the script
- PUT    /api/v1/topics/{topic_id}/script           - Replace the script by hand
- POST   /api/v1/topics/{topic_id}/generate-titles
- POST   /api/v1/topics/{topic_id}/select-title
- PUT    /api/v1/topics/{topic_id}/update-title
- POST   /api/v1/topics/{topic_id}/generate-thumbnails
- POST   /api/v1/topics/{topic_id}/select-thumbnail
- POST   /api/v1/topics/{topic_id}/generate-extra-assets
- POST   /api/v1/topics/{topic_id}/mark-editing
- POST   /api/v1/topics/{topic_id}/mark-uploaded

Service errors are rendered by the application exception handlers.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.database import get_session
from tubeflow.core.logging import get_logger
from tubeflow.schemas.common import Envelope, ok
from tubeflow.schemas.topic import (
    ScriptUpdate,
    ThumbnailSelection,
    TitleSelection,
    TopicCreate,
    TopicResponse,
    TopicStatusStats,
)
from tubeflow.services.asset_generation import AssetGenerator, get_asset_generator
from tubeflow.services.generation_poller import GenerationPoller, get_generation_poller
from tubeflow.services.topic import TopicService

logger = get_logger(__name__)

router = APIRouter()


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


def _topic(topic: Any) -> dict[str, Any]:
    return TopicResponse.model_validate(topic).model_dump(mode="json")


@router.post(
    "",
    response_model=Envelope[TopicResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a topic",
)
async def create_topic(
    request: Request,
    data: TopicCreate,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    logger.debug(
        "Create topic request",
        extra={"request_id": _get_request_id(request), "topic_name": data.topic_name},
    )
    topic = await TopicService(session).create_topic(
        data.topic_name, data.description, data.user_id
    )
    return ok(_topic(topic), "Topic created successfully")


@router.get("", response_model=Envelope[list[TopicResponse]], summary="List topics")
async def list_topics(
    user_id: str | None = Query(None, description="Only topics of this user"),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    topics = await TopicService(session).list_topics(user_id)
    return ok([_topic(t) for t in topics])


@router.get(
    "/stats/status",
    response_model=Envelope[TopicStatusStats],
    summary="Topic counts per status and level",
)
async def topic_status_stats(
    user_id: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return ok(await TopicService(session).status_stats(user_id))


@router.get("/{topic_id}", response_model=Envelope[TopicResponse], summary="Get a topic")
async def get_topic(
    topic_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return ok(_topic(await TopicService(session).get_topic(topic_id)))


@router.delete("/{topic_id}", response_model=Envelope[None], summary="Delete a topic")
async def delete_topic(
    request: Request,
    topic_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    logger.debug(
        "Delete topic request",
        extra={"request_id": _get_request_id(request), "topic_id": topic_id},
    )
    await TopicService(session).delete_topic(topic_id)
    return ok(None, "Topic deleted successfully")


@router.post(
    "/{topic_id}/regenerate",
    response_model=Envelope[TopicResponse],
    summary="Discard the narration script and generate a new one",
)
async def regenerate_script(
    topic_id: str,
    session: AsyncSession = Depends(get_session),
    poller: GenerationPoller = Depends(get_generation_poller),
) -> dict[str, Any]:
    topic = await TopicService(session, poller=poller).regenerate_script(topic_id)
    return ok(_topic(topic), "Script regeneration finished")


@router.put(
    "/{topic_id}/script",
    response_model=Envelope[TopicResponse],
    summary="Replace the narration script",
)
async def update_script(
    topic_id: str,
    data: ScriptUpdate,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    topic = await TopicService(session).update_script(topic_id, data.narration_script)
    return ok(_topic(topic), "Script updated successfully")


@router.post("/{topic_id}/generate-titles", response_model=Envelope[TopicResponse])
async def generate_titles(
    topic_id: str,
    session: AsyncSession = Depends(get_session),
    assets: AssetGenerator = Depends(get_asset_generator),
) -> dict[str, Any]:
    topic = await TopicService(session, assets=assets).generate_titles(topic_id)
    return ok(_topic(topic), "Titles generated successfully")


@router.post("/{topic_id}/select-title", response_model=Envelope[TopicResponse])
async def select_title(
    topic_id: str,
    data: TitleSelection,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    topic = await TopicService(session).select_title(topic_id, data.title)
    return ok(_topic(topic), "Title selected successfully")


@router.put("/{topic_id}/update-title", response_model=Envelope[TopicResponse])
async def update_title(
    topic_id: str,
    data: TitleSelection,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    topic = await TopicService(session).update_title(topic_id, data.title)
    return ok(_topic(topic), "Title updated successfully")


@router.post("/{topic_id}/generate-thumbnails", response_model=Envelope[TopicResponse])
async def generate_thumbnails(
    topic_id: str,
    session: AsyncSession = Depends(get_session),
    assets: AssetGenerator = Depends(get_asset_generator),
) -> dict[str, Any]:
    topic = await TopicService(session, assets=assets).generate_thumbnails(topic_id)
    return ok(_topic(topic), "Thumbnails generated successfully")


@router.post("/{topic_id}/select-thumbnail", response_model=Envelope[TopicResponse])
async def select_thumbnail(
    topic_id: str,
    data: ThumbnailSelection,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    topic = await TopicService(session).select_thumbnail(topic_id, data.thumbnail_url)
    return ok(_topic(topic), "Thumbnail selected successfully")


@router.post("/{topic_id}/generate-extra-assets", response_model=Envelope[TopicResponse])
async def generate_extra_assets(
    topic_id: str,
    session: AsyncSession = Depends(get_session),
    assets: AssetGenerator = Depends(get_asset_generator),
) -> dict[str, Any]:
    topic = await TopicService(session, assets=assets).generate_extra_assets(topic_id)
    return ok(_topic(topic), "Extra assets generated successfully")


@router.post("/{topic_id}/mark-editing", response_model=Envelope[TopicResponse])
async def mark_as_editing(
    topic_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    topic = await TopicService(session).mark_as_editing(topic_id)
    return ok(_topic(topic), "Topic moved to editing")


@router.post("/{topic_id}/mark-uploaded", response_model=Envelope[TopicResponse])
async def mark_as_uploaded(
    topic_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    topic = await TopicService(session).mark_as_uploaded(topic_id)
    return ok(_topic(topic), "Topic marked as uploaded")
