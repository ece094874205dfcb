"""Keywords API endpoints.

Import:
- POST /api/v1/keywords/upload                  - Upload spreadsheets (multipart files[])
- GET  /api/v1/keywords/local/list              - List spreadsheets in a server directory
- POST /api/v1/keywords/local/import-directory  - Import every spreadsheet in a directory
- POST /api/v1/keywords/local/import-file       - Import one server-local spreadsheet

Store:
- GET    /api/v1/keywords                        - Filter, sort and paginate
- GET    /api/v1/keywords/stats
- GET    /api/v1/keywords/{keyword_id}
- PUT    /api/v1/keywords/{keyword_id}
- DELETE /api/v1/keywords/{keyword_id}

Conversions:
- POST /api/v1/keywords/{keyword_id}/add-to-title
- POST /api/v1/keywords/{keyword_id}/remove-from-title
- POST /api/v1/keywords/{keyword_id}/add-to-ideas
"""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.database import get_session
from tubeflow.core.logging import get_logger
from tubeflow.repositories.keyword import KeywordQuery
from tubeflow.schemas.common import Envelope, PaginatedEnvelope, ok, paginated
from tubeflow.schemas.idea import IdeaResponse
from tubeflow.schemas.keyword import (
    DirectoryImportRequest,
    FileImportRequest,
    KeywordResponse,
    KeywordStats,
    KeywordUpdate,
)
from tubeflow.schemas.topic import TopicResponse
from tubeflow.services.conversion import ConversionService
from tubeflow.services.keyword import KeywordService
from tubeflow.services.keyword_import import KeywordImportService

logger = get_logger(__name__)

router = APIRouter()


def _keyword(keyword: Any) -> dict[str, Any]:
    return KeywordResponse.model_validate(keyword).model_dump(mode="json")


@router.post("/upload", summary="Upload keyword spreadsheets")
async def upload_keywords(
    request: Request,
    files: list[UploadFile] = File(..., description="Up to 20 .xlsx/.xls/.csv files"),
    user_id: str | None = Form(None),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    logger.info(
        "Keyword upload request",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "file_count": len(files),
            "file_names": [f.filename for f in files],
        },
    )
    contents = [(f.filename or "", await f.read()) for f in files]
    stats = await KeywordImportService(session).import_uploads(contents, user_id)
    return ok(stats.to_dict(), "Keywords uploaded successfully")


@router.get("/local/list", summary="List spreadsheets in a server directory")
async def list_local_files(
    directory_path: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return ok(KeywordImportService(session).list_directory(directory_path))


@router.post("/local/import-directory", summary="Import a server directory")
async def import_local_directory(
    data: DirectoryImportRequest,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    stats = await KeywordImportService(session).import_directory(
        data.directory_path, data.user_id
    )
    if stats.files_processed == 0:
        return ok(stats.to_dict(), f"No spreadsheets found in {data.directory_path}")
    return ok(
        stats.to_dict(),
        f"Processed {stats.files_processed} file(s) from {data.directory_path}",
    )


@router.post("/local/import-file", summary="Import one server-local spreadsheet")
async def import_local_file(
    data: FileImportRequest,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    result = await KeywordImportService(session).import_file(data.file_path, data.user_id)
    return ok(asdict(result), f"Imported {result.file_name}")


@router.get("", response_model=PaginatedEnvelope[list[KeywordResponse]], summary="List keywords")
async def list_keywords(
    user_id: str | None = Query(None),
    search: str | None = Query(None, description="Case-insensitive substring"),
    min_overall: float | None = Query(None),
    max_overall: float | None = Query(None),
    min_search_volume: int | None = Query(None),
    max_search_volume: int | None = Query(None),
    min_competition: float | None = Query(None),
    max_competition: float | None = Query(None),
    added_to_title: bool | None = Query(None),
    sort_by: str = Query("overall"),
    sort_order: str = Query("desc"),
    page: int = Query(1),
    limit: int = Query(50),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    query = KeywordQuery(
        user_id=user_id,
        search=search,
        min_overall=min_overall,
        max_overall=max_overall,
        min_search_volume=min_search_volume,
        max_search_volume=max_search_volume,
        min_competition=min_competition,
        max_competition=max_competition,
        added_to_title=added_to_title,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    result = await KeywordService(session).list_keywords(query)
    return paginated([_keyword(k) for k in result.items], result.pagination())


@router.get("/stats", response_model=Envelope[KeywordStats], summary="Keyword statistics")
async def keyword_stats(
    user_id: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return ok(await KeywordService(session).keyword_stats(user_id))


@router.get("/{keyword_id}", response_model=Envelope[KeywordResponse])
async def get_keyword(
    keyword_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return ok(_keyword(await KeywordService(session).get_keyword(keyword_id)))


@router.put("/{keyword_id}", response_model=Envelope[KeywordResponse])
async def update_keyword(
    keyword_id: str,
    data: KeywordUpdate,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    keyword = await KeywordService(session).update_keyword(
        keyword_id, data.model_dump(exclude_unset=True)
    )
    return ok(_keyword(keyword), "Keyword updated successfully")


@router.delete("/{keyword_id}", response_model=Envelope[None])
async def delete_keyword(
    keyword_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    await KeywordService(session).delete_keyword(keyword_id)
    return ok(None, "Keyword deleted successfully")


@router.post("/{keyword_id}/add-to-title", response_model=Envelope[TopicResponse])
async def add_keyword_to_title(
    keyword_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    topic = await ConversionService(session).add_keyword_to_title(keyword_id)
    return ok(
        TopicResponse.model_validate(topic).model_dump(mode="json"),
        "Topic created from keyword",
    )


@router.post("/{keyword_id}/remove-from-title")
async def remove_keyword_from_title(
    keyword_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    removal = await ConversionService(session).remove_keyword_from_title(keyword_id)
    return ok(
        {
            "keyword": _keyword(removal.keyword),
            "deleted_topic_ids": removal.deleted_topic_ids,
        },
        "Keyword removed from title",
    )


@router.post("/{keyword_id}/add-to-ideas", response_model=Envelope[IdeaResponse])
async def add_keyword_to_ideas(
    keyword_id: str,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    idea = await ConversionService(session).add_keyword_to_ideas(keyword_id)
    return ok(
        IdeaResponse.model_validate(idea).model_dump(mode="json"),
        "Keyword added to ideas and removed from keywords",
    )
