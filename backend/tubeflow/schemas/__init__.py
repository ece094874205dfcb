"""Pydantic schemas for API request/response validation."""

from tubeflow.schemas.common import Envelope, ErrorEnvelope, PaginatedEnvelope, Pagination
from tubeflow.schemas.idea import IdeaConvertRequest, IdeaCreate, IdeaResponse, IdeaStats, IdeaUpdate
from tubeflow.schemas.keyword import (
    DirectoryImportRequest,
    FileImportRequest,
    KeywordResponse,
    KeywordStats,
    KeywordUpdate,
)
from tubeflow.schemas.topic import (
    ProcessNowResponse,
    ScriptUpdate,
    ThumbnailSelection,
    TitleSelection,
    TopicCreate,
    TopicResponse,
    TopicStatusStats,
)

__all__ = [
    "DirectoryImportRequest",
    "Envelope",
    "ErrorEnvelope",
    "FileImportRequest",
    "IdeaConvertRequest",
    "IdeaCreate",
    "IdeaResponse",
    "IdeaStats",
    "IdeaUpdate",
    "KeywordResponse",
    "KeywordStats",
    "KeywordUpdate",
    "PaginatedEnvelope",
    "Pagination",
    "ProcessNowResponse",
    "ScriptUpdate",
    "ThumbnailSelection",
    "TitleSelection",
    "TopicCreate",
    "TopicResponse",
    "TopicStatusStats",
]
