"""Pydantic schemas for Topic requests and responses."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TopicCreate(BaseModel):
    """Schema for creating a topic."""

    topic_name: str = Field(..., max_length=500, description="Video topic")
    description: str | None = Field(None, description="Extra context for generation")
    user_id: str | None = Field(None, max_length=255)


class ScriptUpdate(BaseModel):
    narration_script: str = Field(..., description="Replacement narration script")


class TitleSelection(BaseModel):
    title: str = Field(..., max_length=500)


class ThumbnailSelection(BaseModel):
    thumbnail_url: str = Field(..., description="URL of one of the generated thumbnails")


class TopicResponse(BaseModel):
    """Full topic document."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    topic_name: str
    description: str
    narration_script: str | None
    narration_script_variations: list[dict[str, Any]]
    status: str
    level: str
    generated_titles: list[str]
    title_prompt_variations: list[dict[str, Any]]
    selected_title: str | None
    generated_thumbnails: list[dict[str, Any]]
    thumbnail_prompt_results: list[dict[str, Any]]
    selected_thumbnail: str | None
    seo_description: str | None
    tags: list[str]
    timestamps: list[dict[str, Any]]
    audio_url: str | None
    error_message: str | None
    processed_at: datetime | None
    user_id: str
    source_keyword_id: str | None
    attempt_count: int
    created_at: datetime
    updated_at: datetime


class TopicStatusStats(BaseModel):
    status: dict[str, int]
    level: dict[str, int]
    total: int


class ProcessNowResponse(BaseModel):
    trigger: str
    runner_id: str
    candidates: int
    claimed: int
    completed: int
    failed: int
    skipped: int
    reclaimed: int
    topic_ids: list[str]
    duration_ms: float
