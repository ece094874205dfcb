"""Pydantic schemas for idea requests and responses."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class IdeaCreate(BaseModel):
    title: str = Field(..., max_length=500)
    description: str | None = None
    user_id: str | None = Field(None, max_length=255)
    competition: float | None = Field(None, ge=0, le=100)
    overall: float | None = None
    search_volume: int | None = Field(None, ge=0)
    thirty_day_ago_searches: int | None = Field(None, ge=0)
    number_of_words: int | None = Field(None, ge=1)


class IdeaUpdate(BaseModel):
    """Only title and description are editable."""

    title: str | None = Field(None, max_length=500)
    description: str | None = None


class IdeaConvertRequest(BaseModel):
    """Optional overrides for the created topic."""

    topic_name: str | None = Field(None, max_length=500)
    description: str | None = None


class IdeaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    competition: float
    overall: float
    search_volume: int
    thirty_day_ago_searches: int
    number_of_words: int
    converted_to_topic: bool
    user_id: str
    created_at: datetime
    updated_at: datetime


class IdeaStats(BaseModel):
    total_ideas: int
    converted_count: int
