"""Pydantic schemas for keyword requests and responses."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class KeywordUpdate(BaseModel):
    """Manual edit; only provided fields change."""

    keyword: str | None = Field(None, max_length=500)
    competition: float | None = Field(None, ge=0, le=100)
    overall: float | None = None
    search_volume: int | None = Field(None, ge=0)
    thirty_day_ago_searches: int | None = Field(None, ge=0)
    timestamp: int | None = None
    number_of_words: int | None = Field(None, ge=1)


class KeywordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    keyword: str
    competition: float
    overall: float
    search_volume: int
    thirty_day_ago_searches: int
    timestamp: int | None
    number_of_words: int
    added_to_title: bool
    user_id: str
    created_at: datetime
    updated_at: datetime


class KeywordStats(BaseModel):
    total: int
    avg_overall: float
    avg_competition: float
    avg_search_volume: int
    high_score_count: int
    low_competition_count: int


class DirectoryImportRequest(BaseModel):
    directory_path: str = Field(..., min_length=1)
    user_id: str | None = None


class FileImportRequest(BaseModel):
    file_path: str = Field(..., min_length=1)
    user_id: str | None = None
