from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ragjobs.db.models import ProcessType


class StartProcessRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: ProcessType
    action: str = Field(min_length=1, max_length=64)
    payload: dict[str, Any] = Field(default_factory=dict)


class ArticleIntelligenceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(min_length=1)
    model: str = Field(min_length=1, max_length=128)
    file_ids: list[str] = Field(min_length=1)
    max_tokens: int | None = Field(default=None, ge=1)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)


class StructuredSummaryRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = ""
    language: str = Field(min_length=1, max_length=32)
    model: str = Field(min_length=1, max_length=128)
    file_ids: list[str] = Field(min_length=1)
    model_params: dict[str, Any] = Field(default_factory=dict)


class ReviewArticleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    summary_ids: list[str] = Field(min_length=1)
    specific_instructions: str = ""
    language: str = Field(min_length=1, max_length=32)
    model: str = Field(min_length=1, max_length=128)
    model_params: dict[str, Any] = Field(default_factory=dict)


class BatchSummaryRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    file_ids: list[str] = Field(min_length=1)
    language: str = Field(min_length=1, max_length=32)
    model: str = Field(min_length=1, max_length=128)
    model_params: dict[str, Any] = Field(default_factory=dict)


class ProcessResponse(BaseModel):
    id: str
    type: str
    status: str
    action: str
    payload: dict[str, Any]
    message: str | None
    result: Any | None
    error: str | None
    timestamp: datetime | None
    last_updated: datetime | None
    completed_at: datetime | None


class ProcessListResponse(BaseModel):
    items: list[ProcessResponse]


class ClearProcessesResponse(BaseModel):
    terminated: int


class ResultListResponse(BaseModel):
    type: str
    items: list[dict[str, Any]]
