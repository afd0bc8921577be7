"""Request and response models for the HTTP API."""

from typing import Any, Dict, List, Optional

from components.knowledge_service.models import (
    AnswerSource,
    CleanupResult,
    SearchResult,
    StorageInfo,
    SupportedFormat,
)
from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    query: str = Field(..., description="Natural-language query")
    k: Optional[int] = Field(default=None, description="Maximum number of results")
    score_threshold: Optional[float] = Field(
        default=None, description="Minimum similarity score"
    )


class SearchResponse(BaseModel):
    results: List[SearchResult]
    query: str
    count: int


class AnswerRequest(BaseModel):
    query: str
    retrieved_chunks: List[SearchResult] = Field(default_factory=list)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)


class AnswerResponse(BaseModel):
    answer: str
    sources: List[AnswerSource]
    context_used: str
    num_sources: int
    llm_type: str
    model_used: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UploadResponse(BaseModel):
    success: bool = True
    message: str
    document: Dict[str, Any]


class FormatsResponse(BaseModel):
    formats: List[SupportedFormat]


class StorageResponse(StorageInfo):
    success: bool = True


class CleanupResponse(CleanupResult):
    success: bool = True


class ModelInfoResponse(BaseModel):
    provider: str
    model: str
    supports_streaming: bool
    max_tokens: int
    cache: Dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
