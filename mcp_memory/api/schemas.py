"""
Request/response models for the memory HTTP API.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

from ..core.config import BATCH_WRITE_MAX
from ..core.schema import MemoryTier


def _not_blank(v: str, name: str) -> str:
    if not v.strip():
        raise ValueError(f'{name} cannot be empty')
    return v


class WriteRequest(BaseModel):
    content: str
    tier: MemoryTier
    importance: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    source: Optional[str] = None
    duplicate_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)

    @field_validator('content')
    @classmethod
    def content_must_not_be_empty(cls, v):
        return _not_blank(v, 'content')


class WriteResponse(BaseModel):
    id: str


class BatchItem(BaseModel):
    content: str
    tier: MemoryTier
    importance: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    source: Optional[str] = None

    @field_validator('content')
    @classmethod
    def content_must_not_be_empty(cls, v):
        return _not_blank(v, 'content')


class BatchWriteRequest(BaseModel):
    entries: List[BatchItem] = Field(min_length=1, max_length=BATCH_WRITE_MAX)


class BatchWriteResponse(BaseModel):
    ids: List[str]


class SearchRequest(BaseModel):
    query: str
    tier: MemoryTier
    top_k: int = Field(default=10, ge=1, le=100)
    search_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    recency_weight: Optional[float] = Field(default=None, ge=0.0)
    recency_half_life_ms: Optional[int] = Field(default=None, gt=0)

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        return _not_blank(v, 'query')


class SearchResult(BaseModel):
    id: str
    content: str
    score: float


class SearchResponse(BaseModel):
    results: List[SearchResult]


class UpdateRequest(BaseModel):
    content: str

    @field_validator('content')
    @classmethod
    def content_must_not_be_empty(cls, v):
        return _not_blank(v, 'content')


class SuccessResponse(BaseModel):
    success: bool


class DeleteResponse(BaseModel):
    deleted: bool


class ClearRequest(BaseModel):
    tier: Optional[MemoryTier] = None
    confirm: bool = False


class ClearResponse(BaseModel):
    removed: int


class StatsResponse(BaseModel):
    short: int
    long: int
    total: int


class MemoryResponse(BaseModel):
    id: str
    tier: MemoryTier
    content: str
    importance: float
    source: Optional[str]
    created_at: int
    updated_at: Optional[int]


class MemoryListResponse(BaseModel):
    memories: List[MemoryResponse]


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    vector_store: str


class ErrorResponse(BaseModel):
    error_type: str
    message: str
