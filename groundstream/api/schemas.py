"""
Request and response models for the HTTP API.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any


class MemoryStoreRequest(BaseModel):
    namespace: str
    text: str

    @field_validator('namespace')
    @classmethod
    def namespace_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('namespace cannot be empty')
        return v

    @field_validator('text')
    @classmethod
    def text_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('text cannot be empty')
        return v

class MemoryStoreResponse(BaseModel):
    id: int

class MemoryQueryRequest(BaseModel):
    text: str
    top_k: int = 5

    @field_validator('text')
    @classmethod
    def text_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('text cannot be empty')
        return v

    @field_validator('top_k')
    @classmethod
    def top_k_must_be_in_range(cls, v):
        if v < 0 or v > 100:
            raise ValueError('top_k must be between 0 and 100')
        return v

class MemoryRecordResponse(BaseModel):
    id: int
    namespace: str
    text: str
    created_at: int

class MemoryHitResponse(MemoryRecordResponse):
    score: float

class MemoryQueryResponse(BaseModel):
    hits: List[MemoryHitResponse]


# Prompt may be omitted here; emptiness is reported as a 400 by the orchestrator
class StreamPromptRequest(BaseModel):
    prompt: Optional[str] = None
    model: Optional[str] = None

class PromptRequest(BaseModel):
    prompt: Optional[str] = None
    model: Optional[str] = None

class SourceResponse(BaseModel):
    title: str
    url: str
    snippet: str = ""
    source_domain: str = ""
    rank: Optional[int] = None
    score: int = 0

class PromptResponse(BaseModel):
    text: str
    sources: List[SourceResponse]

class SearchResponse(BaseModel):
    results: List[SourceResponse]

class VerifyRequest(BaseModel):
    claim: Optional[str] = None
    queries: Optional[List[str]] = None
    model: Optional[str] = None

class VerifyResponse(BaseModel):
    result: Dict[str, Any]
    evidence: List[SourceResponse]

class HealthResponse(BaseModel):
    ok: bool
    db_health: bool
    model_available: bool
    memory_count: int
    version: str

class AdminMemoriesResponse(BaseModel):
    memories: List[MemoryRecordResponse]

class AdminStatsResponse(BaseModel):
    uptime: float
    memoryCount: int
    sampleMem: List[MemoryRecordResponse]
