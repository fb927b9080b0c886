"""
Sviesa API Models
=================

Pydantic models for API request/response serialization.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    version: str
    provider: str
    corpus_chunks: int
    corpus_persisted: bool
    response_cache_backend: str
    shared_memory: str


# =============================================================================
# SEARCH
# =============================================================================

class SearchFiltersModel(BaseModel):
    sources: Optional[List[str]] = None
    books: Optional[List[str]] = None
    content_types: Optional[List[str]] = None


class SearchRequest(BaseModel):
    """Corpus search request."""
    query: str = Field(..., min_length=1, description="Search query")
    filters: Optional[SearchFiltersModel] = None
    fuzzy_match: bool = True
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)


class SearchResultModel(BaseModel):
    id: str
    source: str
    book_or_section: str
    chapter_or_ref: str
    content: str
    score: float
    highlights: List[str]
    context_before: str
    context_after: str
    word_count: int
    tags: List[str]
    verse_range: Optional[str] = None


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResultModel]
    suggestions: List[str] = Field(default_factory=list)


# =============================================================================
# ASK
# =============================================================================

class ChatTurnModel(BaseModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    text: str


class AskRequest(BaseModel):
    """Question with optional history and image (data URL or bare base64)."""
    message: str = Field(..., min_length=1)
    history: List[ChatTurnModel] = Field(default_factory=list)
    image: Optional[str] = None
    image_mime_type: str = "image/jpeg"


# =============================================================================
# CORPUS
# =============================================================================

class IngestRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Document name (book or section)")
    content: str = Field(..., min_length=1)
    type: str = Field("Kita", description="Biblija|Katekizmas|Enciklika|Kita")


class IngestResponse(BaseModel):
    name: str
    chunks_created: int
    total_chunks: int


class CorpusStatsResponse(BaseModel):
    total_chunks: int
    total_documents: int
    total_words: int
    documents: List[str]
    sources: Dict[str, Dict[str, int]]
    persisted: bool


class ResetResponse(BaseModel):
    status: str
    total_chunks: int
