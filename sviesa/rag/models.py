"""
RAG Data Models
===============

Dataclasses for the corpus and for ranked search results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any


class SourceType(str, Enum):
    """Corpus source labels. BIBLE is the primary canonical source."""
    BIBLE = "Biblija"
    CATECHISM = "Katekizmas"
    ENCYCLICAL = "Enciklika"
    OTHER = "Kita"


PRIMARY_SOURCE = SourceType.BIBLE.value
SECONDARY_SOURCE = SourceType.CATECHISM.value


@dataclass
class Chunk:
    """A retrievable fragment of the corpus. Never mutated after creation."""
    id: str
    source: str
    book_or_section: str
    chapter_or_ref: str
    content: str
    tags: List[str] = field(default_factory=list)
    embedding: Optional[List[float]] = None

    def __post_init__(self):
        if not self.content or not self.content.strip():
            raise ValueError(f"Chunk {self.id} has empty content")

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "book_or_section": self.book_or_section,
            "chapter_or_ref": self.chapter_or_ref,
            "content": self.content,
            "tags": list(self.tags),
            "embedding": self.embedding,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Chunk":
        return cls(
            id=row["id"],
            source=row["source"],
            book_or_section=row["book_or_section"],
            chapter_or_ref=row["chapter_or_ref"],
            content=row["content"],
            tags=list(row.get("tags") or []),
            embedding=row.get("embedding"),
        )


@dataclass
class SearchFilters:
    """Optional pre-filters applied before scoring."""
    sources: Optional[List[str]] = None
    books: Optional[List[str]] = None
    content_types: Optional[List[str]] = None

    def matches(self, chunk: Chunk) -> bool:
        source = chunk.source.lower()
        if self.sources and not any(s.lower() in source for s in self.sources):
            return False
        if self.books:
            book = chunk.book_or_section.lower()
            if not any(b.lower() in book for b in self.books):
                return False
        if self.content_types:
            upper = chunk.source.upper()
            if not any(t.upper() in upper for t in self.content_types):
                return False
        return True


@dataclass
class SearchOptions:
    """Options for RelevanceScorer.search."""
    fuzzy_match: bool = True
    query_embedding: Optional[List[float]] = None
    limit: int = 20
    offset: int = 0
    include_context: bool = True
    highlight_matches: bool = True
    filters: Optional[SearchFilters] = None


@dataclass
class SearchContext:
    """Text around the first exact match (or head/tail of the content)."""
    before: str = ""
    after: str = ""


@dataclass
class ResultMetadata:
    word_count: int
    tags: List[str] = field(default_factory=list)
    verse_range: Optional[str] = None


@dataclass
class RankedResult:
    """A scored search hit with highlighted snippets."""
    id: str
    source: str
    book_or_section: str
    chapter_or_ref: str
    content: str
    score: float
    highlights: List[str]
    context: SearchContext
    metadata: ResultMetadata


@dataclass
class CorpusStats:
    """Chunk store statistics."""
    total_chunks: int
    total_documents: int
    total_words: int
    documents: List[str]
    sources: Dict[str, Dict[str, int]] = field(default_factory=dict)
    persisted: bool = False
