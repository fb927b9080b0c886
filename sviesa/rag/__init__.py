"""
Sviesa RAG Module
=================

Retrieval over the Catholic source corpus.

Sources:
- Biblija: canonical scripture, the primary source
- Katekizmas: Catechism of the Catholic Church paragraphs
- Enciklika / Kita: further documents ingested at runtime

Architecture:
- In-memory chunk list, optionally mirrored to PostgreSQL (rag_chunks)
- Heuristic lexical scoring with a cosine-similarity boost
- Full scan per query; the corpus is small
"""

from .chunker import RAGChunker, split_document
from .embedder import RAGEmbedder
from .models import (
    PRIMARY_SOURCE,
    SECONDARY_SOURCE,
    Chunk,
    CorpusStats,
    RankedResult,
    SearchFilters,
    SearchOptions,
    SourceType,
)
from .scorer import RelevanceScorer, ScoringWeights, autocomplete, suggest_related_queries
from .store import ChunkStore

__all__ = [
    "RAGChunker",
    "RAGEmbedder",
    "RelevanceScorer",
    "ScoringWeights",
    "ChunkStore",
    "Chunk",
    "CorpusStats",
    "RankedResult",
    "SearchFilters",
    "SearchOptions",
    "SourceType",
    "PRIMARY_SOURCE",
    "SECONDARY_SOURCE",
    "autocomplete",
    "split_document",
    "suggest_related_queries",
]
