"""
RAG Chunker
===========

Splits raw documents into retrievable chunks.

Rules:
- Split on blank-line boundaries (paragraphs)
- Drop fragments shorter than the minimum length
- Prefix each chunk with a source tag (anti-orphan): a chunk stays
  self-describing even when the model sees it out of context
- Stable chunking (same input = same chunk ids)
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from .models import Chunk

logger = logging.getLogger(__name__)

_BLANK_LINE = re.compile(r"\n\s*\n")


@dataclass
class ChunkConfig:
    """Chunking configuration."""
    min_fragment_chars: int = 15
    source_tag_label: str = "Šaltinis"
    part_label: str = "Dalis"


class RAGChunker:
    """Splits a document into paragraph chunks tagged with their source."""

    def __init__(self, config: Optional[ChunkConfig] = None):
        self.config = config or ChunkConfig()

    def chunk_document(self, source_name: str, raw_text: str, type_label: str) -> List[Chunk]:
        """
        Split a document into chunks.

        Args:
            source_name: Document name, becomes book_or_section
            raw_text: Full document text
            type_label: Source type (e.g. "Biblija", "Katekizmas")

        Returns:
            List of Chunk objects (without embeddings)
        """
        if not raw_text.strip():
            logger.warning(f"Empty document: {source_name}")
            return []

        text = raw_text.replace("\r\n", "\n")
        digest = self._hash_content(text)[:8]
        tags = [source_name.lower(), type_label.lower()]

        chunks = []
        for index, fragment in enumerate(_BLANK_LINE.split(text)):
            trimmed = fragment.strip()
            if len(trimmed) < self.config.min_fragment_chars:
                continue

            chunks.append(Chunk(
                id=f"{source_name}-{index}-{digest}",
                source=type_label,
                book_or_section=source_name,
                chapter_or_ref=f"{self.config.part_label} {index + 1}",
                content=f"[{self.config.source_tag_label}: {source_name}, {type_label}] {trimmed}",
                tags=list(tags),
            ))

        logger.info(f"Chunked '{source_name}' into {len(chunks)} chunks")
        return chunks

    def _hash_content(self, content: str) -> str:
        """
        Generate SHA256 hash of content for stable ids.
        """
        return hashlib.sha256(content.encode("utf-8")).hexdigest()


def split_document(source_name: str, raw_text: str, type_label: str) -> List[Chunk]:
    """Split a document with the default chunk configuration."""
    return RAGChunker().chunk_document(source_name, raw_text, type_label)
