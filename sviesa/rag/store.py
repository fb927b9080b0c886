"""
Chunk Store
===========

Owns the corpus working set.

- Seed documents are chunked at open() and after reset()
- Ingested chunks are appended to the in-memory set immediately and
  persisted in the background (PostgreSQL, table rag_chunks)
- Previously persisted chunks are merged once, at open()
- The in-memory set is what scoring sees, even before persistence confirms

Without DATABASE_URL (or when PostgreSQL refuses the connection) the store
runs from seed data only.

Usage:
    store = ChunkStore(db_url=settings.storage.database_url, tasks=queue)
    await store.open()
    await store.ingest("Evangelija pagal Luką", text, "Biblija")
    chunks = store.all()
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2.extras import Json, RealDictCursor, execute_values

from ..errors import StoreUnavailable
from ..orchestrator.tasks import BackgroundTaskQueue
from .chunker import RAGChunker
from .corpus import get_all_seed_documents, get_initial_chunks
from .models import Chunk, CorpusStats
from .text import strip_source_tag

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS rag_chunks (
        id TEXT PRIMARY KEY,
        source TEXT NOT NULL,
        book_or_section TEXT NOT NULL,
        chapter_or_ref TEXT NOT NULL,
        content TEXT NOT NULL,
        tags JSONB NOT NULL DEFAULT '[]'::jsonb,
        embedding JSONB,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""


class ChunkStore:
    """In-memory corpus backed by an optional PostgreSQL table."""

    def __init__(
        self,
        db_url: Optional[str] = None,
        chunker: Optional[RAGChunker] = None,
        tasks: Optional[BackgroundTaskQueue] = None,
        load_seed: bool = True,
    ):
        self.db_url = db_url
        self.chunker = chunker or RAGChunker()
        self.tasks = tasks or BackgroundTaskQueue()
        self.load_seed = load_seed

        self._chunks: List[Chunk] = []
        self._ids = set()
        self._conn = None
        self._opened = False

    @property
    def persisted(self) -> bool:
        return self._conn is not None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def open(self) -> None:
        """Build the seed corpus, then merge persisted chunks if the database is reachable."""
        if self._opened:
            return

        self._load_seed()

        try:
            rows = await asyncio.to_thread(self._connect_and_load)
        except StoreUnavailable as e:
            logger.warning(f"Chunk store unavailable, using seed data only: {e}")
        else:
            merged = self._merge_rows(rows)
            logger.info(f"Chunk store opened: {merged} persisted chunks merged")

        self._opened = True
        logger.info(f"Corpus ready: {len(self._chunks)} chunks")

    async def close(self) -> None:
        await self.tasks.drain()
        if self._conn is not None:
            await asyncio.to_thread(self._conn.close)
            self._conn = None
        self._opened = False

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def ingest(self, source_name: str, raw_text: str, type_label: str) -> int:
        """
        Split a document and add its chunks to the working set.

        Chunks whose id is already present (identical re-ingestion) are
        skipped. Persistence is scheduled on the task queue.

        Returns:
            Number of chunks the document produced
        """
        chunks = self.chunker.chunk_document(source_name, raw_text, type_label)
        new_chunks = [c for c in chunks if c.id not in self._ids]
        self._add(new_chunks)

        if len(new_chunks) < len(chunks):
            logger.info(f"Skipped {len(chunks) - len(new_chunks)} already stored chunks of '{source_name}'")

        if new_chunks and self.persisted:
            self.tasks.submit("chunk_store.persist", asyncio.to_thread(self._insert_rows, new_chunks))

        return len(chunks)

    async def reset(self) -> None:
        """
        Clear persisted and in-memory chunks, then reload the seed corpus.

        Pending inserts are awaited first so none lands after the TRUNCATE.

        Raises:
            StoreUnavailable: the TRUNCATE failed; the working set is unchanged
        """
        await self.tasks.drain()

        if self.persisted:
            try:
                await asyncio.to_thread(self._truncate)
            except psycopg2.Error as e:
                logger.error(f"Chunk store reset failed: {e}")
                raise StoreUnavailable(f"PostgreSQL error during reset: {e}") from e

        self._chunks = []
        self._ids = set()
        self._load_seed()
        logger.info(f"Chunk store reset: {len(self._chunks)} seed chunks reloaded")

    def all(self) -> List[Chunk]:
        """Current working set: seed + persisted + ingested, in insertion order."""
        return list(self._chunks)

    def stats(self) -> CorpusStats:
        sources: Dict[str, Dict[str, int]] = defaultdict(lambda: {"chunks": 0, "words": 0})
        documents = []
        total_words = 0

        for chunk in self._chunks:
            words = len(strip_source_tag(chunk.content).split())
            total_words += words
            sources[chunk.source]["chunks"] += 1
            sources[chunk.source]["words"] += words
            if chunk.book_or_section not in documents:
                documents.append(chunk.book_or_section)

        return CorpusStats(
            total_chunks=len(self._chunks),
            total_documents=len(documents),
            total_words=total_words,
            documents=documents,
            sources=dict(sources),
            persisted=self.persisted,
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _add(self, chunks: List[Chunk]) -> None:
        for chunk in chunks:
            self._chunks.append(chunk)
            self._ids.add(chunk.id)

    def _load_seed(self) -> None:
        if not self.load_seed:
            return

        self._add([c for c in (Chunk.from_row(row) for row in get_initial_chunks()) if c.id not in self._ids])
        for doc in get_all_seed_documents():
            chunks = self.chunker.chunk_document(doc["title"], doc["content"], doc["type"])
            self._add([c for c in chunks if c.id not in self._ids])

    def _merge_rows(self, rows: List[Dict[str, Any]]) -> int:
        merged = 0
        for row in rows:
            if row["id"] in self._ids:
                continue
            try:
                chunk = Chunk.from_row(row)
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed persisted chunk {row.get('id')}: {e}")
                continue
            self._add([chunk])
            merged += 1
        return merged

    # Blocking driver calls, run through asyncio.to_thread

    def _connect_and_load(self) -> List[Dict[str, Any]]:
        if not self.db_url:
            raise StoreUnavailable("DATABASE_URL not configured")

        try:
            conn = psycopg2.connect(self.db_url)
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(CREATE_TABLE_SQL)
                    cur.execute("""
                        SELECT id, source, book_or_section, chapter_or_ref, content, tags, embedding
                        FROM rag_chunks
                        ORDER BY created_at, id
                    """)
                    rows = [dict(row) for row in cur.fetchall()]
        except psycopg2.Error as e:
            raise StoreUnavailable(f"PostgreSQL error: {e}") from e

        self._conn = conn
        return rows

    def _insert_rows(self, chunks: List[Chunk]) -> None:
        values = [
            (
                c.id, c.source, c.book_or_section, c.chapter_or_ref, c.content,
                Json(c.tags), Json(c.embedding) if c.embedding is not None else None,
            )
            for c in chunks
        ]
        with self._conn:
            with self._conn.cursor() as cur:
                execute_values(cur, """
                    INSERT INTO rag_chunks (
                        id, source, book_or_section, chapter_or_ref, content, tags, embedding
                    ) VALUES %s
                    ON CONFLICT (id) DO NOTHING
                """, values)
        logger.debug(f"Persisted {len(chunks)} chunks")

    def _truncate(self) -> None:
        with self._conn:
            with self._conn.cursor() as cur:
                cur.execute("TRUNCATE rag_chunks")
