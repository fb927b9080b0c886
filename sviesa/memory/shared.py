"""
Shared Semantic Memory
======================

Semantic memory shared between installations through a Supabase table:

    shared_memory(question, answer, embedding, usage_count)

- load(): top entries by usage_count, fetched once per session and cached
- find_nearest(): same contract as the local memory, over the cached set
- append(): best-effort insert after the client-side duplicate check

Never authoritative: an unconfigured project is a silent no-op, a failed
read is an empty set. A failed write raises RemoteUnavailable, so the
background task queue records it.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from supabase import Client, create_client

from ..errors import RemoteUnavailable
from ..rag.text import cosine_similarity
from .models import MemoryMatch
from .policy import is_durable_answer

logger = logging.getLogger(__name__)


class SharedSemanticMemory:
    """Session cache over the remote shared_memory table."""

    tier = "shared"

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        table: str = "shared_memory",
        fetch_limit: int = 500,
        similarity_threshold: float = 0.85,
        duplicate_threshold: float = 0.95,
        min_answer_length: int = 100,
        client: Optional[Client] = None,
    ):
        self.url = url
        self.key = key
        self.table = table
        self.fetch_limit = fetch_limit
        self.similarity_threshold = similarity_threshold
        self.duplicate_threshold = duplicate_threshold
        self.min_answer_length = min_answer_length

        self._client = client
        self._cache: Optional[List[Dict[str, Any]]] = None
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.url and self.key)

    @property
    def loaded(self) -> bool:
        return self._cache is not None

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = create_client(self.url, self.key)
        return self._client

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def open(self) -> None:
        if not self.configured:
            logger.info("Shared memory not configured, running local-only")

    async def close(self) -> None:
        self._cache = None

    async def load(self) -> List[Dict[str, Any]]:
        """Fetch the shared entries once per session."""
        async with self._lock:
            if self._cache is not None:
                return self._cache

            if not self.configured:
                self._cache = []
                return self._cache

            try:
                rows = await asyncio.to_thread(self._fetch)
            except Exception as e:
                logger.warning(f"Shared memory load failed, continuing without it: {e}")
                self._cache = []
            else:
                self._cache = [entry for entry in (self._parse_row(row) for row in rows) if entry]
                logger.info(f"Loaded {len(self._cache)} shared memory entries")

            return self._cache

    def invalidate(self) -> None:
        """Drop the session cache so the next lookup fetches again."""
        self._cache = None

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def find_nearest(self, embedding: Sequence[float]) -> Optional[MemoryMatch]:
        entries = await self.load()

        best = None
        best_similarity = -1.0
        for entry in entries:
            similarity = cosine_similarity(embedding, entry["embedding"])
            if similarity > best_similarity:
                best, best_similarity = entry, similarity

        if best is not None and best_similarity >= self.similarity_threshold:
            return MemoryMatch(
                answer=best["answer"],
                similarity=best_similarity,
                question=best["question"],
                tier=self.tier,
            )
        return None

    async def append(self, question: str, answer: str, embedding: Sequence[float]) -> bool:
        """
        Insert a durable answer.

        Returns:
            True if inserted, False if skipped

        Raises:
            RemoteUnavailable: the insert failed
        """
        if not self.configured or not embedding:
            return False

        if not is_durable_answer(question, answer, self.min_answer_length):
            logger.debug(f"Not sharing non-durable answer: {question[:50]}")
            return False

        existing = await self.find_nearest(embedding)
        if existing and existing.similarity > self.duplicate_threshold:
            logger.debug(f"Skipping duplicate shared memory entry ({existing.similarity:.3f})")
            return False

        row = {"question": question, "answer": answer, "embedding": list(embedding)}
        try:
            await asyncio.to_thread(self._insert, row)
        except Exception as e:
            raise RemoteUnavailable(f"Shared memory insert failed: {e}") from e

        if self._cache is not None:
            self._cache.append(row)
        logger.info(f"Saved to shared memory: {question[:50]}")
        return True

    # =========================================================================
    # INTERNALS (blocking client calls, run through asyncio.to_thread)
    # =========================================================================

    def _fetch(self) -> List[Dict[str, Any]]:
        result = (
            self._get_client()
            .table(self.table)
            .select("question, answer, embedding")
            .order("usage_count", desc=True)
            .limit(self.fetch_limit)
            .execute()
        )
        return result.data or []

    def _insert(self, row: Dict[str, Any]) -> None:
        self._get_client().table(self.table).insert(row).execute()

    @staticmethod
    def _parse_row(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        embedding = row.get("embedding")
        # pgvector columns come back as "[0.1,0.2,...]"
        if isinstance(embedding, str):
            try:
                embedding = json.loads(embedding)
            except json.JSONDecodeError:
                return None
        if not embedding or not isinstance(embedding, list) or not row.get("answer"):
            return None
        try:
            vector = [float(x) for x in embedding]
        except (TypeError, ValueError):
            return None
        return {
            "question": row.get("question") or "",
            "answer": row["answer"],
            "embedding": vector,
        }
