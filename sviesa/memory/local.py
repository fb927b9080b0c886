"""
Local Semantic Memory
=====================

Append-only log of question/answer/embedding triples kept on this machine,
with nearest-neighbour lookup by cosine similarity.

- find_nearest: linear scan, best match returned only if >= threshold (0.85)
- append: skipped when the best existing match is > duplicate threshold (0.95)
- capacity: oldest origin=user entry evicted first; origin=system never evicted
- embedding length is fixed by the first stored entry

Persistence: JSON file at DATA_DIR/local_memory.json. An unreadable file is
reported and the memory starts empty (then re-seeded).

Usage:
    memory = LocalSemanticMemory(path=Path("data/local_memory.json"))
    await memory.open()
    match = memory.find_nearest(embedding)
    await memory.append(question, answer, embedding)
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..errors import CacheCorruption
from ..rag.text import cosine_similarity
from .models import MemoryMatch, MemoryOrigin, QAMemoryEntry

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "local_memory.json"
FILE_VERSION = 1


class LocalSemanticMemory:
    """Process-local semantic memory persisted to a JSON file."""

    tier = "local"

    def __init__(
        self,
        path: Optional[Path] = None,
        max_entries: int = 500,
        similarity_threshold: float = 0.85,
        duplicate_threshold: float = 0.95,
        seed: Sequence[QAMemoryEntry] = (),
        clock: Callable[[], float] = time.time,
    ):
        self.path = path
        self.max_entries = max_entries
        self.similarity_threshold = similarity_threshold
        self.duplicate_threshold = duplicate_threshold
        self.seed = list(seed)
        self.clock = clock

        self._entries: List[QAMemoryEntry] = []
        self._dimension: Optional[int] = None
        self._opened = False

    @property
    def entries(self) -> List[QAMemoryEntry]:
        return list(self._entries)

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def __len__(self) -> int:
        return len(self._entries)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def open(self) -> None:
        """Load the file, or the seed entries when nothing was stored; once per instance."""
        if self._opened:
            return

        if self.path is not None:
            try:
                entries = await asyncio.to_thread(self._read)
            except CacheCorruption as e:
                logger.warning(f"Local memory unreadable, starting empty: {e}")
                entries = []
            for entry in entries:
                self._add(entry)

        if not self._entries and self.seed:
            for entry in self.seed:
                self._add(QAMemoryEntry(
                    id=entry.id,
                    question=entry.question,
                    answer=entry.answer,
                    embedding=list(entry.embedding),
                    timestamp=entry.timestamp,
                    origin=MemoryOrigin.SYSTEM,
                ))
            logger.info(f"Local memory seeded with {len(self._entries)} entries")

        self._opened = True
        logger.info(f"Local memory opened: {len(self._entries)} entries")

    async def close(self) -> None:
        await self.save()

    async def save(self) -> None:
        if self.path is None:
            return
        payload = {"version": FILE_VERSION, "entries": [e.to_dict() for e in self._entries]}
        await asyncio.to_thread(self._write, payload)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def find_nearest(self, embedding: Sequence[float]) -> Optional[MemoryMatch]:
        """Best entry with similarity >= threshold, or None."""
        best = self._best(embedding)
        if best is None:
            return None
        entry, similarity = best
        if similarity >= self.similarity_threshold:
            return MemoryMatch(answer=entry.answer, similarity=similarity, question=entry.question, tier=self.tier)
        return None

    async def append(self, question: str, answer: str, embedding: Sequence[float]) -> bool:
        """
        Store a new user entry.

        Returns:
            True if stored, False if skipped (duplicate or wrong dimension)
        """
        if not embedding:
            logger.warning("Refusing local memory entry without embedding")
            return False
        if self._dimension is not None and len(embedding) != self._dimension:
            logger.warning(
                f"Refusing local memory entry: embedding length {len(embedding)} != {self._dimension}"
            )
            return False

        best = self._best(embedding)
        if best is not None and best[1] > self.duplicate_threshold:
            logger.debug(f"Skipping duplicate local memory entry ({best[1]:.3f}): {question[:50]}")
            return False

        if len(self._entries) >= self.max_entries:
            self._evict_oldest_user()

        self._add(QAMemoryEntry(
            question=question,
            answer=answer,
            embedding=list(embedding),
            timestamp=self.clock(),
            origin=MemoryOrigin.USER,
        ))
        await self.save()
        logger.info(f"Saved to local memory: {question[:50]}")
        return True

    def export_json(self) -> str:
        """All entries as a JSON list (the seed/import format)."""
        return json.dumps([e.to_dict() for e in self._entries], ensure_ascii=False, indent=2)

    async def import_json(self, payload: str) -> int:
        """
        Merge exported entries as origin=system.

        Entries whose question already exists, or whose embedding length
        does not match, are skipped.

        Raises:
            CacheCorruption: payload is not a list of entries
        """
        try:
            items = json.loads(payload)
            if not isinstance(items, list):
                raise TypeError("expected a JSON list")
            imported = [QAMemoryEntry.from_dict(item) for item in items]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CacheCorruption(f"Invalid memory import: {e}") from e

        questions = {e.question for e in self._entries}
        added = 0
        for entry in imported:
            if entry.question in questions:
                continue
            if self._dimension is not None and len(entry.embedding) != self._dimension:
                continue
            self._add(QAMemoryEntry(
                id=entry.id,
                question=entry.question,
                answer=entry.answer,
                embedding=entry.embedding,
                timestamp=entry.timestamp,
                origin=MemoryOrigin.SYSTEM,
            ))
            questions.add(entry.question)
            added += 1

        if added:
            await self.save()
        logger.info(f"Imported {added} memory entries")
        return added

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _add(self, entry: QAMemoryEntry) -> None:
        if self._dimension is None and entry.embedding:
            self._dimension = len(entry.embedding)
        self._entries.append(entry)

    def _best(self, embedding: Sequence[float]):
        best_entry = None
        best_similarity = -1.0
        for entry in self._entries:
            similarity = cosine_similarity(embedding, entry.embedding)
            if similarity > best_similarity:
                best_entry, best_similarity = entry, similarity
        if best_entry is None:
            return None
        return best_entry, best_similarity

    def _evict_oldest_user(self) -> None:
        user_entries = [e for e in self._entries if e.origin == MemoryOrigin.USER]
        if not user_entries:
            return
        oldest = min(user_entries, key=lambda e: e.timestamp)
        self._entries.remove(oldest)
        logger.debug(f"Local memory full, evicted: {oldest.question[:50]}")

    def _read(self) -> List[QAMemoryEntry]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            items = data["entries"] if isinstance(data, dict) else data
            return [QAMemoryEntry.from_dict(item) for item in items]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CacheCorruption(f"{self.path}: {e}") from e

    def _write(self, payload) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False)
        tmp.replace(self.path)
