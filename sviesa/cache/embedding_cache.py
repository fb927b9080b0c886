"""
Query embedding cache: raw query text -> vector.

Process-local. When full, the oldest inserted key is evicted (insertion
order, not recency).
"""

import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class EmbeddingCache:

    def __init__(self, max_entries: int = 500):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: Dict[str, List[float]] = {}
        self.hits = 0
        self.misses = 0

    async def open(self) -> None:
        logger.debug(f"Embedding cache opened (cap {self.max_entries})")

    async def close(self) -> None:
        self.clear()

    def get(self, text: str) -> Optional[List[float]]:
        vector = self._entries.get(text)
        if vector is None:
            self.misses += 1
        else:
            self.hits += 1
        return vector

    def put(self, text: str, vector: List[float]) -> None:
        if text not in self._entries and len(self._entries) >= self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
        self._entries[text] = list(vector)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: str) -> bool:
        return text in self._entries
