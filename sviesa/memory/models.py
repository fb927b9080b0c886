"""
Semantic Memory Models
======================

Question/answer/embedding triples shared by the local and shared memories.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class MemoryOrigin(str, Enum):
    """USER entries are learned from conversations; SYSTEM entries are seeded or imported."""
    USER = "user"
    SYSTEM = "system"


@dataclass
class QAMemoryEntry:
    """A memoized answer. Never mutated after creation."""
    question: str
    answer: str
    embedding: List[float]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)
    origin: MemoryOrigin = MemoryOrigin.USER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "embedding": list(self.embedding),
            "timestamp": self.timestamp,
            "origin": self.origin.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QAMemoryEntry":
        """
        Raises:
            KeyError, TypeError, ValueError: malformed entry
        """
        embedding = data["embedding"]
        if not isinstance(embedding, list) or not all(isinstance(x, (int, float)) for x in embedding):
            raise ValueError("embedding must be a list of numbers")
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            question=str(data["question"]),
            answer=str(data["answer"]),
            embedding=[float(x) for x in embedding],
            timestamp=float(data.get("timestamp") or time.time()),
            # the browser export format calls this field "source"
            origin=MemoryOrigin(data.get("origin") or data.get("source") or MemoryOrigin.USER.value),
        )


@dataclass
class MemoryMatch:
    """Nearest-neighbour hit returned by a memory or cache lookup."""
    answer: str
    similarity: float
    question: str
    tier: str = ""
