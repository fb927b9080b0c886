"""
Sviesa Semantic Memory Module
=============================

Memoized answers looked up by embedding similarity.

- LocalSemanticMemory: this machine, JSON-file backed, seeded
- SharedSemanticMemory: shared Supabase table, best-effort

The two stores are independent and may diverge.
"""

from .local import LocalSemanticMemory
from .models import MemoryMatch, MemoryOrigin, QAMemoryEntry
from .policy import TIME_SENSITIVE_KEYWORDS, is_durable_answer, is_time_sensitive
from .seed import load_seed_memory
from .shared import SharedSemanticMemory

__all__ = [
    "LocalSemanticMemory",
    "SharedSemanticMemory",
    "MemoryMatch",
    "MemoryOrigin",
    "QAMemoryEntry",
    "TIME_SENSITIVE_KEYWORDS",
    "is_durable_answer",
    "is_time_sensitive",
    "load_seed_memory",
]
