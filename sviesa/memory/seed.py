"""
Seed Memory
===========

Pre-answered questions loaded into an empty local memory with
origin=system, so they are never evicted.

Entries carry embeddings, so they must come from the same embedding model
the running instance uses. Produce them by exporting a trained memory:

    python -m sviesa.rag.cli memory-export > data/seed_memory.json

and point SEED_MEMORY_FILE at the file (default: <DATA_DIR>/seed_memory.json).
"""

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .models import MemoryOrigin, QAMemoryEntry

logger = logging.getLogger(__name__)

SEED_FILE_NAME = "seed_memory.json"


def load_seed_memory(path: Optional[Path]) -> List[QAMemoryEntry]:
    """
    Read seed entries from an exported memory file.

    A missing file yields no seeds; a malformed one is reported and ignored.
    """
    if path is None or not path.exists():
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        if isinstance(raw, dict):
            raw = raw.get("entries", [])
        entries = [QAMemoryEntry.from_dict(item) for item in raw]
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Unreadable seed memory {path}, ignored: {e}")
        return []

    entries = [replace(entry, origin=MemoryOrigin.SYSTEM) for entry in entries]

    logger.info(f"Loaded {len(entries)} seed memory entries from {path}")
    return entries
