"""
Query Gate
==========

Pure classifier deciding how much work a query deserves.

    CASUAL            greeting/acknowledgement/too short: no retrieval, no memory
    MEMORY_SATISFIED  a cache or memory tier already holds a reusable answer
    RETRIEVABLE       substantive question; corpus retrieval runs unless an
                      image is attached

Casual when any holds:
- trimmed length < 15
- exact greeting/acknowledgement phrase
- no "?", shorter than 25 and no domain keyword
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Sequence

from ..memory.models import MemoryMatch

GREETINGS = frozenset([
    "labas", "labas rytas", "laba diena", "labas vakaras", "labanakt", "sveiki", "sveikas", "sveika",
    "ačiū", "labai ačiū", "dėkoju", "dėkui", "gerai", "supratau", "aišku", "ok", "okay", "taip", "ne",
    "iki", "viso gero", "sudie", "iki pasimatymo",
    "tegul bus pagarbintas jėzus kristus", "per amžių amžius amen", "amen",
])

# Stems of Catholic domain vocabulary
DOMAIN_KEYWORDS = (
    "diev", "jėz", "krist", "viešpat", "bažnyč", "biblij", "rašt", "švent", "evangelij", "apaštal",
    "mald", "meld", "melst", "nuodėm", "sakrament", "eucharist", "komunij", "išpažint", "krikšt",
    "sutvirtin", "santuok", "kunig", "vienuol", "popiež", "katekizm", "kbk", "encikl",
    "marij", "mergel", "angel", "velni", "dangus", "dangaus", "pragar", "skaistyk", "prisikėl",
    "tikėjim", "tiki", "dvasi", "sielos", "siela", "mišių", "mišios", "mišias", "rožin",
    "gavėn", "advent", "velyk", "kalėd", "psalm", "pranaš", "palaimint", "įsakym",
    "eutanaz", "abort", "moral", "gailestingum", "atleid",
)

_STRIP = re.compile(r"[.,!?;:…\"'()]+")
_WHITESPACE = re.compile(r"\s+")


class QueryKind(str, Enum):
    CASUAL = "casual"
    MEMORY_SATISFIED = "memory_satisfied"
    RETRIEVABLE = "retrievable"


@dataclass(frozen=True)
class GateDecision:
    """Tagged classification result; the booleans are derived."""
    kind: QueryKind
    has_image: bool = False
    cache_hit: Optional[MemoryMatch] = None

    @property
    def is_casual(self) -> bool:
        return self.kind == QueryKind.CASUAL

    @property
    def memory_satisfied(self) -> bool:
        return self.kind == QueryKind.MEMORY_SATISFIED

    @property
    def retrieval_eligible(self) -> bool:
        return self.kind == QueryKind.RETRIEVABLE and not self.has_image


class QueryGate:
    """Casual/memory/retrieval classifier. No I/O, no state."""

    def __init__(
        self,
        similarity_threshold: float = 0.85,
        min_length: int = 15,
        short_length: int = 25,
        greetings: FrozenSet[str] = GREETINGS,
        domain_keywords: Sequence[str] = DOMAIN_KEYWORDS,
    ):
        self.similarity_threshold = similarity_threshold
        self.min_length = min_length
        self.short_length = short_length
        self.greetings = greetings
        self.domain_keywords = tuple(domain_keywords)

    def is_casual(self, query: str) -> bool:
        text = query.strip()
        if len(text) < self.min_length:
            return True

        normalized = _WHITESPACE.sub(" ", _STRIP.sub(" ", text.lower())).strip()
        if normalized in self.greetings:
            return True

        return "?" not in text and len(text) < self.short_length and not self.has_domain_keyword(text)

    def has_domain_keyword(self, text: str) -> bool:
        lower = text.lower()
        return any(keyword in lower for keyword in self.domain_keywords)

    def classify(
        self,
        query: str,
        cache_hit: Optional[MemoryMatch] = None,
        has_image: bool = False,
    ) -> GateDecision:
        if self.is_casual(query):
            return GateDecision(kind=QueryKind.CASUAL, has_image=has_image)

        if cache_hit is not None and cache_hit.similarity >= self.similarity_threshold:
            return GateDecision(kind=QueryKind.MEMORY_SATISFIED, has_image=has_image, cache_hit=cache_hit)

        return GateDecision(kind=QueryKind.RETRIEVABLE, has_image=has_image)


_default_gate = QueryGate()


def classify(query: str, cache_hit: Optional[MemoryMatch] = None, has_image: bool = False) -> GateDecision:
    """Classify with the default thresholds."""
    return _default_gate.classify(query, cache_hit=cache_hit, has_image=has_image)
