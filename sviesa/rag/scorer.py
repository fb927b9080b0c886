"""
Relevance Scorer
================

Heuristic ranking of corpus chunks for a query. Full scan, no index.

Score per chunk (additive, weights in ScoringWeights):
1. Exact phrase: normalized query found in the content
2. Scripture reference: "<book> <chapter>[,:]<verse>" matches the chunk's
   book and chapter (full bonus) or only the book (half bonus)
3. Token matches: content, book/section label, tags, optional fuzzy match
4. Multi-token bonus when more than one token hit the content
5. Primary source multiplier (applied to terms 1-4)
6. Vector boost: cosine similarity above a threshold, added after 5

Each term is a standalone function so weights can be tuned and tested
in isolation.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import (
    Chunk,
    PRIMARY_SOURCE,
    RankedResult,
    ResultMetadata,
    SearchContext,
    SearchOptions,
)
from .text import (
    BIBLICAL_BOOKS,
    ScriptureReference,
    cosine_similarity,
    extract_reference,
    is_fuzzy_match,
    normalize_query,
    split_sentences,
    strip_source_tag,
    tokenize,
)

logger = logging.getLogger(__name__)

_VERSE_RANGE = re.compile(r"\[([^\]]+)\]")


@dataclass
class ScoringWeights:
    """Weighted-sum table for the scoring terms."""
    exact_phrase: float = 200.0
    reference_full: float = 300.0
    reference_book: float = 150.0
    token_content: float = 20.0
    token_label: float = 50.0
    token_tag: float = 30.0
    fuzzy: float = 10.0
    fuzzy_threshold: float = 0.25
    multi_token: float = 15.0
    primary_source_multiplier: float = 1.1
    vector_threshold: float = 0.6
    vector_weight: float = 200.0
    min_score: float = 15.0

    # Snippets
    max_highlights: int = 3
    highlight_token_ratio: float = 0.3
    context_window: int = 100


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass
class ScoreBreakdown:
    """Per-term contributions for one chunk."""
    exact_phrase: float = 0.0
    reference: float = 0.0
    token_content: float = 0.0
    token_label: float = 0.0
    token_tag: float = 0.0
    fuzzy: float = 0.0
    multi_token: float = 0.0
    source_multiplier: float = 1.0
    vector: float = 0.0
    matched_tokens: int = 0

    @property
    def lexical(self) -> float:
        return (
            self.exact_phrase + self.reference + self.token_content + self.token_label
            + self.token_tag + self.fuzzy + self.multi_token
        )

    @property
    def total(self) -> float:
        return self.lexical * self.source_multiplier + self.vector


@dataclass
class QueryProfile:
    """Query parsed once per search."""
    raw: str
    normalized: str
    tokens: List[str] = field(default_factory=list)
    reference: Optional[ScriptureReference] = None

    @classmethod
    def parse(cls, query: str) -> "QueryProfile":
        return cls(
            raw=query,
            normalized=normalize_query(query),
            tokens=tokenize(query),
            reference=extract_reference(query),
        )


# =============================================================================
# SCORING TERMS
# =============================================================================

def exact_phrase_term(normalized_query: str, content_lower: str, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    if normalized_query and normalized_query in content_lower:
        return weights.exact_phrase
    return 0.0


def reference_term(
    reference: Optional[ScriptureReference],
    chunk: Chunk,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    if reference is None or not reference.book_matches(chunk.book_or_section):
        return 0.0
    if reference.chapter_matches(chunk.chapter_or_ref):
        return weights.reference_full
    return weights.reference_book


def token_terms(
    tokens: Sequence[str],
    chunk: Chunk,
    content_lower: str,
    fuzzy_match: bool = False,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> Tuple[float, float, float, float, int]:
    """
    Returns (content, label, tag, fuzzy, matched_tokens).

    matched_tokens counts only tokens found in the content.
    """
    label_lower = chunk.book_or_section.lower()
    tags_lower = [tag.lower() for tag in chunk.tags]
    content_tokens = tokenize(chunk.content) if fuzzy_match else []

    content = label = tag = fuzzy = 0.0
    matches = 0
    for token in tokens:
        if token in content_lower:
            content += weights.token_content
            matches += 1
        if token in label_lower:
            label += weights.token_label
        if any(token in t for t in tags_lower):
            tag += weights.token_tag
        if fuzzy_match and any(
            is_fuzzy_match(token, candidate, weights.fuzzy_threshold) for candidate in content_tokens
        ):
            fuzzy += weights.fuzzy

    return content, label, tag, fuzzy, matches


def multi_token_bonus(matched_tokens: int, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    if matched_tokens > 1:
        return weights.multi_token * matched_tokens
    return 0.0


def source_multiplier(chunk: Chunk, primary_source: str = PRIMARY_SOURCE, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    if chunk.source == primary_source:
        return weights.primary_source_multiplier
    return 1.0


def vector_boost(
    query_embedding: Optional[Sequence[float]],
    chunk_embedding: Optional[Sequence[float]],
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    if not query_embedding or not chunk_embedding:
        return 0.0
    similarity = cosine_similarity(query_embedding, chunk_embedding)
    if similarity > weights.vector_threshold:
        return similarity * weights.vector_weight
    return 0.0


# =============================================================================
# SCORER
# =============================================================================

class RelevanceScorer:
    """
    Ranks chunks against a query.

    Pure: no I/O, no state beyond the weights table.
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        primary_source: str = PRIMARY_SOURCE,
        highlight_marker: Tuple[str, str] = ("<mark>", "</mark>"),
    ):
        self.weights = weights or ScoringWeights()
        self.primary_source = primary_source
        self.highlight_marker = highlight_marker

    def score(
        self,
        query: str,
        chunk: Chunk,
        options: Optional[SearchOptions] = None,
        profile: Optional[QueryProfile] = None,
    ) -> ScoreBreakdown:
        """Score a single chunk, returning every term."""
        options = options or SearchOptions()
        profile = profile or QueryProfile.parse(query)
        content_lower = chunk.content.lower()

        content, label, tag, fuzzy, matches = token_terms(
            profile.tokens, chunk, content_lower, options.fuzzy_match, self.weights,
        )
        return ScoreBreakdown(
            exact_phrase=exact_phrase_term(profile.normalized, content_lower, self.weights),
            reference=reference_term(profile.reference, chunk, self.weights),
            token_content=content,
            token_label=label,
            token_tag=tag,
            fuzzy=fuzzy,
            multi_token=multi_token_bonus(matches, self.weights),
            source_multiplier=source_multiplier(chunk, self.primary_source, self.weights),
            vector=vector_boost(options.query_embedding, chunk.embedding, self.weights),
            matched_tokens=matches,
        )

    def search(
        self,
        chunks: Sequence[Chunk],
        query: str,
        options: Optional[SearchOptions] = None,
    ) -> List[RankedResult]:
        """
        Rank chunks for a query.

        Results at or below the minimum score are dropped, the rest are
        sorted by descending score (stable: ties keep corpus order) and
        paginated with options.offset / options.limit.
        """
        options = options or SearchOptions()
        if not query.strip() or not chunks:
            return []

        candidates: Iterable[Chunk] = chunks
        if options.filters:
            candidates = [c for c in chunks if options.filters.matches(c)]

        profile = QueryProfile.parse(query)
        scored = []
        for chunk in candidates:
            total = self.score(query, chunk, options, profile).total
            if total > self.weights.min_score:
                scored.append((chunk, total))

        scored.sort(key=lambda item: item[1], reverse=True)
        page = scored[options.offset:options.offset + options.limit]

        logger.debug(f"Search '{query[:50]}': {len(scored)} scored, returning {len(page)}")
        return [self._to_result(chunk, total, profile, options) for chunk, total in page]

    def _to_result(
        self,
        chunk: Chunk,
        score: float,
        profile: QueryProfile,
        options: SearchOptions,
    ) -> RankedResult:
        content = strip_source_tag(chunk.content)
        verse = _VERSE_RANGE.search(content)

        return RankedResult(
            id=chunk.id,
            source=chunk.source,
            book_or_section=chunk.book_or_section,
            chapter_or_ref=chunk.chapter_or_ref,
            content=content,
            score=score,
            highlights=self.highlights(content, profile.tokens) if options.highlight_matches else [],
            context=self.extract_context(content, profile.normalized) if options.include_context else SearchContext(),
            metadata=ResultMetadata(
                word_count=len(content.split()),
                tags=list(chunk.tags),
                verse_range=verse.group(1) if verse else None,
            ),
        )

    def highlights(self, content: str, tokens: Sequence[str]) -> List[str]:
        """Sentences containing at least 30% of the query tokens, tokens wrapped in the marker."""
        if not tokens:
            return []

        required = max(1.0, len(tokens) * self.weights.highlight_token_ratio)
        pattern = re.compile(
            "|".join(re.escape(t) for t in sorted(set(tokens), key=len, reverse=True)),
            re.IGNORECASE,
        )
        start, end = self.highlight_marker

        snippets = []
        for sentence in split_sentences(content):
            lower = sentence.lower()
            if sum(1 for t in tokens if t in lower) < required:
                continue
            snippets.append(pattern.sub(lambda m: f"{start}{m.group(0)}{end}", sentence.strip()))
            if len(snippets) >= self.weights.max_highlights:
                break
        return snippets

    def extract_context(self, content: str, normalized_query: str) -> SearchContext:
        """Text around the first exact match, or head and tail of the content."""
        window = self.weights.context_window
        index = content.lower().find(normalized_query) if normalized_query else -1

        if index == -1:
            return SearchContext(before=content[:window], after=content[-window:])

        end = index + len(normalized_query)
        return SearchContext(
            before=content[max(0, index - window):index],
            after=content[end:end + window],
        )


# =============================================================================
# QUERY ASSISTANCE
# =============================================================================

def suggest_related_queries(query: str, history: Sequence[str], limit: int = 5) -> List[str]:
    """Past queries sharing some (not all) tokens, plus neighbouring verse references."""
    tokens = tokenize(query)
    suggestions: List[str] = []

    for past in history:
        common = set(tokens) & set(tokenize(past))
        if common and len(common) < len(tokens):
            suggestions.append(past)

    reference = extract_reference(query)
    if reference:
        suggestions.append(f"{reference.book} {reference.chapter}")
        if reference.verse is not None:
            suggestions.append(f"{reference.book} {reference.chapter}, {reference.verse + 1}")

    return list(dict.fromkeys(suggestions))[:limit]


def autocomplete(partial: str, chunks: Sequence[Chunk], limit: int = 10) -> List[str]:
    """Book names and corpus words starting with the typed prefix."""
    prefix = partial.lower().strip()
    if not prefix:
        return []

    suggestions = {}
    for book in sorted(BIBLICAL_BOOKS):
        if book.startswith(prefix):
            suggestions[book.capitalize()] = None

    for chunk in chunks:
        if len(suggestions) >= limit:
            break
        for token in tokenize(strip_source_tag(chunk.content)):
            if token.startswith(prefix) and len(token) > len(prefix):
                suggestions[token] = None

    return list(suggestions)[:limit]
