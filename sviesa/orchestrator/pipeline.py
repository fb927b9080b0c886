"""
Sviesa Answer Pipeline
======================

Turns a question into a streamed answer:

1. CLASSIFYING   query gate on the raw text (no I/O)
2. embedding     EmbeddingCache, then primary/fallback model (skipped for
                 casual and image turns; failure only disables vectors)
3. CACHE_LOOKUP  shared memory -> local memory -> exact response cache,
                 first hit wins and is injected as context to rephrase
4. RETRIEVING    corpus search when the gate allows it and nothing was hit
5. GENERATING    persona + memory context + corpus context + recent
                 history + message, streamed from the provider
6. PERSISTING    response cache and both memories, on the background queue

Only a generation failure reaches the caller (ProviderError), and then
nothing is written.

Usage:
    from sviesa.orchestrator.pipeline import AnswerPipeline

    pipeline = AnswerPipeline.from_settings()
    await pipeline.open()
    async for text in pipeline.answer("Kodėl Bažnyčia draudžia eutanaziją?", history):
        print(text, end="")
    await pipeline.close()
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from ..ai.gate import GateDecision, QueryGate
from ..ai.llm_client import ChatTurn, GenerativeProvider, ImageAttachment, get_provider
from ..ai.prompts import build_system_instruction, format_memory_context, format_rag_context
from ..ai.usage import TokenUsageTracker, estimate_tokens
from ..cache.embedding_cache import EmbeddingCache
from ..cache.redis_cache import RedisCache
from ..cache.response_cache import ResponseCache, today_context_key
from ..config import PipelineConfig, Settings, get_settings
from ..errors import ProviderError
from ..memory.local import DEFAULT_FILE_NAME, LocalSemanticMemory
from ..memory.models import MemoryMatch
from ..memory.policy import is_durable_answer, is_time_sensitive
from ..memory.seed import load_seed_memory
from ..memory.shared import SharedSemanticMemory
from ..rag.embedder import RAGEmbedder
from ..rag.models import PRIMARY_SOURCE, SECONDARY_SOURCE, RankedResult, SearchOptions
from ..rag.scorer import RelevanceScorer
from ..rag.store import ChunkStore
from .tasks import BackgroundTaskQueue

logger = logging.getLogger(__name__)


class PipelineStage(Enum):
    """Answer pipeline states."""
    IDLE = "idle"
    CLASSIFYING = "classifying"
    CACHE_LOOKUP = "cache_lookup"
    RETRIEVING = "retrieving"
    GENERATING = "generating"
    PERSISTING = "persisting"


@dataclass
class TurnTrace:
    """What happened during one turn."""
    turn_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    stages: List[PipelineStage] = field(default_factory=lambda: [PipelineStage.IDLE])
    kind: Optional[str] = None
    embedding_available: bool = False
    cache_tier: Optional[str] = None
    cache_similarity: Optional[float] = None
    retrieved_count: int = 0
    injected_ids: List[str] = field(default_factory=list)
    persistence_tasks: List[str] = field(default_factory=list)

    @property
    def stage(self) -> PipelineStage:
        return self.stages[-1]

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def get_summary(self) -> Dict[str, Any]:
        return {
            "turn_id": self.turn_id,
            "stages": [s.value for s in self.stages],
            "kind": self.kind,
            "embedding_available": self.embedding_available,
            "cache_tier": self.cache_tier,
            "cache_similarity": self.cache_similarity,
            "retrieved_count": self.retrieved_count,
            "injected_ids": self.injected_ids,
            "persistence_tasks": self.persistence_tasks,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class PreparedTurn:
    """Everything needed to call the generator, computed without calling it."""
    query: str
    history: List[ChatTurn]
    image: Optional[ImageAttachment]
    decision: GateDecision
    embedding: Optional[List[float]]
    cache_hit: Optional[MemoryMatch]
    context_key: Optional[str]
    sources: List[RankedResult]
    system_instruction: str
    trace: TurnTrace


@dataclass
class AnswerResult:
    text: str
    decision: GateDecision
    cache_hit: Optional[MemoryMatch]
    sources: List[RankedResult]
    trace: TurnTrace


class AnswerPipeline:
    """Orchestrates gate, caches, memories, retrieval and generation."""

    def __init__(
        self,
        provider: GenerativeProvider,
        store: ChunkStore,
        config: Optional[PipelineConfig] = None,
        scorer: Optional[RelevanceScorer] = None,
        gate: Optional[QueryGate] = None,
        embedder: Optional[RAGEmbedder] = None,
        response_cache: Optional[ResponseCache] = None,
        local_memory: Optional[LocalSemanticMemory] = None,
        shared_memory: Optional[SharedSemanticMemory] = None,
        tasks: Optional[BackgroundTaskQueue] = None,
        usage: Optional[TokenUsageTracker] = None,
        clock=time.time,
    ):
        self.config = config or PipelineConfig()
        self.provider = provider
        self.store = store
        self.scorer = scorer or RelevanceScorer()
        self.gate = gate or QueryGate(similarity_threshold=self.config.similarity_threshold)
        self.usage = usage
        self.embedder = embedder if embedder is not None else RAGEmbedder(
            provider,
            EmbeddingCache(self.config.embedding_cache_max_entries),
            usage=usage,
        )
        self.response_cache = response_cache if response_cache is not None else ResponseCache(
            ttl_seconds=self.config.response_cache_ttl_seconds,
            max_entries=self.config.response_cache_max_entries,
            clock=clock,
        )
        self.local_memory = local_memory if local_memory is not None else LocalSemanticMemory(
            max_entries=self.config.local_memory_max_entries,
            similarity_threshold=self.config.similarity_threshold,
            duplicate_threshold=self.config.duplicate_threshold,
        )
        self.shared_memory = shared_memory if shared_memory is not None else SharedSemanticMemory(
            similarity_threshold=self.config.similarity_threshold,
            duplicate_threshold=self.config.duplicate_threshold,
            min_answer_length=self.config.min_durable_answer_length,
        )
        self.tasks = tasks if tasks is not None else BackgroundTaskQueue()
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        provider: Optional[GenerativeProvider] = None,
    ) -> "AnswerPipeline":
        """Wire every component from configuration."""
        settings = settings or get_settings()
        config = settings.pipeline
        data_dir = settings.storage.data_dir
        tasks = BackgroundTaskQueue()
        provider = provider or get_provider(settings.provider)
        usage = TokenUsageTracker(path=data_dir / "token_usage.json")

        use_redis = settings.storage.response_cache_backend == "redis"
        seed_file = settings.storage.seed_memory_file

        return cls(
            provider=provider,
            store=ChunkStore(db_url=settings.storage.database_url, tasks=tasks),
            config=config,
            embedder=RAGEmbedder(provider, EmbeddingCache(config.embedding_cache_max_entries), usage=usage),
            response_cache=ResponseCache(
                store=RedisCache(redis_url=settings.storage.redis_url, use_redis=use_redis),
                ttl_seconds=config.response_cache_ttl_seconds,
                max_entries=config.response_cache_max_entries,
            ),
            local_memory=LocalSemanticMemory(
                path=data_dir / DEFAULT_FILE_NAME,
                max_entries=config.local_memory_max_entries,
                similarity_threshold=config.similarity_threshold,
                duplicate_threshold=config.duplicate_threshold,
                seed=load_seed_memory(seed_file),
            ),
            shared_memory=SharedSemanticMemory(
                url=settings.supabase.url,
                key=settings.supabase.key,
                table=settings.supabase.table,
                fetch_limit=config.shared_memory_fetch_limit,
                similarity_threshold=config.similarity_threshold,
                duplicate_threshold=config.duplicate_threshold,
                min_answer_length=config.min_durable_answer_length,
            ),
            tasks=tasks,
            usage=usage,
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def open(self) -> None:
        await self.store.open()
        await self.embedder.cache.open()
        await self.response_cache.open()
        await self.local_memory.open()
        await self.shared_memory.open()
        logger.info("Answer pipeline ready")

    async def close(self) -> None:
        await self.tasks.close()
        await self.shared_memory.close()
        await self.local_memory.close()
        await self.response_cache.close()
        await self.embedder.cache.close()
        await self.store.close()
        logger.info(f"Answer pipeline closed: tasks {self.tasks.stats}")

    async def __aenter__(self) -> "AnswerPipeline":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # =========================================================================
    # PREPARE
    # =========================================================================

    async def prepare(
        self,
        query: str,
        history: Sequence[ChatTurn] = (),
        image: Optional[ImageAttachment] = None,
    ) -> PreparedTurn:
        """Classify, embed, look up caches and retrieve; no generation."""
        trace = TurnTrace()
        has_image = image is not None

        self._enter(trace, PipelineStage.CLASSIFYING)
        decision = self.gate.classify(query, has_image=has_image)
        casual = decision.is_casual

        context_key = today_context_key(self.clock) if is_time_sensitive(query) else None

        # Time-sensitive turns skip the memory tiers, but the vector still
        # feeds the scorer's similarity boost
        embedding = None
        if not casual and not has_image:
            embedding = await self.embedder.embed_query(query)
        trace.embedding_available = embedding is not None

        cache_hit = None
        if not casual and not has_image:
            self._enter(trace, PipelineStage.CACHE_LOOKUP)
            cache_hit = await self._lookup(query, embedding, context_key)
            if cache_hit is not None:
                trace.cache_tier = cache_hit.tier
                trace.cache_similarity = cache_hit.similarity
                logger.info(
                    f"Cache hit ({cache_hit.tier}, {cache_hit.similarity:.3f}): {cache_hit.question[:50]}",
                    extra={"turn_id": trace.turn_id, "cache_tier": cache_hit.tier,
                           "similarity": cache_hit.similarity},
                )

        decision = self.gate.classify(query, cache_hit=cache_hit, has_image=has_image)
        trace.kind = decision.kind.value

        sources: List[RankedResult] = []
        if decision.retrieval_eligible:
            self._enter(trace, PipelineStage.RETRIEVING)
            sources = self._retrieve(query, embedding)
            trace.retrieved_count = len(sources)
            trace.injected_ids = [s.id for s in sources]

        memory_context = format_memory_context(cache_hit) if decision.memory_satisfied else None
        rag_context = format_rag_context(sources, self.config.chunk_char_budget)

        return PreparedTurn(
            query=query,
            history=self._truncate_history(history),
            image=image,
            decision=decision,
            embedding=embedding,
            cache_hit=cache_hit if decision.memory_satisfied else None,
            context_key=context_key,
            sources=sources,
            system_instruction=build_system_instruction(memory_context, rag_context),
            trace=trace,
        )

    async def _lookup(
        self,
        query: str,
        embedding: Optional[List[float]],
        context_key: Optional[str],
    ) -> Optional[MemoryMatch]:
        # Day-specific questions only match the dated exact cache
        if embedding is not None and context_key is None:
            hit = await self.shared_memory.find_nearest(embedding)
            if hit is not None:
                return hit
            hit = self.local_memory.find_nearest(embedding)
            if hit is not None:
                return hit

        cached = await self.response_cache.get_async(query, context_key)
        if cached is not None:
            return MemoryMatch(answer=cached, similarity=1.0, question=query, tier="response")
        return None

    def _retrieve(self, query: str, embedding: Optional[List[float]]) -> List[RankedResult]:
        results = self.scorer.search(
            self.store.all(),
            query,
            SearchOptions(
                fuzzy_match=True,
                query_embedding=embedding,
                limit=self.config.search_limit,
                include_context=False,
                highlight_matches=False,
            ),
        )
        qualifying = [r for r in results if r.score > self.config.relevance_floor]
        return select_context(qualifying, self.config.max_context_chunks)

    def _truncate_history(self, history: Sequence[ChatTurn]) -> List[ChatTurn]:
        if self.config.max_history_turns == 0:
            return []
        recent = list(history)[-self.config.max_history_turns:]
        limit = self.config.history_turn_chars
        return [ChatTurn(role=turn.role, text=turn.text[:limit]) for turn in recent]

    # =========================================================================
    # ANSWER
    # =========================================================================

    async def answer(
        self,
        query: str,
        history: Sequence[ChatTurn] = (),
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[str]:
        """
        Stream the answer text.

        Raises:
            ProviderError: generation failed; nothing is persisted
        """
        prepared = await self.prepare(query, history, image)
        async for text in self.generate(prepared):
            yield text

    async def answer_text(
        self,
        query: str,
        history: Sequence[ChatTurn] = (),
        image: Optional[ImageAttachment] = None,
    ) -> AnswerResult:
        """Collect the streamed answer."""
        prepared = await self.prepare(query, history, image)
        parts = [text async for text in self.generate(prepared)]
        return AnswerResult(
            text="".join(parts),
            decision=prepared.decision,
            cache_hit=prepared.cache_hit,
            sources=prepared.sources,
            trace=prepared.trace,
        )

    async def generate(self, prepared: PreparedTurn) -> AsyncIterator[str]:
        """Stream from the provider, then schedule persistence."""
        trace = prepared.trace
        self._enter(trace, PipelineStage.GENERATING)

        parts: List[str] = []
        try:
            async for chunk in self.provider.generate_stream(
                prepared.system_instruction,
                prepared.history,
                prepared.query,
                prepared.image,
            ):
                parts.append(chunk.text)
                yield chunk.text
        except ProviderError as e:
            self._enter(trace, PipelineStage.IDLE)
            logger.error(f"Generation failed: {e}", extra={"turn_id": trace.turn_id})
            raise

        answer = "".join(parts)
        if self.usage is not None:
            await self.usage.record_async(
                estimate_tokens(prepared.system_instruction + prepared.query),
                estimate_tokens(answer),
                prepared.query,
                self.provider.model,
            )

        self._enter(trace, PipelineStage.PERSISTING)
        self._schedule_persistence(prepared, answer)

        self._enter(trace, PipelineStage.IDLE)
        trace.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"Turn {trace.turn_id} done: {trace.kind}, {len(answer)} chars, "
            f"{trace.retrieved_count} sources, {trace.duration_seconds:.2f}s",
            extra={"turn_id": trace.turn_id, "duration": trace.duration_seconds},
        )

    # =========================================================================
    # PERSIST
    # =========================================================================

    def _schedule_persistence(self, prepared: PreparedTurn, answer: str) -> None:
        if prepared.decision.is_casual or prepared.image is not None or not answer.strip():
            return

        trace = prepared.trace
        query = prepared.query

        trace.persistence_tasks.append("response_cache.put")
        self.tasks.submit("response_cache.put", self._put_response(query, answer, prepared.context_key))

        if prepared.embedding is None:
            return
        if not is_durable_answer(query, answer, self.config.min_durable_answer_length):
            logger.debug(f"Answer not durable, memories skipped: {query[:50]}")
            return

        trace.persistence_tasks.append("local_memory.append")
        self.tasks.submit("local_memory.append", self.local_memory.append(query, answer, prepared.embedding))

        if self.shared_memory.configured:
            trace.persistence_tasks.append("shared_memory.append")
            self.tasks.submit("shared_memory.append", self.shared_memory.append(query, answer, prepared.embedding))

    async def _put_response(self, query: str, answer: str, context_key: Optional[str]) -> None:
        await self.response_cache.put_async(query, answer, context_key)

    # =========================================================================
    # UTILITIES
    # =========================================================================

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[RankedResult]:
        """Corpus search with the query embedding attached when available."""
        options = options or SearchOptions()
        if options.query_embedding is None:
            options.query_embedding = await self.embedder.embed_query(query)
        return self.scorer.search(self.store.all(), query, options)

    def get_stats(self) -> Dict[str, Any]:
        corpus = self.store.stats()
        return {
            "corpus": {"chunks": corpus.total_chunks, "documents": corpus.total_documents,
                       "persisted": corpus.persisted},
            "embeddings": self.embedder.get_stats(),
            "response_cache": {"entries": len(self.response_cache), "backend": self.response_cache.store.backend},
            "local_memory": {"entries": len(self.local_memory)},
            "shared_memory": {"configured": self.shared_memory.configured, "loaded": self.shared_memory.loaded},
            "tasks": {
                "submitted": self.tasks.stats.submitted,
                "completed": self.tasks.stats.completed,
                "failed": self.tasks.stats.failed,
                "recent_failures": [f.to_dict() for f in self.tasks.failures[-10:]],
            },
        }

    def _enter(self, trace: TurnTrace, stage: PipelineStage) -> None:
        trace.stages.append(stage)
        logger.debug(f"Turn {trace.turn_id} -> {stage.value}", extra={"turn_id": trace.turn_id, "stage": stage.value})


def select_context(results: Sequence[RankedResult], max_chunks: int = 2) -> List[RankedResult]:
    """
    Pick the chunks to inject from score-ordered results.

    Identical content is kept once. When both a primary and a secondary
    source chunk are present, the best of each is taken before a second
    chunk of the same type.
    """
    unique: List[RankedResult] = []
    seen = set()
    for result in results:
        if result.content in seen:
            continue
        seen.add(result.content)
        unique.append(result)

    if max_chunks >= 2:
        primary = next((r for r in unique if r.source == PRIMARY_SOURCE), None)
        secondary = next((r for r in unique if r.source == SECONDARY_SOURCE), None)
        if primary is not None and secondary is not None:
            picked = sorted([primary, secondary], key=lambda r: r.score, reverse=True)
            rest = [r for r in unique if r is not primary and r is not secondary]
            return (picked + rest)[:max_chunks]

    return unique[:max_chunks]
