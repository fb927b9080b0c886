"""
Sviesa FastAPI Application
==========================

REST API for the Tikėjimo Šviesa answer pipeline.

Endpoints:
    GET  /api/health         - Health check
    POST /api/search         - Corpus search
    GET  /api/autocomplete   - Book names and words for a typed prefix
    POST /api/ask            - Streamed answer (text/plain)
    POST /api/corpus/ingest  - Add a document to the corpus
    POST /api/corpus/reset   - Reset the corpus to seed documents
    GET  /api/corpus/stats   - Corpus statistics
    GET  /api/usage          - Token usage and cost

Usage:
    uvicorn sviesa.api.main:app --reload --port 8000

    Or with CLI:
    python -m sviesa.api.main
"""

from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
import os
from collections import deque
from contextlib import asynccontextmanager
from typing import Deque

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from .. import __version__
from ..ai.llm_client import ChatTurn, ImageAttachment
from ..config import get_settings
from ..errors import ProviderError, StoreUnavailable
from ..orchestrator.logging_config import configure_logging
from ..orchestrator.pipeline import AnswerPipeline
from ..rag.models import RankedResult, SearchFilters, SearchOptions
from ..rag.scorer import autocomplete, suggest_related_queries
from .models import (
    AskRequest,
    CorpusStatsResponse,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    ResetResponse,
    SearchRequest,
    SearchResponse,
    SearchResultModel,
)

logger = logging.getLogger(__name__)

# Services
pipeline: AnswerPipeline = None
recent_queries: Deque[str] = deque(maxlen=50)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global pipeline

    configure_logging(get_settings().logging)
    logger.info("Starting Sviesa API...")

    pipeline = AnswerPipeline.from_settings()
    await pipeline.open()

    yield

    await pipeline.close()
    logger.info("Shutting down Sviesa API...")


def get_pipeline() -> AnswerPipeline:
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return pipeline


app = FastAPI(
    title="Tikėjimo Šviesa API",
    description="Katalikiški atsakymai su šaltiniais",
    version=__version__,
    lifespan=lifespan,
)

# CORS_ORIGINS env var (comma-separated) adds deployed frontend domains
_default_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
_extra_origins = os.getenv("CORS_ORIGINS", "")
if _extra_origins:
    _default_origins.extend([o.strip() for o in _extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=_default_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _to_model(result: RankedResult) -> SearchResultModel:
    return SearchResultModel(
        id=result.id,
        source=result.source,
        book_or_section=result.book_or_section,
        chapter_or_ref=result.chapter_or_ref,
        content=result.content,
        score=result.score,
        highlights=result.highlights,
        context_before=result.context.before,
        context_after=result.context.after,
        word_count=result.metadata.word_count,
        tags=result.metadata.tags,
        verse_range=result.metadata.verse_range,
    )


# ============================================================================
# HEALTH ENDPOINT
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check(pipeline: AnswerPipeline = Depends(get_pipeline)):
    """
    Health check endpoint.

    The pipeline always answers; degraded means it runs on seed data only.
    """
    # counts response cache keys, a Redis SCAN when Redis is the backend
    stats = await asyncio.to_thread(pipeline.get_stats)
    corpus = stats["corpus"]
    shared = stats["shared_memory"]

    return HealthResponse(
        status="healthy" if corpus["persisted"] else "degraded",
        version=__version__,
        provider=pipeline.provider.model,
        corpus_chunks=corpus["chunks"],
        corpus_persisted=corpus["persisted"],
        response_cache_backend=stats["response_cache"]["backend"],
        shared_memory="configured" if shared["configured"] else "not_configured",
    )


# ============================================================================
# SEARCH ENDPOINTS
# ============================================================================

@app.post("/api/search", response_model=SearchResponse)
async def search(request: SearchRequest, pipeline: AnswerPipeline = Depends(get_pipeline)):
    filters = None
    if request.filters is not None:
        filters = SearchFilters(
            sources=request.filters.sources,
            books=request.filters.books,
            content_types=request.filters.content_types,
        )

    results = await pipeline.search(
        request.query,
        SearchOptions(
            fuzzy_match=request.fuzzy_match,
            limit=request.limit,
            offset=request.offset,
            filters=filters,
        ),
    )

    suggestions = suggest_related_queries(request.query, list(recent_queries))
    recent_queries.append(request.query)

    return SearchResponse(
        query=request.query,
        results=[_to_model(r) for r in results],
        suggestions=suggestions,
    )


@app.get("/api/autocomplete")
async def get_autocomplete(
    q: str = Query(..., min_length=1, description="Typed prefix"),
    limit: int = Query(10, ge=1, le=50),
    pipeline: AnswerPipeline = Depends(get_pipeline),
):
    return {"suggestions": autocomplete(q, pipeline.store.all(), limit)}


# ============================================================================
# ASK ENDPOINT
# ============================================================================

@app.post("/api/ask")
async def ask(request: AskRequest, pipeline: AnswerPipeline = Depends(get_pipeline)):
    """
    Stream the answer as text/plain.

    The first chunk is pulled before the response starts, so a provider
    failure is still reported as 502 instead of a truncated 200.
    """
    history = [ChatTurn(role=t.role, text=t.text) for t in request.history]
    image = ImageAttachment.from_data_url(request.image, request.image_mime_type) if request.image else None

    prepared = await pipeline.prepare(request.message, history, image)
    stream = pipeline.generate(prepared)

    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        first = ""
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=f"Generation failed: {e}")

    async def body():
        if first:
            yield first
        try:
            async for text in stream:
                yield text
        except ProviderError as e:
            logger.error(f"Stream interrupted: {e}", extra={"turn_id": prepared.trace.turn_id})

    headers = {"X-Turn-Id": prepared.trace.turn_id, "X-Query-Kind": prepared.decision.kind.value}
    return StreamingResponse(body(), media_type="text/plain; charset=utf-8", headers=headers)


# ============================================================================
# CORPUS ENDPOINTS
# ============================================================================

@app.post("/api/corpus/ingest", response_model=IngestResponse)
async def ingest(request: IngestRequest, pipeline: AnswerPipeline = Depends(get_pipeline)):
    count = await pipeline.store.ingest(request.name, request.content, request.type)
    if count == 0:
        raise HTTPException(status_code=400, detail="Document produced no chunks")
    return IngestResponse(
        name=request.name,
        chunks_created=count,
        total_chunks=len(pipeline.store.all()),
    )


@app.post("/api/corpus/reset", response_model=ResetResponse)
async def reset_corpus(pipeline: AnswerPipeline = Depends(get_pipeline)):
    try:
        await pipeline.store.reset()
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Corpus reset failed: {e}")
    return ResetResponse(status="reset", total_chunks=len(pipeline.store.all()))


@app.get("/api/corpus/stats", response_model=CorpusStatsResponse)
async def corpus_stats(pipeline: AnswerPipeline = Depends(get_pipeline)):
    stats = pipeline.store.stats()
    return CorpusStatsResponse(
        total_chunks=stats.total_chunks,
        total_documents=stats.total_documents,
        total_words=stats.total_words,
        documents=stats.documents,
        sources=stats.sources,
        persisted=stats.persisted,
    )


@app.get("/api/usage")
async def usage(pipeline: AnswerPipeline = Depends(get_pipeline)):
    if pipeline.usage is None:
        return {"enabled": False}
    return {"enabled": True, **pipeline.usage.statistics().to_dict()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sviesa.api.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
