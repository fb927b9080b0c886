"""
Sviesa CLI
==========

Command-line interface for corpus management and answering.

Usage:
    python -m sviesa.rag.cli ingest FILE --name "Evangelija pagal Luką" --type Biblija
    python -m sviesa.rag.cli search "Mato 5, 3"
    python -m sviesa.rag.cli ask "Kodėl Bažnyčia draudžia eutanaziją?"
    python -m sviesa.rag.cli stats
    python -m sviesa.rag.cli reset
    python -m sviesa.rag.cli usage
    python -m sviesa.rag.cli memory-export > data/seed_memory.json
    python -m sviesa.rag.cli memory-import shared.json
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from ..config import get_settings
from ..errors import SviesaError
from ..orchestrator.logging_config import configure_logging
from .models import SearchOptions, SourceType
from .scorer import RelevanceScorer
from .store import ChunkStore

logger = logging.getLogger(__name__)


def _store() -> ChunkStore:
    return ChunkStore(db_url=get_settings().storage.database_url)


async def ingest_file(path: str, name: str, type_label: str) -> bool:
    """Ingest a text file into the corpus."""
    text = Path(path).read_text(encoding="utf-8")
    store = _store()
    await store.open()
    try:
        count = await store.ingest(name, text, type_label)
    finally:
        await store.close()

    logger.info(f"Ingested '{name}' ({type_label}): {count} chunks")
    return count > 0


async def search(query: str, k: int = 5) -> bool:
    """Lexical search over the corpus (no embeddings)."""
    store = _store()
    await store.open()
    try:
        results = RelevanceScorer().search(store.all(), query, SearchOptions(limit=k))
    finally:
        await store.close()

    print(f"\n{'='*60}")
    print(f"Query: {query}")
    print(f"Results: {len(results)}")
    print('='*60)

    for i, r in enumerate(results, 1):
        print(f"\n[{i}] Score: {r.score:.1f}")
        print(f"    Source: {r.source} / {r.book_or_section} ({r.chapter_or_ref})")
        for snippet in r.highlights:
            print(f"    > {snippet}")
        print(f"    Content: {r.content[:200]}...")

    return True


async def ask(question: str) -> bool:
    """Answer a question through the full pipeline, streaming to stdout."""
    from ..orchestrator.pipeline import AnswerPipeline

    async with AnswerPipeline.from_settings() as pipeline:
        async for text in pipeline.answer(question):
            print(text, end="", flush=True)
        print()
        await pipeline.tasks.drain()

    return True


async def show_stats() -> bool:
    store = _store()
    await store.open()
    stats = store.stats()
    await store.close()

    print(f"\n{'='*60}")
    print("CORPUS STATISTICS")
    print('='*60)
    print(f"Chunks: {stats.total_chunks}")
    print(f"Documents: {stats.total_documents}")
    print(f"Words: {stats.total_words:,}")
    print(f"Persisted: {'yes' if stats.persisted else 'no (seed data only)'}")

    print("\nBy source:")
    for source, counts in stats.sources.items():
        print(f"  {source}: {counts['chunks']} chunks ({counts['words']:,} words)")

    return True


async def reset() -> bool:
    store = _store()
    await store.open()
    try:
        await store.reset()
    finally:
        await store.close()
    logger.info("Corpus reset to seed documents")
    return True


def show_usage() -> bool:
    from ..ai.usage import TokenUsageTracker

    stats = TokenUsageTracker(path=get_settings().storage.data_dir / "token_usage.json").statistics()

    print(f"\n{'='*60}")
    print("TOKEN USAGE")
    print('='*60)
    print(f"Requests: {stats.total_queries}")
    print(f"Tokens: {stats.total_tokens:,} (in {stats.total_input_tokens:,} / out {stats.total_output_tokens:,})")
    print(f"Cost: ${stats.total_cost_usd:.4f} / {stats.total_cost_eur:.4f} EUR")
    print(f"Last 24h: {stats.last_24_hours.queries} requests, {stats.last_24_hours.cost_eur:.4f} EUR")
    print(f"Last 7d: {stats.last_7_days.queries} requests, {stats.last_7_days.cost_eur:.4f} EUR")
    print(f"Last 30d: {stats.last_30_days.queries} requests, {stats.last_30_days.cost_eur:.4f} EUR")
    return True


async def memory_export() -> bool:
    from ..memory.local import DEFAULT_FILE_NAME, LocalSemanticMemory

    memory = LocalSemanticMemory(path=get_settings().storage.data_dir / DEFAULT_FILE_NAME)
    await memory.open()
    print(memory.export_json())
    return True


async def memory_import(path: str) -> bool:
    from ..memory.local import DEFAULT_FILE_NAME, LocalSemanticMemory

    memory = LocalSemanticMemory(path=get_settings().storage.data_dir / DEFAULT_FILE_NAME)
    await memory.open()
    added = await memory.import_json(Path(path).read_text(encoding="utf-8"))
    logger.info(f"Imported {added} entries into local memory")
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(description="Tikėjimo Šviesa corpus and answer CLI")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest a text document")
    ingest_parser.add_argument("file", help="UTF-8 text file")
    ingest_parser.add_argument("--name", required=True, help="Document name (book or section)")
    ingest_parser.add_argument(
        "--type", default=SourceType.OTHER.value,
        help=f"Source type ({', '.join(t.value for t in SourceType)})",
    )

    search_parser = subparsers.add_parser("search", help="Search the corpus")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("-k", type=int, default=5, help="Number of results")

    ask_parser = subparsers.add_parser("ask", help="Answer a question")
    ask_parser.add_argument("question", help="Question")

    subparsers.add_parser("stats", help="Show corpus statistics")
    subparsers.add_parser("reset", help="Reset the corpus to seed documents")
    subparsers.add_parser("usage", help="Show token usage")
    subparsers.add_parser("memory-export", help="Print local memory as JSON")

    import_parser = subparsers.add_parser("memory-import", help="Import exported memory")
    import_parser.add_argument("file", help="JSON export")

    args = parser.parse_args(argv)

    configure_logging(get_settings().logging)

    try:
        if args.command == "ingest":
            success = asyncio.run(ingest_file(args.file, args.name, args.type))
        elif args.command == "search":
            success = asyncio.run(search(args.query, args.k))
        elif args.command == "ask":
            success = asyncio.run(ask(args.question))
        elif args.command == "stats":
            success = asyncio.run(show_stats())
        elif args.command == "reset":
            success = asyncio.run(reset())
        elif args.command == "usage":
            success = show_usage()
        elif args.command == "memory-export":
            success = asyncio.run(memory_export())
        elif args.command == "memory-import":
            success = asyncio.run(memory_import(args.file))
        else:
            parser.print_help()
            return
    except (SviesaError, ValueError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        success = False

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
