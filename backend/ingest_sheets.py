"""
Sheet Ingestion Script for the lesson knowledge base.

This script:
1. Lists the lesson sheets to ingest
2. Fetches each sheet's rows from Google Sheets
3. Cleans and chunks the rows with neighbouring-row context
4. Generates embeddings using HuggingFace API
5. Stores everything in Supabase pgvector

A sheet that fails is recorded and skipped; the run carries on.

Usage:
    python ingest_sheets.py --prefix M6CH --start 1 --end 10 --dry-run
"""
import sys
import time
import argparse
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.sheet_loader import SheetLoader, SheetsError, resolve_category, sheet_data_stats
from services.chunking_engine import ChunkingEngine
from services.embedding_model import EmbeddingModel, EmbeddingError
from services.vector_store import VectorStore, VectorStoreError
from logger import setup_logging
from config import LOG_LEVEL, MAX_CHUNK_TOKENS, CONTEXT_WINDOW_SIZE

logger = logging.getLogger(__name__)


@dataclass
class IngestionOptions:
    """Which sheets to ingest and how fast."""
    sheets: List[str] = field(default_factory=list)
    prefix: str = "M6CH"
    start: int = 1
    end: Optional[int] = None
    sheet_batch_size: int = 10
    delay_ms: int = 2000
    dry_run: bool = False


@dataclass
class IngestionStats:
    """Counters for one ingestion run."""
    total_sheets: int = 0
    processed_sheets: int = 0
    failed_sheets: int = 0
    total_chunks: int = 0
    inserted_chunks: int = 0
    failed_chunks: int = 0
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    errors: List[dict] = field(default_factory=list)


def select_sheets(loader: SheetLoader, options: IngestionOptions) -> List[str]:
    """Explicit sheet names, or the 1-based ``start..end`` slice of sheets matching the prefix."""
    if options.sheets:
        return list(options.sheets)

    names = sorted(name for name in loader.get_sheet_names() if name.startswith(options.prefix))
    return names[max(options.start, 1) - 1:options.end]


def ingest_sheet(
    sheet_name: str,
    loader: SheetLoader,
    chunking_engine: ChunkingEngine,
    embedding_model: EmbeddingModel,
    vector_store: Optional[VectorStore],
    stats: IngestionStats
) -> None:
    """Fetch, chunk, embed and store a single sheet."""
    rows = loader.fetch_rows(sheet_name)
    data_stats = sheet_data_stats(sheet_name, rows)
    logger.info(
        f"  ✓ {sheet_name}: {data_stats.valid_rows}/{data_stats.total_rows} rows, "
        f"sections: {sorted(data_stats.sections)}"
    )

    chunks = chunking_engine.chunk_sheet(rows, sheet_name)
    if not chunks:
        logger.info(f"  - {sheet_name}: no valid chunks, skipping")
        return

    chunk_stats = chunking_engine.chunk_stats(chunks)
    logger.info(
        f"  ✓ {len(chunks)} chunks (avg {chunk_stats.average_tokens} tokens, "
        f"max {chunk_stats.max_tokens})"
    )
    stats.total_chunks += len(chunks)

    embeddings = embedding_model.embed_many([chunk.content for chunk in chunks])
    stats.failed_chunks += sum(1 for vector in embeddings if not any(vector))

    if vector_store is None:
        logger.info("  - Dry run, skipping insert")
        return

    category = resolve_category(sheet_name)
    stats.inserted_chunks += vector_store.add_chunks(chunks, embeddings, category, sheet_name)


def ingest(
    sheet_names: Sequence[str],
    loader: SheetLoader,
    chunking_engine: ChunkingEngine,
    embedding_model: EmbeddingModel,
    vector_store: Optional[VectorStore],
    options: IngestionOptions
) -> IngestionStats:
    """
    Ingest sheets in batches, pausing between batches.

    ``vector_store`` may be None for a dry run.
    """
    stats = IngestionStats(total_sheets=len(sheet_names))
    batch_size = max(options.sheet_batch_size, 1)
    total_batches = (len(sheet_names) + batch_size - 1) // batch_size

    for i in range(0, len(sheet_names), batch_size):
        batch = sheet_names[i:i + batch_size]
        logger.info(f"Batch {i // batch_size + 1}/{total_batches} ({len(batch)} sheets)")

        for sheet_name in batch:
            try:
                ingest_sheet(sheet_name, loader, chunking_engine, embedding_model, vector_store, stats)
                stats.processed_sheets += 1
            except (SheetsError, EmbeddingError, VectorStoreError) as e:
                stats.failed_sheets += 1
                stats.errors.append({"sheet": sheet_name, "error": str(e)})
                logger.error(f"  ✗ {sheet_name}: {e}", extra={"sheet": sheet_name})

        if i + batch_size < len(sheet_names) and options.delay_ms > 0:
            logger.info(f"Waiting {options.delay_ms / 1000:.1f}s before next batch...")
            time.sleep(options.delay_ms / 1000)

    stats.finished_at = datetime.now()
    return stats


def log_summary(stats: IngestionStats) -> None:
    duration = ((stats.finished_at or datetime.now()) - stats.started_at).total_seconds()

    logger.info("=" * 60)
    logger.info("INGESTION COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Sheets processed: {stats.processed_sheets}/{stats.total_sheets}")
    logger.info(f"Sheets failed: {stats.failed_sheets}")
    logger.info(f"Chunks created: {stats.total_chunks}")
    logger.info(f"Chunks inserted: {stats.inserted_chunks}")
    logger.info(f"Chunks with placeholder embeddings: {stats.failed_chunks}")
    logger.info(f"Duration: {int(duration // 60)}m {int(duration % 60)}s")
    for error in stats.errors:
        logger.info(f"  {error['sheet']}: {error['error']}")
    logger.info("=" * 60)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Ingest lesson sheets into the knowledge base"
    )
    parser.add_argument("--sheets", nargs="*", default=[], help="Explicit sheet names to ingest")
    parser.add_argument("--prefix", default="M6CH", help="Sheet name prefix when listing sheets (default: M6CH)")
    parser.add_argument("--start", type=int, default=1, help="First sheet number, 1-based (default: 1)")
    parser.add_argument("--end", type=int, default=None, help="Last sheet number, inclusive (default: all)")
    parser.add_argument("--sheet-batch-size", type=int, default=10, help="Sheets per batch (default: 10)")
    parser.add_argument("--delay", type=int, default=2000, help="Delay between batches in milliseconds (default: 2000)")
    parser.add_argument("--max-tokens", type=int, default=MAX_CHUNK_TOKENS, help="Chunk token budget")
    parser.add_argument("--context-size", type=int, default=CONTEXT_WINDOW_SIZE, help="Context rows on each side")
    parser.add_argument("--dry-run", action="store_true", help="Chunk and embed without writing to the database")
    parser.add_argument("--clear", action="store_true", help="Delete existing knowledge before ingesting")
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main ingestion process."""
    args = parse_args(argv)
    setup_logging(LOG_LEVEL, json_output=args.json_logs)

    options = IngestionOptions(
        sheets=args.sheets,
        prefix=args.prefix,
        start=args.start,
        end=args.end,
        sheet_batch_size=args.sheet_batch_size,
        delay_ms=args.delay,
        dry_run=args.dry_run
    )

    try:
        loader = SheetLoader()
        chunking_engine = ChunkingEngine(max_tokens=args.max_tokens, context_size=args.context_size)
        embedding_model = EmbeddingModel()
        vector_store = None if args.dry_run else VectorStore()

        if args.clear and vector_store is not None:
            logger.info(f"Clearing {vector_store.count()} existing chunks...")
            vector_store.clear()

        logger.info("Warming up embedding model...")
        embedding_model.warmup()

        sheet_names = select_sheets(loader, options)
        logger.info(f"Ingesting {len(sheet_names)} sheets (dry run: {args.dry_run})")

        stats = ingest(sheet_names, loader, chunking_engine, embedding_model, vector_store, options)
        log_summary(stats)
        return 1 if stats.failed_sheets else 0

    except KeyboardInterrupt:
        logger.warning("Ingestion interrupted by user")
        return 1
    except (ValueError, SheetsError, VectorStoreError) as e:
        logger.error(f"Ingestion failed: {str(e)}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
