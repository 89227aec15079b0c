"""
Recipe Search - Recipe Enrichment Batch

Rewrites, retitles, summarizes and embeds every recipe that has no
embedding yet, then indexes the result for similarity search.

Ids are split into ten partitions by id % 10. Run the batch on several
machines with disjoint --partitions to share the work.

Usage:
    python enrich.py [--partitions 0,1,2] [--chunk-size N] [--limit N] [--verbose | --quiet]

Examples:
    python enrich.py                         # All partitions
    python enrich.py --partitions 0,1,2,3,4  # Half of the table
    python enrich.py --limit 50 --verbose    # Small debug run
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from recipe_core import (
    ALLOWED_PARTITIONS,
    BATCH_CHUNK_SIZE,
    CHROMA_PATH,
    EnrichmentPipeline,
    RecipeLLMClient,
    SqlFailureStore,
    SqlRecipeStore,
    create_chroma_client,
    create_embeddings,
    create_session_factory,
    create_usage_recorder,
    initialize_llm,
    initialize_vectorstore,
    recipe_collection,
    setup_logging,
    upsert_recipe_vector,
)

load_dotenv()

logger = logging.getLogger(__name__)


def parse_partitions(raw):
    """
    Parse a comma-separated partition list such as "0,1,2".

    Raises:
        argparse.ArgumentTypeError: For non-numeric or out-of-range values
    """
    try:
        partitions = {int(part) for part in raw.split(",") if part.strip()}
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid partition list: {raw}") from e
    if not partitions or any(p < 0 or p > 9 for p in partitions):
        raise argparse.ArgumentTypeError(f"Partitions must be between 0 and 9: {raw}")
    return frozenset(partitions)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Enrich raw recipes with LLM rewrites, summaries and embeddings.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--partitions",
        type=parse_partitions,
        default=ALLOWED_PARTITIONS,
        help="Comma-separated id partitions (id %% 10) to process (default: all)"
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=BATCH_CHUNK_SIZE,
        help=f"Recipes per chunk (default: {BATCH_CHUNK_SIZE})"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of unenriched recipes to consider"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only show errors")
    return parser.parse_args(argv)


def main():
    args = parse_args()
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    logger.info("=" * 70)
    logger.info("🍳 Recipe Search - Recipe Enrichment")
    logger.info("=" * 70)
    logger.info(f"Partitions: {sorted(args.partitions)}")

    try:
        if args.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {args.chunk_size}")

        sessions = create_session_factory()
        recipe_store = SqlRecipeStore(sessions)

        logger.info("🤖 Initializing embedding model and LLM...")
        embeddings = create_embeddings()
        chroma_client = create_chroma_client(create=True)
        vectorstore = initialize_vectorstore(embeddings, client=chroma_client)
        collection = recipe_collection(chroma_client)
        client = RecipeLLMClient(initialize_llm(), embeddings, create_usage_recorder(sessions))

        pipeline = EnrichmentPipeline(
            client,
            recipe_store,
            SqlFailureStore(sessions),
            allowed_partitions=args.partitions,
            vector_indexer=lambda draft, document: upsert_recipe_vector(collection, draft, document),
        )

        recipe_ids = recipe_store.unenriched_ids(limit=args.limit)
        logger.info(f"📋 {len(recipe_ids)} recipe(s) without an embedding")

        stats = pipeline.run(recipe_ids, chunk_size=args.chunk_size)
        status = recipe_store.status()

        logger.info("")
        logger.info("=" * 70)
        logger.info("✅ DONE!")
        logger.info("=" * 70)
        logger.info("📊 Run Statistics:")
        logger.info(f"   - Committed: {stats.committed}")
        logger.info(f"   - Failed: {stats.failed}")
        logger.info(f"   - Skipped (other partitions): {stats.skipped}")
        logger.info(f"   - Overall progress: {status.completed}/{status.total} ({status.percentage:.1f}%)")
        logger.info(f"   - Vector index: {CHROMA_PATH}")
        logger.info("=" * 70)

    except ValueError as e:
        logger.error(f"❌ ERROR: {e}")
        sys.exit(1)

    except Exception as e:
        logger.error(f"❌ ERROR: {e}")
        logger.error("💡 Check the error message above for details.")
        sys.exit(1)


if __name__ == "__main__":
    main()
