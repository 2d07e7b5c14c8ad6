#!/usr/bin/env python3
"""
Index portfolio content from Sanity into Qdrant.

Usage:
    uv run python scripts/generate_embeddings.py             # everything
    uv run python scripts/generate_embeddings.py --type project --type skill
    uv run python scripts/generate_embeddings.py --count     # show indexed totals

Each CMS document becomes one point keyed by its content type and id, so
re-running the script updates vectors in place.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Setup logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.config import settings
from app.services.embeddings import INDEXED_TYPES, EmbeddingService


async def run(content_types: list[str]) -> dict[str, int]:
    service = EmbeddingService()
    if not content_types:
        return await service.generate_all_embeddings()

    await asyncio.to_thread(service.vector_store.ensure_collection)
    return {content_type: await service.generate_embeddings_for(content_type) for content_type in content_types}


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate content embeddings for portfolio search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--type",
        dest="types",
        action="append",
        choices=sorted(INDEXED_TYPES),
        default=[],
        help="Content type to index (repeatable, default: all)",
    )
    parser.add_argument(
        "--count",
        action="store_true",
        help="Only print how many vectors are stored per content type",
    )
    args = parser.parse_args()

    if args.count:
        store = EmbeddingService().vector_store
        for content_type in sorted(INDEXED_TYPES):
            logger.info(f"{content_type}: {store.count_vectors([content_type])}")
        return 0

    if not settings.embeddings_enabled:
        logger.error("OPENAI_API_KEY is not set; cannot generate embeddings")
        return 1

    try:
        totals = asyncio.run(run(args.types))
    except Exception as e:
        logger.error(f"Embedding generation failed: {e}", exc_info=True)
        return 1

    for content_type, count in totals.items():
        logger.info(f"Indexed {count} {content_type} documents")
    logger.info(f"Done: {sum(totals.values())} documents indexed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
