"""Initialize the Qdrant collection for content embeddings."""

import logging
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.config import settings
from app.services.vector_store import VectorStoreService

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def init_qdrant() -> None:
    """Create the content collection with keyword indexes on content_type/content_id."""
    store = VectorStoreService()
    if store.ensure_collection():
        logger.info(
            f"Collection '{store.collection_name}' created "
            f"({settings.embedding_dimensions} dimensions, cosine)"
        )
    else:
        logger.info(f"Collection '{store.collection_name}' already exists.")


if __name__ == "__main__":
    init_qdrant()
