#!/usr/bin/env python
"""Index a knowledge-base JSON file into the vector store.

Usage:
    python -m scripts.populate_knowledge_base --file data/knowledge_base.json

The file holds ``{"name": ..., "documents": [...]}`` where each document has
``id``, ``content``, ``source`` and optionally ``category``, ``is_public``
and ``created_at``.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from rag_assistant.config import get_settings
from rag_assistant.embeddings.service import HTTPEmbeddingService
from rag_assistant.exceptions import AssistantError
from rag_assistant.indexing.indexer import KnowledgeBaseIndexer, load_knowledge_base
from rag_assistant.logging_config import get_logger, setup_logging
from rag_assistant.vectorstore.service import QdrantVectorStore

logger = get_logger(__name__)


async def populate(
    path: Path,
    collection: str | None = None,
    dry_run: bool = False,
) -> int:
    """Load the file and index every document.

    Args:
        path: Knowledge-base JSON file.
        collection: Target collection, defaults to the configured one.
        dry_run: Validate the file without calling any service.

    Returns:
        Number of documents indexed.
    """
    setup_logging(level="INFO")
    settings = get_settings()

    knowledge_base = load_knowledge_base(path)
    if dry_run:
        logger.info(f"Dry run: {len(knowledge_base)} documents are valid")
        return 0

    embedder = HTTPEmbeddingService(settings.embedding)
    vector_store = QdrantVectorStore(settings.qdrant)
    indexer = KnowledgeBaseIndexer(
        embedder,
        vector_store,
        collection=collection or settings.qdrant.collection_name,
    )

    try:
        return await indexer.index(knowledge_base.documents)
    finally:
        await embedder.close()
        await vector_store.close()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Index a knowledge-base JSON file",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--file",
        type=Path,
        required=True,
        help="Path to knowledge-base JSON file",
    )
    parser.add_argument(
        "--collection",
        default=None,
        help="Target collection (defaults to QDRANT_COLLECTION_NAME)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the file without indexing",
    )

    args = parser.parse_args()

    try:
        count = asyncio.run(populate(args.file, args.collection, args.dry_run))
    except AssistantError as e:
        logger.error(f"Indexing failed: {e.message}", extra={"error_code": e.code.value})
        sys.exit(1)

    print(f"Indexed {count} documents")


if __name__ == "__main__":
    main()
