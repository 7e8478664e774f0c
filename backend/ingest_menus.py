"""
Menu Ingestion Script for Ask the Menu.

This script:
1. Optionally clears existing restaurants and chunks
2. Loads every menu image/PDF from a directory (OCR for images)
3. Splits each menu into paragraph chunks
4. Embeds the chunks with the local hashed embedding model
5. Stores them in the configured chunk store

The in-memory store does not outlive this process and is rejected;
ingestion needs CHUNK_STORE=supabase or --store supabase.

The file stem names the restaurant: ``menus/Luigis_Pizzeria.jpg`` is
stored as "Luigis Pizzeria".

Usage:
    python ingest_menus.py menus/ [--clear] [--store supabase]
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from config import CHUNK_STORE
from services.chunk_store import ChunkStore, create_chunk_store
from services.embedding_model import EmbeddingModel
from services.menu_chunker import MenuChunker
from services.menu_loader import MenuLoader

logger = logging.getLogger(__name__)


def clear_existing_data(store: ChunkStore) -> None:
    """Clear all existing restaurants and chunks from the store."""
    logger.info("Clearing existing data...")
    count_before = store.count()
    logger.info(f"Found {count_before} existing chunks")

    if count_before > 0:
        store.clear()
        logger.info(f"Cleared {count_before} chunks")
    else:
        logger.info("No existing data to clear")


def ingest_directory(
    directory: str,
    store: ChunkStore,
    loader: MenuLoader,
    chunker: MenuChunker,
    embedding_model: EmbeddingModel
) -> int:
    """
    Load, chunk, embed and store every menu in a directory.

    Returns:
        Number of chunks stored
    """
    documents = loader.load_directory(directory)
    if not documents:
        return 0

    total = 0
    for document in documents:
        chunks = chunker.build_chunks(document.restaurant_name, document.text, embedding_model)
        if not chunks:
            logger.warning(f"  - {document.filename}: no menu sections found, skipped")
            continue

        total += store.add_chunks(document.restaurant_name, chunks)
        logger.info(f"  ✓ {document.filename} -> {document.restaurant_name} ({len(chunks)} chunks)")

    return total


def main(argv: Optional[List[str]] = None) -> int:
    """Main ingestion process."""
    parser = argparse.ArgumentParser(description="Ingest menu images and PDFs")
    parser.add_argument("directory", help="Directory containing menu files")
    parser.add_argument("--clear", action="store_true", help="Clear existing data first")
    parser.add_argument("--store", default=CHUNK_STORE, choices=["memory", "supabase"])
    args = parser.parse_args(argv)

    if args.store == "memory":
        logger.error(
            "The in-memory store is discarded when this script exits; "
            "set CHUNK_STORE=supabase or pass --store supabase"
        )
        return 1

    try:
        logger.info("=" * 60)
        logger.info("Starting menu ingestion")
        logger.info("=" * 60)

        store = create_chunk_store(args.store)
        if args.clear:
            clear_existing_data(store)

        stored = ingest_directory(
            args.directory,
            store,
            MenuLoader(),
            MenuChunker(),
            EmbeddingModel()
        )

        if stored == 0:
            logger.error(f"No menu chunks ingested from {args.directory}")
            return 1

        logger.info("=" * 60)
        logger.info("INGESTION COMPLETE!")
        logger.info(f"Chunks stored: {stored}")
        logger.info(f"Chunks in store: {store.count()}")
        logger.info("=" * 60)
        return 0

    except KeyboardInterrupt:
        logger.warning("Ingestion interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Ingestion failed: {str(e)}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
