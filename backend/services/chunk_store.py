"""Chunk store interface and an in-process implementation."""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from itertools import count
from typing import Any, Dict, List, Optional

from models.chunk import MenuChunk, ScoredChunk
from models.restaurant import Restaurant

logger = logging.getLogger(__name__)


class ChunkStore(ABC):
    """Persistence for restaurants and their embedded menu chunks.

    Chunks are immutable once stored; the only removal is ``clear``.
    """

    name = "abstract"
    supports_fulltext = False

    @abstractmethod
    def add_restaurant(self, name: str) -> Restaurant:
        """Return the restaurant with this exact name, creating it if needed."""

    @abstractmethod
    def add_chunks(self, restaurant_name: str, chunks: List[MenuChunk]) -> int:
        """Store chunks under a restaurant. Returns the number stored."""

    @abstractmethod
    def list_chunks(self, restaurant_name: Optional[str] = None) -> List[MenuChunk]:
        """All chunks, or only those of one restaurant. No ordering guarantee."""

    @abstractmethod
    def list_restaurants(self) -> List[Restaurant]:
        """Restaurants with chunk counts, most recently created first."""

    @abstractmethod
    def clear(self) -> None:
        """Delete every restaurant and chunk."""

    @abstractmethod
    def count(self) -> int:
        """Total number of stored chunks."""

    def latest_restaurant(self) -> Optional[Restaurant]:
        """The most recently created restaurant, or None when the store is empty."""
        restaurants = self.list_restaurants()
        return restaurants[0] if restaurants else None

    def fulltext_search(
        self,
        question: str,
        restaurant_name: Optional[str] = None,
        limit: int = 5
    ) -> List[ScoredChunk]:
        """Ranked full-text matches. Stores without full-text support return []."""
        return []

    def debug_info(self) -> Dict[str, Any]:
        """Summary of store contents for diagnostics."""
        restaurants = self.list_restaurants()
        return {
            "store": self.name,
            "restaurant_count": len(restaurants),
            "chunk_count": self.count(),
            "supports_fulltext": self.supports_fulltext,
            "restaurants": restaurants,
        }


class InMemoryChunkStore(ChunkStore):
    """Chunk store held in process memory, owned by one instance.

    Request handlers share one instance across worker threads; every read
    and write holds the store lock.
    """

    name = "memory"

    def __init__(self):
        self._restaurants: List[Restaurant] = []
        self._chunks: List[MenuChunk] = []
        self._restaurant_ids = count(1)
        self._chunk_ids = count(1)
        self._lock = threading.RLock()
        logger.info("Initialized InMemoryChunkStore")

    def _find_restaurant(self, name: str) -> Optional[Restaurant]:
        for restaurant in self._restaurants:
            if restaurant.name == name:
                return restaurant
        return None

    def add_restaurant(self, name: str) -> Restaurant:
        if not name or not name.strip():
            raise ValueError("Restaurant name cannot be empty")

        with self._lock:
            existing = self._find_restaurant(name)
            if existing:
                return existing

            restaurant = Restaurant(
                restaurant_id=next(self._restaurant_ids),
                name=name,
                created_at=datetime.now()
            )
            self._restaurants.append(restaurant)

        logger.info(f"Created restaurant {name!r} (id={restaurant.restaurant_id})")
        return restaurant

    def add_chunks(self, restaurant_name: str, chunks: List[MenuChunk]) -> int:
        if not chunks:
            raise ValueError("Chunks list cannot be empty")

        with self._lock:
            restaurant = self.add_restaurant(restaurant_name)
            for chunk in chunks:
                self._chunks.append(MenuChunk(
                    content=chunk.content,
                    source_label=restaurant.name,
                    embedding=chunk.embedding,
                    chunk_id=str(next(self._chunk_ids)),
                    restaurant_id=restaurant.restaurant_id
                ))
            restaurant.chunk_count += len(chunks)

        logger.info(f"Stored {len(chunks)} chunks for {restaurant_name!r}")
        return len(chunks)

    def list_chunks(self, restaurant_name: Optional[str] = None) -> List[MenuChunk]:
        with self._lock:
            if restaurant_name is None:
                return list(self._chunks)
            return [chunk for chunk in self._chunks if chunk.source_label == restaurant_name]

    def list_restaurants(self) -> List[Restaurant]:
        # Snapshots in reverse insertion order; created_at can tie within the clock resolution
        with self._lock:
            return [replace(restaurant) for restaurant in reversed(self._restaurants)]

    def clear(self) -> None:
        with self._lock:
            self._restaurants.clear()
            self._chunks.clear()
        logger.info("Cleared all restaurants and chunks from memory")

    def count(self) -> int:
        with self._lock:
            return len(self._chunks)


def create_chunk_store(kind: str) -> ChunkStore:
    """
    Build the chunk store named by configuration.

    Args:
        kind: "memory" or "supabase"

    Raises:
        ValueError: If kind is unknown
    """
    if kind == "memory":
        return InMemoryChunkStore()
    if kind == "supabase":
        from services.vector_store import SupabaseChunkStore
        return SupabaseChunkStore()
    raise ValueError(f"Unknown chunk store: {kind!r}")
