"""Chunk store implementation using Supabase (Postgres + pgvector)."""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np
from supabase import create_client, Client

from config import SUPABASE_URL, SUPABASE_KEY
from models.chunk import MenuChunk, ScoredChunk
from models.restaurant import Restaurant
from services.chunk_store import ChunkStore

logger = logging.getLogger(__name__)

# Expected schema:
#
# CREATE TABLE restaurants (
#   id bigserial PRIMARY KEY,
#   name text NOT NULL UNIQUE,
#   created_at timestamptz NOT NULL DEFAULT now()
# );
#
# CREATE TABLE menu_chunks (
#   id bigserial PRIMARY KEY,
#   restaurant_id bigint NOT NULL REFERENCES restaurants(id) ON DELETE CASCADE,
#   restaurant_name text NOT NULL,
#   content text NOT NULL,
#   embedding vector(384),
#   created_at timestamptz NOT NULL DEFAULT now()
# );
#
# CREATE OR REPLACE FUNCTION search_menu_chunks(
#   query_text text,
#   restaurant text DEFAULT NULL,
#   match_count int DEFAULT 5
# )
# RETURNS TABLE (id bigint, restaurant_id bigint, restaurant_name text, content text, rank real)
# LANGUAGE sql STABLE
# AS $$
#   SELECT mc.id, mc.restaurant_id, mc.restaurant_name, mc.content,
#          ts_rank_cd(to_tsvector('english', mc.content), plainto_tsquery('english', query_text)) AS rank
#   FROM menu_chunks mc
#   WHERE to_tsvector('english', mc.content) @@ plainto_tsquery('english', query_text)
#     AND (restaurant IS NULL OR mc.restaurant_name = restaurant)
#   ORDER BY rank DESC
#   LIMIT match_count;
# $$;


def parse_embedding(value: Any) -> Optional[np.ndarray]:
    """pgvector columns come back from PostgREST as text like "[0.1,0.2]"."""
    if value is None:
        return None
    if isinstance(value, str):
        value = json.loads(value)
    return np.asarray(value, dtype=np.float64)


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse a timestamp string from Supabase.

    Postgres may return fewer or more than six fractional digits, which
    ``datetime.fromisoformat`` rejects on older interpreters.
    """
    timestamp_str = timestamp_str.replace("Z", "+00:00")

    if "." in timestamp_str:
        head, fraction = timestamp_str.split(".", 1)
        tz = ""
        for sign in ("+", "-"):
            if sign in fraction:
                fraction, tz_rest = fraction.split(sign, 1)
                tz = sign + tz_rest
                break
        fraction = fraction[:6].ljust(6, "0")
        timestamp_str = f"{head}.{fraction}{tz}"

    return datetime.fromisoformat(timestamp_str)


class SupabaseChunkStore(ChunkStore):
    """Store restaurants and menu chunks in Supabase tables."""

    name = "supabase"
    supports_fulltext = True

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_KEY,
        restaurants_table: str = "restaurants",
        chunks_table: str = "menu_chunks"
    ):
        """
        Initialize the store with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            restaurants_table: Table holding restaurants
            chunks_table: Table holding menu chunks and embeddings

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")

        self.restaurants_table = restaurants_table
        self.chunks_table = chunks_table
        self.client: Client = create_client(supabase_url, supabase_key)

        logger.info(
            f"Initialized SupabaseChunkStore with tables: {restaurants_table}, {chunks_table}"
        )

    def _row_to_restaurant(self, row: Dict[str, Any]) -> Restaurant:
        chunk_count = 0
        counts = row.get(self.chunks_table)
        if counts:
            chunk_count = counts[0].get("count", 0)
        return Restaurant(
            restaurant_id=row["id"],
            name=row["name"],
            created_at=parse_timestamp(row["created_at"]),
            chunk_count=chunk_count
        )

    def add_restaurant(self, name: str) -> Restaurant:
        if not name or not name.strip():
            raise ValueError("Restaurant name cannot be empty")

        try:
            existing = (
                self.client.table(self.restaurants_table)
                .select("id, name, created_at")
                .eq("name", name)
                .execute()
            )
            if existing.data:
                return self._row_to_restaurant(existing.data[0])

            created = self.client.table(self.restaurants_table).insert({"name": name}).execute()
            logger.info(f"Created restaurant {name!r}")
            return self._row_to_restaurant(created.data[0])

        except Exception as e:
            error_msg = f"Failed to add restaurant {name!r}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    def add_chunks(self, restaurant_name: str, chunks: List[MenuChunk]) -> int:
        if not chunks:
            raise ValueError("Chunks list cannot be empty")

        restaurant = self.add_restaurant(restaurant_name)

        try:
            records = [
                {
                    "restaurant_id": restaurant.restaurant_id,
                    "restaurant_name": restaurant.name,
                    "content": chunk.content,
                    "embedding": (
                        None if chunk.embedding is None
                        else np.asarray(chunk.embedding, dtype=float).tolist()
                    ),
                }
                for chunk in chunks
            ]
            self.client.table(self.chunks_table).insert(records).execute()

            logger.info(f"Stored {len(records)} chunks for {restaurant_name!r}")
            return len(records)

        except Exception as e:
            error_msg = f"Failed to add chunks to vector store: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    def list_chunks(self, restaurant_name: Optional[str] = None) -> List[MenuChunk]:
        try:
            query = (
                self.client.table(self.chunks_table)
                .select("id, restaurant_id, restaurant_name, content, embedding")
            )
            if restaurant_name is not None:
                query = query.eq("restaurant_name", restaurant_name)
            response = query.execute()

            chunks = [
                MenuChunk(
                    content=row["content"],
                    source_label=row["restaurant_name"],
                    embedding=parse_embedding(row.get("embedding")),
                    chunk_id=str(row["id"]),
                    restaurant_id=row.get("restaurant_id")
                )
                for row in response.data
            ]
            logger.debug(f"Loaded {len(chunks)} chunks (restaurant={restaurant_name!r})")
            return chunks

        except Exception as e:
            error_msg = f"Failed to list chunks: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    def list_restaurants(self) -> List[Restaurant]:
        try:
            response = (
                self.client.table(self.restaurants_table)
                .select(f"id, name, created_at, {self.chunks_table}(count)")
                .order("created_at", desc=True)
                .execute()
            )
            return [self._row_to_restaurant(row) for row in response.data]

        except Exception as e:
            error_msg = f"Failed to list restaurants: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    def fulltext_search(
        self,
        question: str,
        restaurant_name: Optional[str] = None,
        limit: int = 5
    ) -> List[ScoredChunk]:
        """Rank chunks with Postgres ``ts_rank_cd`` through the search_menu_chunks RPC."""
        try:
            response = self.client.rpc(
                "search_menu_chunks",
                {
                    "query_text": question,
                    "restaurant": restaurant_name,
                    "match_count": limit
                }
            ).execute()

            hits = [
                ScoredChunk(
                    chunk=MenuChunk(
                        content=row["content"],
                        source_label=row["restaurant_name"],
                        chunk_id=str(row["id"]),
                        restaurant_id=row.get("restaurant_id")
                    ),
                    relevance_score=float(row["rank"])
                )
                for row in response.data
            ]
            logger.debug(f"Full-text search returned {len(hits)} hits")
            return hits

        except Exception as e:
            error_msg = f"Failed to run full-text search: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    def clear(self) -> None:
        try:
            self.client.table(self.chunks_table).delete().gte("id", 0).execute()
            self.client.table(self.restaurants_table).delete().gte("id", 0).execute()
            logger.info("Cleared all restaurants and chunks from Supabase")
        except Exception as e:
            error_msg = f"Failed to clear vector store: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

    def count(self) -> int:
        try:
            response = self.client.table(self.chunks_table).select("id", count="exact").execute()
            return response.count if response.count is not None else 0
        except Exception as e:
            error_msg = f"Failed to count chunks in vector store: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
