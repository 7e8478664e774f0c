"""Request and response models for the HTTP API."""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Scope(str, Enum):
    """Which restaurants a question is answered against."""
    SINGLE = "single"
    ALL = "all"


class RetrievalMode(str, Enum):
    """How candidate chunks are scored and selected."""
    VECTOR = "vector"
    FULLTEXT = "fulltext"
    LEXICAL = "lexical"
    HYBRID = "hybrid"


class UploadTextRequest(BaseModel):
    """Menu text that has already been transcribed."""
    restaurant_name: str = Field(..., min_length=1)
    menu_text: str = Field(..., min_length=1)


class UploadResponse(BaseModel):
    success: bool
    message: str
    restaurant_name: str
    chunks_stored: int


class AskRequest(BaseModel):
    """A question about uploaded menus.

    ``scope`` has no default: callers must decide between the most recent
    (or named) restaurant and every restaurant.
    """
    question: str = Field(..., min_length=1)
    scope: Scope
    restaurant: Optional[str] = None
    mode: RetrievalMode = RetrievalMode.HYBRID


class Source(BaseModel):
    restaurant: str
    content: str
    relevance_score: float


class AskMetadata(BaseModel):
    mode: RetrievalMode
    scope: Scope
    model_used: Optional[str] = None
    chunks_considered: int
    chunks_retrieved: int
    prompt_tokens: int = 0
    latency_ms: int
    fallback_used: bool = False


class AskResponse(BaseModel):
    answer: str
    sources: List[Source] = []
    metadata: AskMetadata


class RestaurantSummary(BaseModel):
    restaurant_id: int
    name: str
    created_at: datetime
    chunk_count: int


class ClearResponse(BaseModel):
    success: bool
    message: str


class DebugResponse(BaseModel):
    store: str
    restaurant_count: int
    chunk_count: int
    supports_fulltext: bool
    restaurants: List[RestaurantSummary]
