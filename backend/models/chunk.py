"""Menu chunk data models."""
from dataclasses import dataclass
from typing import Optional
import numpy as np


@dataclass
class MenuChunk:
    """A paragraph-scale excerpt of one restaurant's menu."""
    content: str
    source_label: str  # restaurant name
    embedding: Optional[np.ndarray] = None
    chunk_id: Optional[str] = None
    restaurant_id: Optional[int] = None


@dataclass
class ScoredChunk:
    """Chunk with a ranking score from retrieval."""
    chunk: MenuChunk
    relevance_score: float  # cosine similarity, store rank, or FALLBACK_SCORE
