"""Restaurant data model."""
from dataclasses import dataclass
from datetime import datetime


@dataclass
class Restaurant:
    """A menu source. Chunks are grouped under it."""
    restaurant_id: int
    name: str
    created_at: datetime
    chunk_count: int = 0
