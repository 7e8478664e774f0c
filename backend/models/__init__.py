"""Data models for Ask the Menu."""
from .document import MenuDocument
from .chunk import MenuChunk, ScoredChunk
from .restaurant import Restaurant
from .api import (
    Scope,
    RetrievalMode,
    UploadTextRequest,
    UploadResponse,
    AskRequest,
    AskResponse,
    AskMetadata,
    Source,
    RestaurantSummary,
    ClearResponse,
    DebugResponse,
)

__all__ = [
    "MenuDocument",
    "MenuChunk",
    "ScoredChunk",
    "Restaurant",
    "Scope",
    "RetrievalMode",
    "UploadTextRequest",
    "UploadResponse",
    "AskRequest",
    "AskResponse",
    "AskMetadata",
    "Source",
    "RestaurantSummary",
    "ClearResponse",
    "DebugResponse",
]
