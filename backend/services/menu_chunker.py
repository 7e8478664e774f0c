"""Splits transcribed menu text into embedded chunks."""
import logging
import re
from typing import List

from config import MIN_CHUNK_CHARS
from models.chunk import MenuChunk
from services.embedding_model import EmbeddingModel

logger = logging.getLogger(__name__)

# A blank line, possibly containing stray whitespace from OCR
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


class MenuChunker:
    """Segments menu text into paragraph chunks."""

    def __init__(self, min_chars: int = MIN_CHUNK_CHARS):
        """
        Initialize MenuChunker.

        Args:
            min_chars: Paragraphs with this many characters or fewer are dropped
        """
        self.min_chars = min_chars

    def split(self, text: str) -> List[str]:
        """Split text on blank lines, strip each paragraph and drop short ones."""
        paragraphs = [part.strip() for part in _PARAGRAPH_BREAK_RE.split(text)]
        kept = [part for part in paragraphs if len(part) > self.min_chars]

        dropped = len([part for part in paragraphs if part]) - len(kept)
        if dropped:
            logger.debug(f"Dropped {dropped} paragraphs of {self.min_chars} characters or fewer")
        return kept

    def build_chunks(
        self,
        restaurant_name: str,
        text: str,
        embedding_model: EmbeddingModel
    ) -> List[MenuChunk]:
        """
        Split menu text and embed each paragraph.

        Args:
            restaurant_name: Source label for every chunk
            text: Transcribed menu text
            embedding_model: Model used to embed chunk content

        Returns:
            List of MenuChunk objects, possibly empty
        """
        paragraphs = self.split(text)
        embeddings = embedding_model.embed_batch(paragraphs)

        chunks = [
            MenuChunk(content=paragraph, source_label=restaurant_name, embedding=embedding)
            for paragraph, embedding in zip(paragraphs, embeddings)
        ]
        logger.info(f"Created {len(chunks)} chunks for {restaurant_name!r}")
        return chunks
