"""Retrieval engine for selecting and ranking menu chunks for a question."""
import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np

from config import MAX_CONTEXT_CHUNKS, FALLBACK_SCORE
from models.api import RetrievalMode
from models.chunk import MenuChunk, ScoredChunk
from services.embedding_model import EmbeddingModel

logger = logging.getLogger(__name__)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Cosine similarity of two vectors.

    A zero-norm operand yields 0.0. Vectors of different lengths are a
    caller error and make numpy raise ValueError.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    dot = float(np.dot(a, b))
    norm_product = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm_product == 0.0:
        return 0.0
    return dot / norm_product


def question_tokens(question: str) -> List[str]:
    """Lowercased whitespace-delimited tokens of a question, any length."""
    return question.lower().split()


def lexical_filter(question: str, chunks: Sequence[MenuChunk]) -> List[MenuChunk]:
    """Chunks whose lowercased content contains at least one question token."""
    tokens = question_tokens(question)
    if not tokens:
        return []
    return [
        chunk for chunk in chunks
        if any(token in chunk.content.lower() for token in tokens)
    ]


def rank_by_similarity(
    query_embedding: np.ndarray,
    chunks: Sequence[MenuChunk]
) -> List[ScoredChunk]:
    """
    Score chunks by cosine similarity, highest first.

    The sort is stable, so ties (including the all-zero case) keep input order.
    Chunks without an embedding score 0.0.
    """
    scored = []
    for chunk in chunks:
        if chunk.embedding is None:
            score = 0.0
        else:
            score = cosine_similarity(query_embedding, chunk.embedding)
        scored.append(ScoredChunk(chunk=chunk, relevance_score=score))
    scored.sort(key=lambda item: item.relevance_score, reverse=True)
    return scored


def dedupe_by_content(*result_lists: Iterable[ScoredChunk]) -> List[ScoredChunk]:
    """Concatenate result lists and keep the first entry for each exact content string."""
    seen = set()
    merged = []
    for results in result_lists:
        for item in results:
            if item.chunk.content in seen:
                continue
            seen.add(item.chunk.content)
            merged.append(item)
    return merged


def build_context(scored_chunks: Sequence[ScoredChunk]) -> str:
    """
    Assemble the language-model context from selected chunks.

    Entries are prefixed with their restaurant name only when more than one
    restaurant is represented. Entries are separated by a blank line.
    """
    sources = {item.chunk.source_label for item in scored_chunks}
    labelled = len(sources) > 1
    entries = []
    for item in scored_chunks:
        if labelled:
            entries.append(f"{item.chunk.source_label}: {item.chunk.content}")
        else:
            entries.append(item.chunk.content)
    return "\n\n".join(entries)


class RetrievalEngine:
    """Select, rank, merge and cap menu chunks for a question."""

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        max_chunks: int = MAX_CONTEXT_CHUNKS
    ):
        """
        Initialize the retrieval engine.

        Args:
            embedding_model: EmbeddingModel used to embed questions
            max_chunks: Hard cap on chunks handed to the language model
        """
        self.embedding_model = embedding_model
        self.max_chunks = max_chunks
        logger.info(f"Initialized RetrievalEngine (max_chunks={max_chunks})")

    def retrieve(
        self,
        question: str,
        chunks: Sequence[MenuChunk],
        k: int = MAX_CONTEXT_CHUNKS,
        mode: RetrievalMode = RetrievalMode.HYBRID,
        fulltext_hits: Optional[Sequence[ScoredChunk]] = None
    ) -> List[ScoredChunk]:
        """
        Retrieve the chunks to place in the language-model context.

        Strategy:
        1. Select the lexically relevant chunks (content contains any question
           token); if there are none, fall back to the first ``max_chunks``
           candidates
        2. Vector and hybrid modes rank the selection by cosine similarity to
           the embedded question; lexical mode keeps input order, unscored
        3. Full-text and hybrid modes append the store's full-text hits
        4. Deduplicate by exact content, first occurrence wins
        5. Cap at ``min(k, max_chunks)``

        If all of that produces nothing while candidates exist, the selection
        from step 1 is returned with a placeholder score.

        Args:
            question: User question
            chunks: Candidate chunks from the store, already scoped
            k: Maximum number of chunks wanted by the caller
            mode: Scoring strategy
            fulltext_hits: Ranked full-text results from the store, if any

        Returns:
            Ordered list of scored chunks, empty only when there are no candidates
        """
        mode = RetrievalMode(mode)
        limit = max(0, min(k, self.max_chunks))

        if not chunks and not fulltext_hits:
            logger.info("No candidate chunks available")
            return []

        selected = lexical_filter(question, chunks)
        if selected:
            logger.debug(f"Lexical filter kept {len(selected)}/{len(chunks)} chunks")
        else:
            selected = list(chunks[:self.max_chunks])
            logger.debug(
                f"No lexical match; falling back to first {len(selected)} chunks"
            )

        result_lists = []
        if mode in (RetrievalMode.VECTOR, RetrievalMode.HYBRID):
            query_embedding = self.embedding_model.embed_text(question)
            result_lists.append(rank_by_similarity(query_embedding, selected))
        elif mode == RetrievalMode.LEXICAL:
            result_lists.append([
                ScoredChunk(chunk=chunk, relevance_score=FALLBACK_SCORE)
                for chunk in selected
            ])

        if mode in (RetrievalMode.FULLTEXT, RetrievalMode.HYBRID) and fulltext_hits:
            result_lists.append(fulltext_hits)

        results = dedupe_by_content(*result_lists)[:limit]

        if not results and chunks:
            results = dedupe_by_content([
                ScoredChunk(chunk=chunk, relevance_score=FALLBACK_SCORE)
                for chunk in selected
            ])[:limit]
            logger.info(f"No scored results; using {len(results)} unscored chunks")

        logger.info(
            f"Retrieved {len(results)} chunks (mode={mode.value}, "
            f"candidates={len(chunks)}, fulltext_hits={len(fulltext_hits or [])})"
        )
        return results
