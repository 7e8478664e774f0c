"""Unit tests for RetrievalEngine and its ranking helpers."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import numpy as np
import pytest
from unittest.mock import Mock
from models.api import RetrievalMode
from models.chunk import MenuChunk, ScoredChunk
from services.embedding_model import EmbeddingModel, embed
from services.retrieval_engine import (
    RetrievalEngine,
    build_context,
    cosine_similarity,
    dedupe_by_content,
    lexical_filter,
    rank_by_similarity,
)


def make_chunk(content, source="Luigi's", embedding=None):
    if embedding is None:
        embedding = embed(content)
    return MenuChunk(content=content, source_label=source, embedding=embedding)


class TestCosineSimilarity:
    """Test suite for cosine_similarity."""

    def test_identical_vectors(self):
        vector = np.array([0.6, 0.8])
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 1.0])) == 0.0

    def test_opposite_vectors(self):
        assert cosine_similarity(np.array([1.0, 2.0]), np.array([-1.0, -2.0])) == pytest.approx(-1.0)

    def test_not_normalised_inputs(self):
        assert cosine_similarity(np.array([3.0, 0.0]), np.array([10.0, 0.0])) == pytest.approx(1.0)

    def test_zero_vector_scores_zero(self):
        """A zero-norm operand scores 0 instead of dividing by zero."""
        assert cosine_similarity(np.zeros(384), embed("pizza")) == 0.0
        assert cosine_similarity(np.zeros(3), np.zeros(3)) == 0.0

    def test_mismatched_dimensions_fail_fast(self):
        """Dimension checks belong to the caller; a mismatch raises rather than scoring."""
        with pytest.raises(ValueError):
            cosine_similarity(np.ones(3), np.ones(4))


class TestHelpers:
    """Test suite for lexical filtering, ranking, dedupe and context assembly."""

    def test_lexical_filter_substring_match(self):
        """Question tokens match as substrings of lowercased content."""
        chunks = [make_chunk("Veggie Burger $9", "A"), make_chunk("Cheese Pizza $11", "B")]

        result = lexical_filter("PIZZA price", chunks)

        assert [chunk.content for chunk in result] == ["Cheese Pizza $11"]

    def test_lexical_filter_short_tokens_count(self):
        """Token length is unrestricted for lexical matching."""
        chunks = [make_chunk("Oxtail stew"), make_chunk("Green salad")]

        result = lexical_filter("ox", chunks)

        assert [chunk.content for chunk in result] == ["Oxtail stew"]

    def test_lexical_filter_blank_question(self):
        assert lexical_filter("   ", [make_chunk("Cheese Pizza $11")]) == []

    def test_rank_by_similarity_orders_descending(self):
        chunks = [
            make_chunk("Chocolate lava cake"),
            make_chunk("Spicy chicken wings with ranch"),
        ]

        result = rank_by_similarity(embed("spicy chicken wings"), chunks)

        assert result[0].chunk.content == "Spicy chicken wings with ranch"
        assert result[0].relevance_score >= result[1].relevance_score

    def test_rank_by_similarity_zero_query_keeps_input_order(self):
        """All-zero similarity degenerates to input order."""
        chunks = [make_chunk(f"Dish number {i} special") for i in range(5)]

        result = rank_by_similarity(np.zeros(384), chunks)

        assert [item.chunk for item in result] == chunks
        assert all(item.relevance_score == 0.0 for item in result)

    def test_rank_by_similarity_missing_embedding_scores_zero(self):
        chunk = MenuChunk(content="Garlic bread", source_label="A", embedding=None)

        result = rank_by_similarity(embed("garlic bread"), [chunk])

        assert result[0].relevance_score == 0.0

    def test_dedupe_keeps_first_occurrence(self):
        first = ScoredChunk(chunk=make_chunk("Cheese Pizza $11", "A"), relevance_score=0.9)
        duplicate = ScoredChunk(chunk=make_chunk("Cheese Pizza $11", "B"), relevance_score=0.1)
        other = ScoredChunk(chunk=make_chunk("Veggie Burger $9"), relevance_score=0.2)

        result = dedupe_by_content([first], [duplicate, other])

        assert result == [first, other]

    def test_dedupe_is_exact_match(self):
        """Content is compared by exact value, not normalised."""
        upper = ScoredChunk(chunk=make_chunk("Cheese Pizza"), relevance_score=0.5)
        lower = ScoredChunk(chunk=make_chunk("cheese pizza"), relevance_score=0.5)

        assert len(dedupe_by_content([upper, lower])) == 2

    def test_build_context_single_source(self):
        scored = [
            ScoredChunk(chunk=make_chunk("Cheese Pizza $11", "B"), relevance_score=0.8),
            ScoredChunk(chunk=make_chunk("Pepperoni Pizza $13", "B"), relevance_score=0.7),
        ]

        assert build_context(scored) == "Cheese Pizza $11\n\nPepperoni Pizza $13"

    def test_build_context_multiple_sources_are_labelled(self):
        scored = [
            ScoredChunk(chunk=make_chunk("Veggie Burger $9", "A"), relevance_score=0.8),
            ScoredChunk(chunk=make_chunk("Cheese Pizza $11", "B"), relevance_score=0.7),
        ]

        assert build_context(scored) == "A: Veggie Burger $9\n\nB: Cheese Pizza $11"

    def test_build_context_empty(self):
        assert build_context([]) == ""


class TestRetrievalEngine:
    """Test suite for RetrievalEngine class."""

    @pytest.fixture
    def engine(self):
        return RetrievalEngine(EmbeddingModel())

    def test_initialization(self):
        model = EmbeddingModel()
        engine = RetrievalEngine(model, max_chunks=4)

        assert engine.embedding_model is model
        assert engine.max_chunks == 4

    def test_scenario_pizza_price(self, engine):
        """'pizza' matches chunk B even though 'price' matches nothing."""
        chunks = [make_chunk("Veggie Burger $9", "A"), make_chunk("Cheese Pizza $11", "B")]

        result = engine.retrieve("pizza price", chunks, k=8)

        assert result
        assert "Cheese Pizza $11" in [item.chunk.content for item in result]

    def test_no_candidates_returns_empty(self, engine):
        assert engine.retrieve("any question", [], k=8) == []

    @pytest.mark.parametrize("mode", list(RetrievalMode))
    def test_no_candidates_returns_empty_in_every_mode(self, engine, mode):
        assert engine.retrieve("pizza", [], k=8, mode=mode) == []

    def test_cap_law(self, engine):
        """Never more than eight chunks, however many candidates match."""
        chunks = [make_chunk(f"Pizza special number {i}") for i in range(20)]
        hits = [
            ScoredChunk(chunk=make_chunk(f"Pizza of the day {i}"), relevance_score=0.1)
            for i in range(10)
        ]

        result = engine.retrieve("pizza", chunks, k=50, fulltext_hits=hits)

        assert len(result) == 8

    def test_k_below_cap(self, engine):
        chunks = [make_chunk(f"Pizza special number {i}") for i in range(20)]

        assert len(engine.retrieve("pizza", chunks, k=3)) == 3

    def test_fallback_law(self, engine):
        """No keyword overlap still returns candidates, up to the cap."""
        chunks = [make_chunk(f"Burger combo number {i}") for i in range(12)]

        result = engine.retrieve("sushi rolls?", chunks, k=8)

        assert 0 < len(result) <= 8
        assert all(item.chunk in chunks for item in result)

    @pytest.mark.parametrize("mode", list(RetrievalMode))
    def test_fallback_law_in_every_mode(self, engine, mode):
        chunks = [make_chunk("Veggie Burger $9"), make_chunk("Fries basket $4")]

        result = engine.retrieve("sushi", chunks, k=8, mode=mode)

        assert result

    def test_fulltext_mode_without_hits_keeps_keyword_matches(self, engine):
        """With no full-text hits, the fallback draws from the keyword-matched chunks."""
        chunks = [make_chunk(f"Burger combo number {i}") for i in range(12)]
        chunks.append(make_chunk("Cheese Pizza $11"))

        result = engine.retrieve("pizza", chunks, k=8, mode=RetrievalMode.FULLTEXT, fulltext_hits=[])

        assert [item.chunk.content for item in result] == ["Cheese Pizza $11"]
        assert result[0].relevance_score == 0.5

    def test_fulltext_mode_without_hits_or_matches_uses_first_candidates(self, engine):
        chunks = [make_chunk(f"Burger combo number {i}") for i in range(12)]

        result = engine.retrieve("sushi", chunks, k=8, mode=RetrievalMode.FULLTEXT)

        assert [item.chunk for item in result] == chunks[:8]

    def test_dedupe_law_across_strategies(self, engine):
        """A chunk found by both vector and full-text search appears once."""
        chunks = [make_chunk("Cheese Pizza $11"), make_chunk("Pepperoni Pizza $13")]
        hits = [ScoredChunk(chunk=make_chunk("Cheese Pizza $11"), relevance_score=0.3)]

        result = engine.retrieve("cheese pizza", chunks, k=8, fulltext_hits=hits)

        contents = [item.chunk.content for item in result]
        assert len(contents) == len(set(contents))
        assert contents.count("Cheese Pizza $11") == 1

    def test_duplicate_candidates_collapse(self, engine):
        chunks = [make_chunk("Cheese Pizza $11", "A"), make_chunk("Cheese Pizza $11", "B")]

        result = engine.retrieve("pizza", chunks, k=8)

        assert len(result) == 1

    def test_hybrid_lists_vector_results_before_fulltext(self, engine):
        chunks = [make_chunk("Cheese Pizza $11")]
        hits = [ScoredChunk(chunk=make_chunk("Pizza Bianca $12"), relevance_score=0.9)]

        result = engine.retrieve("pizza", chunks, k=8, mode=RetrievalMode.HYBRID, fulltext_hits=hits)

        assert [item.chunk.content for item in result] == ["Cheese Pizza $11", "Pizza Bianca $12"]

    def test_vector_mode_ignores_fulltext_hits(self, engine):
        chunks = [make_chunk("Cheese Pizza $11")]
        hits = [ScoredChunk(chunk=make_chunk("Pizza Bianca $12"), relevance_score=0.9)]

        result = engine.retrieve("pizza", chunks, k=8, mode=RetrievalMode.VECTOR, fulltext_hits=hits)

        assert [item.chunk.content for item in result] == ["Cheese Pizza $11"]

    def test_vector_mode_ranks_by_similarity(self, engine):
        chunks = [
            make_chunk("Margherita pizza with basil"),
            make_chunk("Pepperoni pizza with extra cheese and chili oil"),
        ]

        result = engine.retrieve("pepperoni pizza cheese", chunks, k=8, mode=RetrievalMode.VECTOR)

        assert result[0].chunk.content.startswith("Pepperoni")
        assert result[0].relevance_score > result[1].relevance_score

    def test_fulltext_mode_uses_store_hits(self, engine):
        chunks = [make_chunk("Cheese Pizza $11"), make_chunk("Veggie Burger $9")]
        hits = [ScoredChunk(chunk=make_chunk("Veggie Burger $9"), relevance_score=0.4)]

        result = engine.retrieve("burger", chunks, k=8, mode=RetrievalMode.FULLTEXT, fulltext_hits=hits)

        assert result == hits

    def test_lexical_mode_keeps_input_order_unscored(self):
        model = Mock(spec=EmbeddingModel)
        engine = RetrievalEngine(model)
        chunks = [make_chunk("Pizza Bianca $12"), make_chunk("Cheese Pizza $11")]

        result = engine.retrieve("pizza", chunks, k=8, mode="lexical")

        assert [item.chunk for item in result] == chunks
        assert all(item.relevance_score == 0.5 for item in result)
        model.embed_text.assert_not_called()

    def test_vector_mode_embeds_question(self):
        model = Mock(spec=EmbeddingModel)
        model.embed_text.return_value = np.zeros(384)
        engine = RetrievalEngine(model)

        engine.retrieve("pizza", [make_chunk("Cheese Pizza $11")], k=8, mode=RetrievalMode.VECTOR)

        model.embed_text.assert_called_once_with("pizza")

    def test_all_zero_embeddings_degenerate_to_input_order(self, engine):
        chunks = [
            make_chunk(f"Menu item {i}", embedding=np.zeros(384))
            for i in range(4)
        ]

        result = engine.retrieve("menu", chunks, k=8, mode=RetrievalMode.VECTOR)

        assert [item.chunk for item in result] == chunks

    def test_invalid_mode_raises(self, engine):
        with pytest.raises(ValueError):
            engine.retrieve("pizza", [make_chunk("Cheese Pizza $11")], mode="semantic")
