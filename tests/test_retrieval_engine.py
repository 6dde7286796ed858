"""Unit tests for RetrievalEngine."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock
from models.match import Match
from services.retrieval_engine import RetrievalEngine
from services.reranker import Reranker
from services.embedding_model import EmbeddingError
from services.vector_store import VectorStoreError


def make_match(similarity, section="Lecture", type="text", content="content"):
    return Match(content=content, similarity=similarity, metadata={"section": section, "type": type})


class TestRetrievalEngine:
    """Test suite for RetrievalEngine class."""

    @pytest.fixture
    def mock_vector_store(self):
        """Create a mock VectorStore."""
        return Mock()

    @pytest.fixture
    def mock_embedding_model(self):
        """Create a mock EmbeddingModel."""
        model = Mock()
        model.embed_text.return_value = [0.1] * 768
        return model

    @pytest.fixture
    def retrieval_engine(self, mock_vector_store, mock_embedding_model):
        """Create a RetrievalEngine instance with mocks."""
        return RetrievalEngine(mock_vector_store, mock_embedding_model)

    def test_initialization(self, retrieval_engine, mock_vector_store, mock_embedding_model):
        """Test that RetrievalEngine initializes correctly."""
        assert retrieval_engine.vector_store == mock_vector_store
        assert retrieval_engine.embedding_model == mock_embedding_model
        assert isinstance(retrieval_engine.reranker, Reranker)
        assert retrieval_engine.threshold == 0.5
        assert retrieval_engine.oversample == 3

    def test_retrieve_empty_query(self, retrieval_engine, mock_embedding_model):
        """Test that empty query returns empty list."""
        assert retrieval_engine.retrieve("") == []
        assert retrieval_engine.retrieve("   ") == []
        mock_embedding_model.embed_text.assert_not_called()

    def test_retrieve_non_positive_limit(self, retrieval_engine, mock_embedding_model, mock_vector_store):
        """Test that a zero or negative limit returns empty list without searching."""
        assert retrieval_engine.retrieve("test query", limit=0) == []
        assert retrieval_engine.retrieve("test query", limit=-1) == []
        mock_embedding_model.embed_text.assert_not_called()
        mock_vector_store.search.assert_not_called()

    def test_retrieve_no_results(self, retrieval_engine, mock_embedding_model, mock_vector_store):
        """Test retrieval when no chunks are found."""
        mock_vector_store.search.return_value = []

        result = retrieval_engine.retrieve("test query")

        assert result == []
        mock_embedding_model.embed_text.assert_called_once_with("test query")
        mock_vector_store.search.assert_called_once()

    def test_retrieve_oversamples_candidates(self, retrieval_engine, mock_vector_store):
        mock_vector_store.search.return_value = []

        retrieval_engine.retrieve("test query", limit=4, category="BtoB")

        mock_vector_store.search.assert_called_once_with(
            [0.1] * 768, threshold=0.5, count=12, category="BtoB"
        )

    def test_retrieve_reranks_and_limits(self, retrieval_engine, mock_vector_store):
        mock_vector_store.search.return_value = [
            make_match(0.9, section="Outro", content="outro"),
            make_match(0.8, section="Intro", content="intro"),
            make_match(0.7, section="Lecture", content="lecture"),
            make_match(0.6, section="Lecture", type="survey", content="survey"),
        ]

        result = retrieval_engine.retrieve("test query", limit=2)

        assert [r.match.content for r in result] == ["intro", "lecture"]
        assert result[0].adjusted_score == pytest.approx(0.8 * 1.5)
        assert result[0].match.similarity == 0.8

    def test_retrieve_propagates_embedding_error(self, retrieval_engine, mock_embedding_model):
        mock_embedding_model.embed_text.side_effect = EmbeddingError("down", 503, "RETRIES_EXHAUSTED")

        with pytest.raises(EmbeddingError):
            retrieval_engine.retrieve("test query")

    def test_retrieve_propagates_vector_store_error(self, retrieval_engine, mock_vector_store):
        mock_vector_store.search.side_effect = VectorStoreError("Failed to search vector store")

        with pytest.raises(VectorStoreError):
            retrieval_engine.retrieve("test query")
