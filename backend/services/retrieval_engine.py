"""Retrieval engine for orchestrating query embedding, search and re-ranking."""
import logging
from typing import List, Optional
from models.match import RankedMatch
from services.vector_store import VectorStore, VectorStoreError
from services.embedding_model import EmbeddingModel, EmbeddingError
from services.reranker import Reranker
from config import MATCH_THRESHOLD, MATCH_OVERSAMPLE, MAX_RESULTS

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Embed a query, search the vector store and re-rank by lesson priority."""

    def __init__(
        self,
        vector_store: VectorStore,
        embedding_model: EmbeddingModel,
        reranker: Optional[Reranker] = None,
        threshold: float = MATCH_THRESHOLD,
        oversample: int = MATCH_OVERSAMPLE
    ):
        """
        Initialize the retrieval engine.

        Args:
            vector_store: VectorStore instance for similarity search
            embedding_model: EmbeddingModel instance for query embedding
            reranker: Priority re-ranker (default weights when omitted)
            threshold: Minimum similarity passed to the store
            oversample: Candidates fetched per requested result
        """
        self.vector_store = vector_store
        self.embedding_model = embedding_model
        self.reranker = reranker or Reranker()
        self.threshold = threshold
        self.oversample = oversample
        logger.info("Initialized RetrievalEngine")

    def retrieve(
        self,
        query: str,
        limit: int = MAX_RESULTS,
        category: Optional[str] = None
    ) -> List[RankedMatch]:
        """
        Retrieve the most useful chunks for a query.

        1. Embed the query
        2. Search for ``limit * oversample`` candidates above the threshold
        3. Re-rank by section/type priority and keep ``limit``

        Args:
            query: User question
            limit: Maximum number of matches to return
            category: Optional knowledge category filter

        Returns:
            Ranked matches, empty when the query is blank or nothing relevant
            was found

        Raises:
            EmbeddingError: If the query cannot be embedded
            VectorStoreError: If the search fails
        """
        if not query or not query.strip():
            logger.warning("Empty query string provided, returning empty results")
            return []

        if limit <= 0:
            logger.warning(f"Non-positive limit {limit}, returning empty results")
            return []

        try:
            logger.debug(f"Embedding query: {query[:100]}...")
            query_embedding = self.embedding_model.embed_text(query)

            candidate_count = limit * self.oversample
            logger.debug(f"Searching for {candidate_count} candidates")
            matches = self.vector_store.search(
                query_embedding,
                threshold=self.threshold,
                count=candidate_count,
                category=category
            )
        except (EmbeddingError, VectorStoreError) as e:
            logger.error(f"Failed to retrieve chunks for query: {str(e)}")
            raise

        if not matches:
            logger.info("No chunks found for query")
            return []

        ranked = self.reranker.rerank(matches, limit)

        logger.info(
            f"Retrieved {len(ranked)} of {len(matches)} candidates "
            f"(top adjusted score: {ranked[0].adjusted_score:.3f})"
        )
        return ranked
